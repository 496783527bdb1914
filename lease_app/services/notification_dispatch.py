import logging
import re
import uuid
from datetime import datetime
from typing import Any, Dict, Mapping

from core.errors import MissingCredentialsError
from core.settings import settings
from email_notify.email_service import ResendEmailClient
from models.enums import NotificationChannel, NotificationStatus, NotificationTrigger
from repos.notification_repo import NotificationLogRepo
from schemas.schema import ChannelResult, DispatchOutcome
from services.credential_service import CHANNEL_LABELS, OrganizationCredentials
from telegram_notify.telegram_service import TelegramBotClient
from whatsapp_notify.whatsapp_service import WhatsAppMetaClient

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


def render_template(template: str, variables: Mapping[str, Any]) -> str:
    """Substitute {{name}} placeholders; unknown names stay as literal text."""

    def replace(match: re.Match) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        value = variables[name]
        return "" if value is None else str(value)

    return PLACEHOLDER.sub(replace, template or "")


def truncate_reason(reason: str | None) -> str:
    reason = reason or "Unknown error"
    limit = settings.FAILED_REASON_MAX_LENGTH
    return reason if len(reason) <= limit else reason[: limit - 3] + "..."


class NotificationDispatcher:
    """Sends one message over one channel and records the attempt in notification_logs.

    The log row is written as PENDING before any network call and always
    finishes as SENT or FAILED, whether the provider rejects the message,
    credentials are missing, or the transport raises.
    """

    def __init__(self, db, channels: Dict[NotificationChannel, Any] | None = None):
        self.log_repo = NotificationLogRepo(db)
        self.channels = channels or {
            NotificationChannel.EMAIL: ResendEmailClient(),
            NotificationChannel.WHATSAPP: WhatsAppMetaClient(),
            NotificationChannel.TELEGRAM: TelegramBotClient(),
        }

    async def _send(
        self,
        channel: NotificationChannel,
        recipient: str,
        subject: str | None,
        body: str,
        credentials: OrganizationCredentials | None,
    ) -> ChannelResult:
        if channel == NotificationChannel.EMAIL and not subject:
            return ChannelResult(
                success=False, error="Subject is required for email notifications"
            )

        secret = credentials.for_channel(channel) if credentials else None
        if not secret:
            raise MissingCredentialsError(
                f"Organization {CHANNEL_LABELS[channel]} credentials not configured"
            )

        client = self.channels[channel]
        if channel == NotificationChannel.EMAIL:
            return await client.send(recipient, subject, body, secret)
        return await client.send(recipient, body, secret)

    async def dispatch(
        self,
        *,
        organization_id: uuid.UUID,
        trigger: NotificationTrigger,
        channel: NotificationChannel,
        recipient: str,
        subject: str | None,
        body: str,
        credentials: OrganizationCredentials | None,
        now: datetime,
        related_entity_id: uuid.UUID | None = None,
    ) -> DispatchOutcome:
        channel = NotificationChannel(channel)
        log = await self.log_repo.create_pending(
            {
                "organization_id": organization_id,
                "trigger": trigger,
                "channel": channel,
                "recipient": recipient,
                "subject": subject,
                "body": body,
                "related_entity_id": related_entity_id,
                "created_at": now,
            }
        )

        missing = False
        try:
            result = await self._send(channel, recipient, subject, body, credentials)
        except MissingCredentialsError as e:
            missing = True
            result = ChannelResult(success=False, error=e.message)
        except Exception as e:
            logger.exception(f"{channel.value} dispatch to {recipient} raised: {e}")
            result = ChannelResult(success=False, error=str(e) or type(e).__name__)

        if result.success:
            await self.log_repo.mark_sent(log, now, result.provider_message_id)
            status = NotificationStatus.SENT
            error = None
        else:
            error = truncate_reason(result.error)
            await self.log_repo.mark_failed(log, error)
            status = NotificationStatus.FAILED
            logger.warning(f"{channel.value} notification to {recipient} failed: {error}")

        return DispatchOutcome(
            success=result.success,
            channel=channel,
            recipient=recipient,
            status=status,
            log_id=log.id,
            provider_message_id=result.provider_message_id,
            error=error,
            missing_credentials=missing,
        )

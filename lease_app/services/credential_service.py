import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from core.encryption import SecretBox
from models.enums import CHANNEL_API_KEY_SERVICE, ApiKeyService, NotificationChannel
from repos.api_key_repo import ApiKeyRepo
from whatsapp_notify.whatsapp_service import WhatsAppCredentials

logger = logging.getLogger(__name__)

CHANNEL_LABELS = {
    NotificationChannel.EMAIL: "email",
    NotificationChannel.WHATSAPP: "WhatsApp",
    NotificationChannel.TELEGRAM: "Telegram",
}

API_KEY_SERVICE_CHANNEL = {
    service: channel for channel, service in CHANNEL_API_KEY_SERVICE.items()
}


@dataclass
class OrganizationCredentials:
    email_api_key: Optional[str] = None
    whatsapp: Optional[WhatsAppCredentials] = None
    telegram_bot_token: Optional[str] = None

    def for_channel(self, channel: NotificationChannel) -> Any:
        channel = NotificationChannel(channel)
        if channel == NotificationChannel.EMAIL:
            return self.email_api_key
        if channel == NotificationChannel.WHATSAPP:
            return self.whatsapp
        return self.telegram_bot_token

    def store(self, channel: NotificationChannel, raw: str) -> None:
        if channel == NotificationChannel.EMAIL:
            self.email_api_key = raw
        elif channel == NotificationChannel.WHATSAPP:
            self.whatsapp = parse_whatsapp_secret(raw)
        else:
            self.telegram_bot_token = raw


def parse_whatsapp_secret(raw: str) -> WhatsAppCredentials:
    data = json.loads(raw)
    return WhatsAppCredentials(
        access_token=data.get("accessToken") or data.get("access_token"),
        phone_number_id=data.get("phoneNumberId") or data.get("phone_number_id"),
    )


class CredentialResolver:
    def __init__(self, db, secret_box: SecretBox | None = None):
        self.api_key_repo = ApiKeyRepo(db)
        self.secret_box = secret_box

    def _box(self) -> SecretBox:
        if self.secret_box is None:
            self.secret_box = SecretBox()
        return self.secret_box

    async def resolve(
        self, organization_id: uuid.UUID, now: datetime
    ) -> OrganizationCredentials:
        credentials = OrganizationCredentials()
        keys = await self.api_key_repo.get_active(
            organization_id, list(CHANNEL_API_KEY_SERVICE.values())
        )
        if not keys:
            return credentials

        used = []
        for key in keys:
            try:
                raw = self._box().decrypt(key.encrypted_value)
                channel = API_KEY_SERVICE_CHANNEL[ApiKeyService(key.service)]
                credentials.store(channel, raw)
            except (ValueError, RuntimeError) as e:
                logger.error(f"Failed to decrypt API key {key.id}: {e}")
                continue
            used.append(key.id)

        await self.api_key_repo.touch(used, now)
        return credentials

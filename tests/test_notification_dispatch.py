import uuid
from datetime import datetime

import httpx

from models.enums import NotificationChannel, NotificationStatus, NotificationTrigger
from schemas.schema import ChannelResult
from services.credential_service import OrganizationCredentials
from services.notification_dispatch import (
    NotificationDispatcher,
    render_template,
    truncate_reason,
)
from whatsapp_notify.whatsapp_service import WhatsAppCredentials

from fakes import ORG_ID, FakeLogRepo, RecordingChannel

NOW = datetime(2025, 6, 1, 9, 0)


def dispatcher_with(email=None, whatsapp=None, telegram=None):
    channels = {
        NotificationChannel.EMAIL: email or RecordingChannel(),
        NotificationChannel.WHATSAPP: whatsapp or RecordingChannel(),
        NotificationChannel.TELEGRAM: telegram or RecordingChannel(),
    }
    dispatcher = NotificationDispatcher(None, channels=channels)
    dispatcher.log_repo = FakeLogRepo()
    return dispatcher


async def send(dispatcher, channel, credentials, subject="Rent due", recipient="ada@acme-homes.com"):
    return await dispatcher.dispatch(
        organization_id=ORG_ID,
        trigger=NotificationTrigger.PAYMENT_REMINDER,
        channel=channel,
        recipient=recipient,
        subject=subject,
        body="Hello Ada",
        credentials=credentials,
        now=NOW,
        related_entity_id=uuid.uuid4(),
    )


def test_render_template_substitutes_known_placeholders():
    text = render_template(
        "Hi {{tenantName}}, rent of {{rentAmount}} is due {{leaseStartDate}}. {{unknown}}",
        {"tenantName": "Ada", "rentAmount": "1500.00", "leaseStartDate": "2025-06-04"},
    )
    assert text == "Hi Ada, rent of 1500.00 is due 2025-06-04. {{unknown}}"


def test_render_template_none_becomes_empty():
    assert render_template("[{{unitName}}]", {"unitName": None}) == "[]"
    assert render_template(None, {}) == ""


def test_truncate_reason():
    assert truncate_reason(None) == "Unknown error"
    long_reason = "x" * 600
    truncated = truncate_reason(long_reason)
    assert len(truncated) == 500
    assert truncated.endswith("...")


async def test_missing_credentials_logs_pending_then_failed_without_network():
    email = RecordingChannel()
    dispatcher = dispatcher_with(email=email)

    outcome = await send(dispatcher, NotificationChannel.EMAIL, OrganizationCredentials())

    assert not outcome.success
    assert outcome.missing_credentials
    assert outcome.status == NotificationStatus.FAILED
    assert outcome.error == "Organization email credentials not configured"
    assert email.sent == []
    [log] = dispatcher.log_repo.logs
    assert dispatcher.log_repo.history == [
        (log.id, NotificationStatus.PENDING),
        (log.id, NotificationStatus.FAILED),
    ]
    assert log.failed_reason == "Organization email credentials not configured"


async def test_missing_whatsapp_credentials_message():
    dispatcher = dispatcher_with()
    outcome = await send(
        dispatcher,
        NotificationChannel.WHATSAPP,
        OrganizationCredentials(email_api_key="re_123"),
        recipient="+2348012345678",
    )
    assert outcome.error == "Organization WhatsApp credentials not configured"


async def test_successful_send_marks_log_sent():
    email = RecordingChannel(ChannelResult(success=True, provider_message_id="re-42"))
    dispatcher = dispatcher_with(email=email)

    outcome = await send(
        dispatcher, NotificationChannel.EMAIL, OrganizationCredentials(email_api_key="re_123")
    )

    assert outcome.success
    assert outcome.status == NotificationStatus.SENT
    assert outcome.provider_message_id == "re-42"
    assert email.sent == [("ada@acme-homes.com", "Rent due", "Hello Ada", "re_123")]
    [log] = dispatcher.log_repo.logs
    assert log.status == NotificationStatus.SENT
    assert log.sent_at == NOW
    assert log.provider_message_id == "re-42"


async def test_whatsapp_send_passes_credentials_object():
    whatsapp = RecordingChannel()
    creds = WhatsAppCredentials(access_token="token", phone_number_id="1055")
    dispatcher = dispatcher_with(whatsapp=whatsapp)

    await send(
        dispatcher,
        NotificationChannel.WHATSAPP,
        OrganizationCredentials(whatsapp=creds),
        subject=None,
        recipient="+2348012345678",
    )

    assert whatsapp.sent == [("+2348012345678", "Hello Ada", creds)]


async def test_email_requires_subject():
    email = RecordingChannel()
    dispatcher = dispatcher_with(email=email)

    outcome = await send(
        dispatcher,
        NotificationChannel.EMAIL,
        OrganizationCredentials(email_api_key="re_123"),
        subject=None,
    )

    assert outcome.status == NotificationStatus.FAILED
    assert outcome.error == "Subject is required for email notifications"
    assert email.sent == []


async def test_provider_rejection_and_transport_errors_are_recorded():
    rejected = RecordingChannel(ChannelResult(success=False, error="Invalid API key"))
    broken = RecordingChannel(error=httpx.ConnectError("connection refused"))
    dispatcher = dispatcher_with(email=rejected, telegram=broken)
    credentials = OrganizationCredentials(email_api_key="re_bad", telegram_bot_token="123:abc")

    first = await send(dispatcher, NotificationChannel.EMAIL, credentials)
    second = await send(dispatcher, NotificationChannel.TELEGRAM, credentials, recipient="99887766")

    assert (first.status, first.error) == (NotificationStatus.FAILED, "Invalid API key")
    assert (second.status, second.error) == (NotificationStatus.FAILED, "connection refused")
    assert not second.missing_credentials
    assert [log.status for log in dispatcher.log_repo.logs] == [
        NotificationStatus.FAILED,
        NotificationStatus.FAILED,
    ]

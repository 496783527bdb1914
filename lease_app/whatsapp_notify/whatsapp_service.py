from dataclasses import dataclass

import httpx
import phonenumbers

from core.breaker import get_breaker
from core.channel_http import channel_client, post_json, response_json
from core.settings import settings
from schemas.schema import ChannelResult

INTERNATIONAL_FORMAT_ERROR = (
    "Phone number must be in international format (e.g., +1234567890)"
)


@dataclass
class WhatsAppCredentials:
    access_token: str
    phone_number_id: str


def normalize_whatsapp_number(number: str) -> str:
    """E.164 digits without the leading '+', as the Graph API expects."""
    number = (number or "").strip()
    if not number.startswith("+"):
        raise ValueError(INTERNATIONAL_FORMAT_ERROR)
    try:
        parsed = phonenumbers.parse(number, None)
    except phonenumbers.NumberParseException:
        raise ValueError(INTERNATIONAL_FORMAT_ERROR)
    if not phonenumbers.is_possible_number(parsed):
        raise ValueError(f"Invalid phone number: {number}")
    return phonenumbers.format_number(
        parsed, phonenumbers.PhoneNumberFormat.E164
    ).lstrip("+")


class WhatsAppMetaClient:
    def __init__(self, client: httpx.AsyncClient | None = None):
        self.base_url = settings.WHATSAPP_GRAPH_API_BASE.rstrip("/")
        self.client = client
        self.breaker = get_breaker("WHATSAPP")

    async def send(
        self, to: str, body: str, credentials: WhatsAppCredentials
    ) -> ChannelResult:
        if not credentials or not credentials.access_token or not credentials.phone_number_id:
            return ChannelResult(
                success=False,
                error="Missing WhatsApp credentials (accessToken or phoneNumberId)",
            )

        try:
            recipient = normalize_whatsapp_number(to)
        except ValueError as e:
            return ChannelResult(success=False, error=str(e))

        payload = {
            "messaging_product": "whatsapp",
            "to": recipient,
            "type": "text",
            "text": {"body": body},
        }

        async def handler():
            async with channel_client(self.client) as client:
                response = await post_json(
                    client,
                    f"{self.base_url}/{credentials.phone_number_id}/messages",
                    payload,
                    headers={"Authorization": f"Bearer {credentials.access_token}"},
                )
            data = response_json(response)
            if not response.is_success:
                error = data.get("error") or {}
                return ChannelResult(
                    success=False,
                    error=error.get("message")
                    or f"WhatsApp API error: {response.status_code}",
                )
            messages = data.get("messages") or [{}]
            return ChannelResult(success=True, provider_message_id=messages[0].get("id"))

        return await self.breaker.call(handler)

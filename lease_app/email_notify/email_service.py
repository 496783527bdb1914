import httpx

from core.breaker import get_breaker
from core.channel_http import channel_client, post_json, response_json
from core.settings import settings
from schemas.schema import ChannelResult


class ResendEmailClient:
    """Sends HTML email through the Resend HTTP API with the organization's key."""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.base_url = settings.RESEND_BASE_URL.rstrip("/")
        self.sender = settings.RESEND_SENDER
        self.client = client
        self.breaker = get_breaker("EMAIL")

    async def send(self, to: str, subject: str, html: str, api_key: str) -> ChannelResult:
        if not api_key:
            return ChannelResult(
                success=False, error="Organization API key not configured for email"
            )

        async def handler():
            async with channel_client(self.client) as client:
                response = await post_json(
                    client,
                    f"{self.base_url}/emails",
                    {"from": self.sender, "to": [to], "subject": subject, "html": html},
                    headers={"Authorization": f"Bearer {api_key}"},
                )
            data = response_json(response)
            if response.is_success:
                return ChannelResult(success=True, provider_message_id=data.get("id"))
            return ChannelResult(
                success=False,
                error=data.get("message") or f"Resend API error: {response.status_code}",
            )

        return await self.breaker.call(handler)

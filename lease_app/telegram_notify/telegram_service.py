import httpx

from core.breaker import get_breaker
from core.channel_http import channel_client, post_json, response_json
from core.settings import settings
from schemas.schema import ChannelResult


class TelegramBotClient:
    """Bot API sender. The chat must have messaged the bot before it can receive."""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.base_url = settings.TELEGRAM_API_BASE.rstrip("/")
        self.client = client
        self.breaker = get_breaker("TELEGRAM")

    async def send(self, chat_id: str, text: str, bot_token: str) -> ChannelResult:
        if not bot_token:
            return ChannelResult(success=False, error="Bot token is required")
        if not chat_id:
            return ChannelResult(success=False, error="Chat ID is required")
        if not text:
            return ChannelResult(success=False, error="Message text is required")

        async def handler():
            async with channel_client(self.client) as client:
                response = await post_json(
                    client,
                    f"{self.base_url}/bot{bot_token}/sendMessage",
                    {"chat_id": chat_id, "text": text, "parse_mode": "HTML"},
                )
            data = response_json(response)
            if data.get("ok"):
                message_id = (data.get("result") or {}).get("message_id")
                return ChannelResult(
                    success=True,
                    provider_message_id=str(message_id) if message_id is not None else None,
                )
            error = data.get("description") or "Failed to send message"
            if data.get("error_code"):
                error = f"{error} (code {data['error_code']})"
            return ChannelResult(success=False, error=error)

        return await self.breaker.call(handler)

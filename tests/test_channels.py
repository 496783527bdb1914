import json

import httpx
import pytest

from core.breaker import CircuitOpenError, get_breaker
from email_notify.email_service import ResendEmailClient
from telegram_notify.telegram_service import TelegramBotClient
from whatsapp_notify.whatsapp_service import (
    WhatsAppCredentials,
    WhatsAppMetaClient,
    normalize_whatsapp_number,
)


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_resend_email_success():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "re_msg_1"})

    async with mock_client(handler) as client:
        result = await ResendEmailClient(client).send(
            "ada@acme-homes.com", "Rent due", "<p>Hi</p>", "re_key"
        )

    assert result.success
    assert result.provider_message_id == "re_msg_1"
    assert seen["url"] == "https://api.resend.com/emails"
    assert seen["auth"] == "Bearer re_key"
    assert seen["body"]["to"] == ["ada@acme-homes.com"]
    assert seen["body"]["subject"] == "Rent due"


async def test_resend_email_error_message():
    def handler(request):
        return httpx.Response(422, json={"message": "Invalid `from` field"})

    async with mock_client(handler) as client:
        result = await ResendEmailClient(client).send("a@b.co", "S", "B", "re_key")

    assert not result.success
    assert result.error == "Invalid `from` field"


async def test_whatsapp_strips_plus_and_posts_to_phone_number_id():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"messages": [{"id": "wamid.abc"}]})

    creds = WhatsAppCredentials(access_token="meta-token", phone_number_id="10551")
    async with mock_client(handler) as client:
        result = await WhatsAppMetaClient(client).send("+2348012345678", "Hello", creds)

    assert result.success
    assert result.provider_message_id == "wamid.abc"
    assert seen["url"] == "https://graph.facebook.com/v21.0/10551/messages"
    assert seen["body"]["to"] == "2348012345678"
    assert seen["body"]["text"] == {"body": "Hello"}


async def test_whatsapp_rejects_local_numbers_without_calling_api():
    def handler(request):
        raise AssertionError("no request expected")

    creds = WhatsAppCredentials(access_token="meta-token", phone_number_id="10551")
    async with mock_client(handler) as client:
        result = await WhatsAppMetaClient(client).send("08012345678", "Hello", creds)

    assert not result.success
    assert "international format" in result.error


async def test_whatsapp_api_error():
    def handler(request):
        return httpx.Response(
            401, json={"error": {"message": "Invalid OAuth access token"}}
        )

    creds = WhatsAppCredentials(access_token="expired", phone_number_id="10551")
    async with mock_client(handler) as client:
        result = await WhatsAppMetaClient(client).send("+2348012345678", "Hi", creds)

    assert result.error == "Invalid OAuth access token"


def test_normalize_whatsapp_number():
    assert normalize_whatsapp_number(" +1 415 555 2671 ") == "14155552671"
    with pytest.raises(ValueError):
        normalize_whatsapp_number("4155552671")


async def test_telegram_success_and_failure():
    def ok(request):
        assert request.url.path == "/bot123:abc/sendMessage"
        body = json.loads(request.content)
        assert body["parse_mode"] == "HTML"
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 77}})

    def rejected(request):
        return httpx.Response(
            400,
            json={"ok": False, "error_code": 400, "description": "Bad Request: chat not found"},
        )

    async with mock_client(ok) as client:
        sent = await TelegramBotClient(client).send("556677", "<b>Rent</b>", "123:abc")
    async with mock_client(rejected) as client:
        failed = await TelegramBotClient(client).send("556677", "Rent", "123:abc")

    assert sent.success and sent.provider_message_id == "77"
    assert failed.error == "Bad Request: chat not found (code 400)"


async def test_transport_errors_open_the_breaker():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with mock_client(handler) as client:
        telegram = TelegramBotClient(client)
        for _ in range(3):
            with pytest.raises(httpx.ConnectError):
                await telegram.send("556677", "Rent", "123:abc")
        with pytest.raises(CircuitOpenError):
            await telegram.send("556677", "Rent", "123:abc")

    assert get_breaker("TELEGRAM").state == "OPEN"

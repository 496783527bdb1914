import json
import uuid
from datetime import datetime
from types import SimpleNamespace

import pytest
from cryptography.fernet import Fernet

from core.encryption import SecretBox
from models.enums import CHANNEL_API_KEY_SERVICE, ApiKeyService, NotificationChannel
from services.credential_service import (
    API_KEY_SERVICE_CHANNEL,
    CredentialResolver,
    OrganizationCredentials,
    parse_whatsapp_secret,
)

from fakes import ORG_ID, FakeApiKeyRepo

NOW = datetime(2025, 6, 1, 1, 0)


@pytest.fixture
def box():
    return SecretBox(Fernet.generate_key())


def api_key(service, encrypted_value, is_active=True):
    return SimpleNamespace(
        id=uuid.uuid4(), service=service, encrypted_value=encrypted_value, is_active=is_active
    )


def resolver_with(box, keys):
    resolver = CredentialResolver(None, secret_box=box)
    resolver.api_key_repo = FakeApiKeyRepo(keys)
    return resolver


async def test_resolves_every_channel_and_touches_used_keys(box):
    keys = [
        api_key(ApiKeyService.RESEND_EMAIL, box.encrypt("re_live")),
        api_key(
            ApiKeyService.WHATSAPP_META,
            box.encrypt(json.dumps({"accessToken": "meta", "phoneNumberId": "1055"})),
        ),
        api_key(ApiKeyService.TELEGRAM_BOT, box.encrypt("123:abc")),
    ]
    resolver = resolver_with(box, keys)

    credentials = await resolver.resolve(ORG_ID, NOW)

    assert credentials.for_channel(NotificationChannel.EMAIL) == "re_live"
    assert credentials.whatsapp.phone_number_id == "1055"
    assert credentials.for_channel(NotificationChannel.TELEGRAM) == "123:abc"
    [(touched, used_at)] = resolver.api_key_repo.touched
    assert set(touched) == {key.id for key in keys}
    assert used_at == NOW


async def test_undecryptable_key_is_skipped(box):
    good = api_key(ApiKeyService.TELEGRAM_BOT, box.encrypt("123:abc"))
    foreign = api_key(
        ApiKeyService.RESEND_EMAIL, SecretBox(Fernet.generate_key()).encrypt("re_other")
    )
    resolver = resolver_with(box, [foreign, good])

    credentials = await resolver.resolve(ORG_ID, NOW)

    assert credentials.email_api_key is None
    assert credentials.telegram_bot_token == "123:abc"
    assert resolver.api_key_repo.touched == [([good.id], NOW)]


async def test_no_keys_means_empty_credentials(box):
    resolver = resolver_with(box, [])
    credentials = await resolver.resolve(ORG_ID, NOW)
    assert credentials.for_channel(NotificationChannel.EMAIL) is None
    assert resolver.api_key_repo.touched == []


def test_parse_whatsapp_secret_accepts_snake_case():
    creds = parse_whatsapp_secret('{"access_token": "t", "phone_number_id": "9"}')
    assert (creds.access_token, creds.phone_number_id) == ("t", "9")


def test_secret_box_requires_a_key(monkeypatch):
    from core.settings import settings

    monkeypatch.setattr(settings, "ENCRYPTION_SECRET", None)
    with pytest.raises(RuntimeError):
        SecretBox()


def test_every_channel_has_one_key_service():
    assert set(CHANNEL_API_KEY_SERVICE) == set(NotificationChannel)
    assert set(API_KEY_SERVICE_CHANNEL) == set(ApiKeyService)


async def test_resolver_asks_for_the_channel_key_services(box):
    resolver = resolver_with(box, [])

    credentials = await resolver.resolve(ORG_ID, NOW)

    assert credentials == OrganizationCredentials()
    assert set(resolver.api_key_repo.requested) == set(CHANNEL_API_KEY_SERVICE.values())

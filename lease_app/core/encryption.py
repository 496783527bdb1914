from cryptography.fernet import Fernet, InvalidToken

from .settings import settings


class SecretBox:
    """Fernet wrapper for organization secrets stored at rest."""

    def __init__(self, key: str | bytes | None = None):
        key = key or settings.ENCRYPTION_SECRET
        if not key:
            raise RuntimeError("ENCRYPTION_SECRET is not configured")
        self.fernet = Fernet(key.encode() if isinstance(key, str) else key)

    def encrypt(self, value: str) -> str:
        return self.fernet.encrypt(value.encode()).decode()

    def decrypt(self, token: str) -> str:
        try:
            return self.fernet.decrypt(token.encode()).decode()
        except InvalidToken as e:
            raise ValueError("Stored secret could not be decrypted") from e

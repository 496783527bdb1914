import os

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    PROJECT_NAME: str = "LEASE LIFECYCLE AND NOTIFICATION ENGINE"
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL", "sqlite+aiosqlite:///./lease_app.db"
    )
    DRAMATIQ_REDIS_URL: str = os.getenv("DRAMATIQ_REDIS_URL", "redis://localhost:6379/0")
    CRON_SECRET: str | None = os.getenv("CRON_SECRET")
    ENCRYPTION_SECRET: str | None = os.getenv("ENCRYPTION_SECRET")

    RESEND_BASE_URL: str = "https://api.resend.com"
    RESEND_SENDER: str = os.getenv("RESEND_SENDER", "Leasing <noreply@example.com>")
    WHATSAPP_GRAPH_API_BASE: str = "https://graph.facebook.com/v21.0"
    TELEGRAM_API_BASE: str = "https://api.telegram.org"
    CHANNEL_TIMEOUT_SECONDS: float = 10.0
    CHANNEL_RETRY_ATTEMPTS: int = 2

    FAILED_REASON_MAX_LENGTH: int = 500
    BULK_IMPORT_MAX_ROWS: int = 1000
    NOTIFICATION_DEDUP_ENABLED: bool = False

    NOTIFICATIONS_CRON_HOUR: int = 1
    AUTO_RENEWALS_CRON_HOUR: int = 2
    END_EXPIRED_CRON_HOUR: int = 3
    CANCEL_UNPAID_CRON_HOUR: int = 4

    class Config:
        env_file = ".env"
        extra = "ignore"
        case_sensitive = False


settings = Settings()

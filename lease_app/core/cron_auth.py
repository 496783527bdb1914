import logging
import secrets

from fastapi import Header, HTTPException

from .settings import settings

logger = logging.getLogger(__name__)


async def verify_cron_secret(authorization: str | None = Header(default=None)):
    expected = settings.CRON_SECRET
    if not expected:
        logger.error("CRON_SECRET is not configured; refusing scheduler call")
        raise HTTPException(status_code=500, detail="Cron secret not configured")

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(token, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")

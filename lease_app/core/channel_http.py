import logging
from contextlib import asynccontextmanager
from typing import Any, Dict

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def channel_client(client: httpx.AsyncClient | None = None):
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=settings.CHANNEL_TIMEOUT_SECONDS) as owned:
        yield owned


@retry(
    stop=stop_after_attempt(settings.CHANNEL_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    retry=retry_if_exception_type(httpx.TransportError),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def post_json(
    client: httpx.AsyncClient,
    url: str,
    payload: Dict[str, Any],
    headers: Dict[str, str] | None = None,
) -> httpx.Response:
    return await client.post(url, json=payload, headers=headers)


def response_json(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}

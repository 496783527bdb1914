import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ItemOutcome(Generic[T]):
    key: Any
    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    exception: Optional[BaseException] = None


def error_message(exc: BaseException) -> str:
    message = getattr(exc, "message", None) or str(exc)
    return message or exc.__class__.__name__


async def run_isolated(
    key: Any,
    func: Callable[..., Awaitable[T]],
    *args,
    **kwargs,
) -> ItemOutcome[T]:
    """Run one batch item, turning any exception into a failed outcome.

    Batch loops (renewals, notification ticks, bulk import, expiry jobs) call
    this once per item so that one bad item never aborts its siblings.
    """
    try:
        value = await func(*args, **kwargs)
    except Exception as e:
        logger.exception(f"Batch item {key} failed: {e}")
        return ItemOutcome(key=key, success=False, error=error_message(e), exception=e)
    return ItemOutcome(key=key, success=True, value=value)

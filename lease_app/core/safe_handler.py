import logging
from functools import wraps

from fastapi import HTTPException, Request

from .errors import ConflictError, LeaseEngineError, NotFoundError, ValidationError
from .friendly_msg import get_friendly_message

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
)


def status_for(error: LeaseEngineError) -> int | None:
    for error_cls, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_cls):
            return status_code
    return None


def _describe(request: Request | None) -> str:
    if not request:
        return ""
    client_ip = request.client.host if request.client else "unknown"
    trace_id = request.headers.get("X-Request-ID", "none")
    return f"TraceID={trace_id} | Path: {request.url.path} | Client: {client_ip}"


def safe_handler(func):
    @wraps(func)
    async def wrapper(*args, **kwargs):
        request: Request | None = None
        for arg in list(args) + list(kwargs.values()):
            if isinstance(arg, Request):
                request = arg
                break

        try:
            return await func(*args, **kwargs)
        except HTTPException as e:
            logger.warning(f"[HTTPException] {_describe(request)} | {e.status_code}: {e.detail}")
            raise
        except LeaseEngineError as e:
            status_code = status_for(e)
            if status_code is None:
                logger.error(
                    f"[Engine Error] in {func.__name__} | {_describe(request)} | {e}",
                    exc_info=True,
                )
                raise HTTPException(status_code=500, detail=get_friendly_message(e))
            logger.warning(f"[{type(e).__name__}] {_describe(request)} | {e.message}")
            raise HTTPException(status_code=status_code, detail=e.as_row_error())
        except Exception as e:
            logger.error(
                f"[Unhandled Error] in {func.__name__} | {_describe(request)} | Error: {e}",
                exc_info=True,
            )
            raise HTTPException(status_code=500, detail=get_friendly_message(e))

    return wrapper

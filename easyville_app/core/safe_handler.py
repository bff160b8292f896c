import logging
from functools import wraps

from fastapi import HTTPException, Request

from .errors import AppError
from .friendly_msg import get_friendly_message

logger = logging.getLogger(__name__)


def _find_request(args, kwargs) -> Request | None:
    for arg in list(args) + list(kwargs.values()):
        if isinstance(arg, Request):
            return arg
    return None


def _describe(request: Request | None) -> str:
    if request is None:
        return "no request"
    client_ip = request.client.host if request.client else "unknown"
    trace_id = request.headers.get("X-Request-ID", "none")
    return f"TraceID={trace_id} | {request.method} {request.url.path} from {client_ip}"


def safe_handler(func):
    """Route wrapper: business errors pass through with a warning, anything
    unexpected becomes a 500 with a friendly message."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except AppError as e:
            logger.warning(
                "[%s] in %s: %s %s - %s",
                type(e).__name__,
                func.__name__,
                e.status_code,
                e.reason,
                e.message,
            )
            raise
        except HTTPException as e:
            logger.warning(
                "[HTTPException] %s | %s: %s",
                _describe(_find_request(args, kwargs)),
                e.status_code,
                e.detail,
            )
            raise
        except Exception as e:
            logger.error(
                "[Unhandled Error] in %s | %s | Error: %s",
                func.__name__,
                _describe(_find_request(args, kwargs)),
                e,
                exc_info=True,
            )
            raise HTTPException(status_code=500, detail=get_friendly_message(e))

    return wrapper

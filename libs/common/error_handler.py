"""Consistent JSON error responses for domain exceptions.

Domain errors carry ``message`` and ``status_code``; they render as
``{"detail": message}`` like ``HTTPException`` does.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from libs.common.logging import get_logger

logger = get_logger(__name__)


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code = getattr(exc, "status_code", 400)
    message = getattr(exc, "message", str(exc))
    if status_code >= 500:
        logger.error(
            "%s on %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            message,
        )
    return JSONResponse(status_code=status_code, content={"detail": message})


def add_exception_handlers(app: FastAPI, *error_classes: type[Exception]) -> None:
    """Render each of ``error_classes`` (and subclasses) through the handler."""
    for error_cls in error_classes:
        app.add_exception_handler(error_cls, domain_error_handler)

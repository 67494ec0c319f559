"""Shared exception handlers for consistent JSON error responses.

Domain errors subclass ``ServiceError`` and carry a machine-readable code, an
HTTP status and a structured context. ``add_exception_handlers`` maps them onto
``{"success": false, "error": <code>, "detail": <message>, ...context}``.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from starlette.responses import JSONResponse

from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)


class ServiceError(Exception):
    """Base class for typed domain errors surfaced to API callers."""

    code: str = "service_error"
    status_code: int = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": False,
            "error": self.code,
            "detail": self.message,
        }
        body.update(self.context)
        return body


def _with_request_id(body: dict[str, Any]) -> dict[str, Any]:
    request_id: Optional[str] = get_request_id()
    if request_id:
        body["request_id"] = request_id
    return body


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(_with_request_id(exc.to_dict())),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=500,
        content=_with_request_id(
            {
                "success": False,
                "error": "internal_error",
                "detail": "Internal server error",
            }
        ),
    )


def add_exception_handlers(app: FastAPI) -> None:
    """Register the shared handlers. HTTPException keeps FastAPI's own shape."""
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

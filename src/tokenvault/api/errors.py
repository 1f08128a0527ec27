"""Error → HTTP response mapping.

Learn: this is the ONLY place service errors become JSON. Every failure
leaves the API as

    {"success": false, "error": "<msg>", "errors": [{"msg": "<msg>"}], "data": null}

Service messages are passed through verbatim. If that ever needs to be
tightened (e.g. to hide internals), it changes here and nowhere else.

Statuses come from the error class (tokenvault.errors). A route whose
contract answers differently (most /auth routes answer 400) wraps its
body in reraise_as(400). Configuration faults always stay 500, and a
ValidationError keeps its field details. Request-body validation is
rendered as a ValidationError too, so every 400 has one shape.
"""

from contextlib import contextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tokenvault.errors import (
    AuthenticationError,
    ConfigurationError,
    ServiceError,
    ValidationError,
)

logger = structlog.get_logger()


class ApiError(Exception):
    """A failure with an explicit HTTP status chosen by a route."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


@contextmanager
def reraise_as(status_code: int):
    """Re-raise service errors inside the block with a route-specific status."""
    try:
        yield
    except (ConfigurationError, ValidationError):
        raise
    except ServiceError as e:
        raise ApiError(status_code, e.message) from e


def error_body(message: str, errors: Optional[list] = None) -> dict:
    return {
        "success": False,
        "error": message,
        "errors": errors if errors is not None else [{"msg": message}],
        "data": None,
    }


async def _service_error(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request.failed", error=exc.message, path=request.url.path)
    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, getattr(exc, "errors", None)),
        headers=headers,
    )


async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
            "msg": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return await _service_error(request, ValidationError("Validation failed", errors))


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, _service_error)
    app.add_exception_handler(ApiError, _api_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(StarletteHTTPException, _http_error)

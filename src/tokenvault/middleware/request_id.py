"""Request correlation for TokenVault logs.

Learn: token events (token.issued, token.rotated, auth.login_failed...)
are logged deep inside the service layer, far from the request. Binding
request_id, method and path into structlog's contextvars here means every
one of those entries can be traced back to the HTTP call that caused it
without passing the request around.

A caller-supplied X-Request-ID is honoured so a client (or the
`tokenvault` CLI behind a proxy) can follow its own id through the logs.
The id is echoed back on every response, errors included.
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a per-request id into the log context and echo it back."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex

        # contextvars are per task; clear anything a previous request left
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response: Response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

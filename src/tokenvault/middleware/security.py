"""Response hardening for an API whose payloads are credentials.

Learn: signup, login and rotate return a bearer token in the response
body, and a bearer token never expires here. A copy kept by a browser
cache or a shared proxy is a live credential, so everything under
/api/v1/auth is marked no-store. The remaining headers are the usual
baseline for a JSON API that is never meant to be framed or sniffed:

    nosniff         → JSON is never reinterpreted as HTML or script
    DENY            → no page may frame an API response
    no-referrer     → URLs (which may carry ids) never leak onward
    HSTS            → only sent when the request itself came over HTTPS
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

AUTH_PREFIX = "/api/v1/auth"

BASELINE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}

NO_STORE_HEADERS = {
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
}

HSTS = "max-age=31536000; includeSubDomains"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Baseline headers everywhere, no-store on token-bearing routes."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers.update(BASELINE_HEADERS)
        if request.url.path.startswith(AUTH_PREFIX):
            response.headers.update(NO_STORE_HEADERS)
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = HSTS
        return response

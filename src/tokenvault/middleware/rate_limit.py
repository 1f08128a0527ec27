"""Rate limiting middleware — Redis-based fixed window per minute.

Learn: Each IP gets a counter key like "tokenvault:rl:{ip}:{bucket}:{minute}".
signup and login share a much stricter "auth" bucket to slow down
credential stuffing; reads are never counted, only writes.

Gracefully skips rate limiting if Redis is unavailable (e.g., in tests).
"""

import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from tokenvault.db.redis_client import get_redis

AUTH_PATHS = ("/api/v1/auth/signup", "/api/v1/auth/login")
WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based rate limiting per IP per minute on write endpoints."""

    def __init__(self, app, default_rpm: int = 100, auth_rpm: int = 5):
        super().__init__(app)
        self.default_rpm = default_rpm
        self.auth_rpm = auth_rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method not in WRITE_METHODS:
            return await call_next(request)

        # Try to get Redis — skip rate limiting if unavailable
        try:
            redis = get_redis()
        except RuntimeError:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        is_auth = request.url.path.startswith(AUTH_PATHS)
        rpm = self.auth_rpm if is_auth else self.default_rpm

        window = int(time.time() // 60)
        bucket = "auth" if is_auth else "api"
        key = f"tokenvault:rl:{client_ip}:{bucket}:{window}"

        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)  # 2-min TTL for safety
        except Exception:
            # Redis error — don't block the request
            return await call_next(request)

        if count > rpm:
            message = (
                "Too many authentication attempts, please try again later."
                if is_auth
                else "Too many requests from this IP, please try again later."
            )
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": message,
                    "errors": [{"msg": message}],
                    "data": None,
                },
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response

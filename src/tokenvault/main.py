"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis pool, DB engine).
Middleware, CORS, error handlers and routers are all registered here.

Served by uvicorn: uvicorn tokenvault.main:app
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tokenvault import __version__
from tokenvault.api import api_router
from tokenvault.api.errors import register_error_handlers
from tokenvault.config import settings

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: FastAPI lifespan replaces on_event("startup") / on_event("shutdown").
    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "tokenvault.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    if not settings.jwt_secret:
        # Not fatal at boot: token operations answer 500 until it is set.
        logger.warning("tokenvault.jwt_secret_missing", env_var="TOKENVAULT_JWT_SECRET")

    from tokenvault.db.redis_client import close_redis, init_redis
    try:
        await init_redis()
        logger.info("tokenvault.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("tokenvault.redis_unavailable", error=str(e))
        # Redis is optional — only rate limiting depends on it

    yield

    logger.info("tokenvault.shutdown")
    await close_redis()

    from tokenvault.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="TokenVault",
        description="Bearer token issuance, rotation and revocation",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from tokenvault.middleware.rate_limit import RateLimitMiddleware
    from tokenvault.middleware.request_id import RequestIdMiddleware
    from tokenvault.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: tokenvault.main:app)
app = create_app()

"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: auth is applied per route inside the auth router (require_identity),
not at include_router level, because signup/login and the help page are
open while the rest of /auth is not.
"""

from fastapi import APIRouter

from tokenvault.api.auth import router as auth_router
from tokenvault.api.health import router as health_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

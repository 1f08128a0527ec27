"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to turn the
Authorization header into an identity for the current request.

Two variants share one pipeline (parse header → verify signature →
liveness check in the token store):

1. require_identity  — any failure is a 401 and the handler never runs
2. optional_identity — any failure yields Anonymous() and the handler runs

Either way the identity is also bound to request.state.identity for the
rest of that request. It is never persisted.
"""

import uuid
from dataclasses import dataclass
from typing import Optional, Union

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tokenvault.db.engine import get_db
from tokenvault.errors import AuthenticationError
from tokenvault.services.token_service import TokenService

NO_TOKEN = "unauthorized - no token provided"
BAD_FORMAT = "unauthorized - invalid token format"
BAD_TOKEN = "unauthorized - invalid token"
REVOKED = "unauthorized - token has been revoked"


@dataclass(frozen=True)
class Anonymous:
    """A caller with no usable credentials."""

    @property
    def is_authenticated(self) -> bool:
        return False


@dataclass(frozen=True)
class Authenticated:
    """A caller holding a live, correctly signed token."""

    user_id: uuid.UUID
    email: str
    token: str

    @property
    def is_authenticated(self) -> bool:
        return True


Identity = Union[Anonymous, Authenticated]


def _strict_bearer(header: Optional[str]) -> str:
    """Exactly "Bearer <token>" or an AuthenticationError."""
    if not header:
        raise AuthenticationError(NO_TOKEN)
    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise AuthenticationError(BAD_FORMAT)
    return parts[1]


def _lenient_bearer(header: str) -> str:
    """Accept "Bearer <token>", "<scheme> <token>", or a bare token."""
    if header.startswith("Bearer "):
        return header[7:]
    parts = header.split(" ")
    if len(parts) == 2:
        return parts[1]
    return header


async def _resolve(token: str, svc: TokenService) -> Authenticated:
    """Signature first, then liveness. Raises AuthenticationError."""
    try:
        email = svc.verify_signature(token)
    except AuthenticationError:
        raise AuthenticationError(BAD_TOKEN)

    owner = await svc.authenticate(token)
    if owner is None:
        raise AuthenticationError(REVOKED)
    return Authenticated(user_id=owner.user_id, email=email, token=token)


async def require_identity(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Authenticated:
    """Hard auth: 401 unless the request carries a live bearer token."""
    token = _strict_bearer(request.headers.get("Authorization"))
    identity = await _resolve(token, TokenService(db))
    request.state.identity = identity
    return identity


async def optional_identity(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Identity:
    """Soft auth: Anonymous() instead of an error on any auth failure.

    A missing signing secret still propagates — that is a server fault,
    not an unauthenticated caller.
    """
    identity: Identity = Anonymous()
    header = request.headers.get("Authorization")
    if header:
        try:
            identity = await _resolve(_lenient_bearer(header), TokenService(db))
        except AuthenticationError:
            identity = Anonymous()
    request.state.identity = identity
    return identity

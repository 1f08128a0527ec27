"""Auth API — signup, login, profile, and token lifecycle.

Learn: Routes for account and token management:
- GET  /auth, /auth/help → endpoint directory
- POST /auth/signup      → create account, returns first token
- POST /auth/login       → email/password → new token
- GET  /auth/me          → current user info
- PUT  /auth/update      → change name and/or password
- POST /auth/rotate      → new token for the current one (old revoked by default)
- GET  /auth/tokens      → active tokens, truncated
- POST /auth/revoke      → revoke one token (current one by default)
- POST /auth/revoke-all  → revoke every token of the current user

Routes handle HTTP concerns only. TokenService does the work, and
tokenvault.api.errors turns its exceptions into responses.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tokenvault.api.errors import ApiError, reraise_as
from tokenvault.auth.dependencies import Authenticated, require_identity
from tokenvault.db.engine import get_db
from tokenvault.schemas.auth import (
    AuthData,
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RevokeRequest,
    RotateData,
    RotateRequest,
    RotateResponse,
    SignupRequest,
    TokenList,
    TokenListResponse,
    TokenRead,
    UpdateRequest,
    UserData,
    UserRead,
    UserResponse,
)
from tokenvault.services.token_service import TokenService

router = APIRouter(prefix="/auth")


def _svc(db: AsyncSession = Depends(get_db)) -> TokenService:
    return TokenService(db)


# ─── Directory ──────────────────────────────────────────


@router.get("")
@router.get("/help")
async def auth_help(request: Request):
    """Describe the auth endpoints and how tokens behave."""
    base = str(request.url.replace(query="")).rstrip("/")
    if base.endswith("/help"):
        base = base[: -len("/help")]
    return {
        "title": "Authentication API",
        "endpoints": {
            "signup": f"{base}/signup",
            "login": f"{base}/login",
            "info": f"{base}/me",
            "update": f"{base}/update",
            "rotate": f"{base}/rotate",
            "tokens": f"{base}/tokens",
            "revoke": f"{base}/revoke",
            "revokeAll": f"{base}/revoke-all",
        },
        "token_info": {
            "how_to_get": "Login or signup to receive a JWT token",
            "usage": 'Include token in Authorization header as "Bearer YOUR_TOKEN"',
            "expiry": "Never expires - revoke or rotate to invalidate",
            "format": "JWT (HS256), payload {email, iat}",
        },
    }


# ─── Signup / Login ─────────────────────────────────────


@router.post("/signup", response_model=AuthResponse)
async def signup(body: SignupRequest, svc: TokenService = Depends(_svc)):
    """Create an account and return its first token."""
    with reraise_as(400):
        result = await svc.signup(body.email, body.password, body.name)
    return AuthResponse(
        data=AuthData(token=result.token, user=UserRead.model_validate(result.user))
    )


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, svc: TokenService = Depends(_svc)):
    """Email/password → new login token. 401 on any mismatch."""
    result = await svc.login(body.email, body.password)
    return AuthResponse(
        data=AuthData(token=result.token, user=UserRead.model_validate(result.user))
    )


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=UserResponse)
async def get_me(
    identity: Authenticated = Depends(require_identity),
    svc: TokenService = Depends(_svc),
):
    """Current user's info. 404 if the account vanished under a live token."""
    user = await svc.get_user(identity.email)
    return UserResponse(data=UserData(user=UserRead.model_validate(user)))


@router.put("/update", response_model=UserResponse)
async def update_me(
    body: UpdateRequest,
    identity: Authenticated = Depends(require_identity),
    svc: TokenService = Depends(_svc),
):
    """Change display name and/or password. Only provided fields change."""
    with reraise_as(400):
        user = await svc.update_profile(
            identity.email, name=body.name, password=body.password
        )
    return UserResponse(data=UserData(user=UserRead.model_validate(user)))


# ─── Token lifecycle ────────────────────────────────────


@router.post("/rotate", response_model=RotateResponse)
async def rotate(
    body: Optional[RotateRequest] = None,
    identity: Authenticated = Depends(require_identity),
    svc: TokenService = Depends(_svc),
):
    """Swap the presented token for a new one.

    Learn: revokeOld defaults to true. Two concurrent rotations of the
    same token: one gets the new token, the other a 400.
    """
    revoke_old = body.revoke_old if body else True
    with reraise_as(400):
        result = await svc.rotate(identity.token, revoke_old=revoke_old)
    return RotateResponse(
        data=RotateData(
            token=result.token,
            user=UserRead.model_validate(result.user),
            revoked_old_token=revoke_old,
        )
    )


@router.get("/tokens", response_model=TokenListResponse)
async def list_tokens(
    identity: Authenticated = Depends(require_identity),
    svc: TokenService = Depends(_svc),
):
    """Active tokens of the current user, truncated for display."""
    with reraise_as(400):
        summaries = await svc.list_active_tokens(identity.email)
    tokens = [TokenRead.model_validate(s) for s in summaries]
    return TokenListResponse(data=TokenList(tokens=tokens, count=len(tokens)))


@router.post("/revoke", response_model=MessageResponse)
async def revoke(
    body: Optional[RevokeRequest] = None,
    identity: Authenticated = Depends(require_identity),
    svc: TokenService = Depends(_svc),
):
    """Revoke the token in the body, or the current token if none is given.

    A body that names a blank token is rejected rather than read as
    "revoke my current token".
    """
    token = identity.token
    if body is not None and body.token is not None:
        if not body.token.strip():
            raise ApiError(400, "No token to revoke")
        token = body.token
    with reraise_as(400):
        await svc.revoke(token)
    return MessageResponse(message="Token revoked successfully")


@router.post("/revoke-all", response_model=MessageResponse)
async def revoke_all(
    identity: Authenticated = Depends(require_identity),
    svc: TokenService = Depends(_svc),
):
    """Revoke every active token of the current user, this one included."""
    with reraise_as(400):
        count = await svc.revoke_all(identity.email)
    return MessageResponse(message=f"Revoked {count} tokens")

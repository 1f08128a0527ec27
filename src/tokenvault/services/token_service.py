"""Token service — issue, verify, rotate and revoke bearer tokens.

Learn: Service layer separates business logic from HTTP routing.
Routes call the service, the service calls the two stores, and the
service owns the transaction: each public operation either commits
everything it did or rolls all of it back.

Token lifecycle:  ACTIVE → REVOKED  (terminal)

Two independent checks gate every token:
1. verify_signature — cryptography only, no database
2. is_active        — the persisted liveness record

A valid signature never overrides a revoked row.

Rotation (the one race-sensitive path):
  verify signature → CLAIM old token (conditional UPDATE) → resolve user
  → issue new token → link old.rotated_to → commit
The claim is a compare-and-set, so two concurrent rotations of the same
token produce exactly one new token; the loser gets AuthenticationError.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from tokenvault.auth.jwt import create_token, verify_token
from tokenvault.auth.password import burn_verification
from tokenvault.config import settings
from tokenvault.db.models import User
from tokenvault.errors import AuthenticationError, NotFoundError
from tokenvault.services.credential_store import CredentialStore
from tokenvault.services.token_store import TokenStore

logger = structlog.get_logger()

SIGNUP_TOKEN = "Signup Token"
LOGIN_TOKEN = "Login Token"
ROTATED_TOKEN = "Rotated Token"

INVALID_CREDENTIALS = "Invalid credentials"
TOKEN_NOT_ACTIVE = "Token is not active or does not exist"


def preview(token: str) -> str:
    """Shortened token for listings and logs — never the full secret."""
    return token[: settings.token_preview_length] + "..."


@dataclass
class AuthResult:
    token: str
    user: User


@dataclass
class TokenSummary:
    token: str  # truncated preview
    description: str
    is_active: bool
    created_at: datetime
    last_used_at: datetime


@dataclass
class TokenIdentity:
    """Who a live token belongs to, as recorded on its row."""

    user_id: uuid.UUID
    email: str


class TokenService:
    """Issues and manages bearer tokens for user accounts."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.credentials = CredentialStore(db)
        self.tokens = TokenStore(db)

    # ─── Issuance ────────────────────────────────────────

    async def issue(
        self,
        user: User,
        description: str,
        rotated_from: Optional[str] = None,
    ) -> str:
        """Sign a token for the user and persist its active row.

        Does not commit; callers fold this into their own transaction.
        """
        token = create_token(user.email)
        await self.tokens.add(
            token=token,
            user_id=user.id,
            email=user.email,
            description=description,
            rotated_from=rotated_from,
        )
        logger.info(
            "token.issued",
            user_id=str(user.id),
            description=description,
            token=preview(token),
        )
        return token

    async def signup(self, email: str, password: str, name: str) -> AuthResult:
        """Create an account and its first token, atomically."""
        try:
            user = await self.credentials.create_user(email, password, name)
            token = await self.issue(user, SIGNUP_TOKEN)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        logger.info("auth.signup", user_id=str(user.id))
        return AuthResult(token=token, user=user)

    async def login(self, email: str, password: str) -> AuthResult:
        """Check credentials and issue a login token.

        Unknown email and wrong password fail identically.
        """
        user = await self.credentials.find_by_email(email)
        if not user:
            burn_verification(password)
            logger.info("auth.login_failed", reason="unknown_email")
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not self.credentials.verify_password(user, password):
            logger.info("auth.login_failed", reason="bad_password", user_id=str(user.id))
            raise AuthenticationError(INVALID_CREDENTIALS)

        try:
            token = await self.issue(user, LOGIN_TOKEN)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return AuthResult(token=token, user=user)

    # ─── Verification ────────────────────────────────────

    def verify_signature(self, token: str) -> str:
        """Cryptographic check only. Returns the email in the payload."""
        return verify_token(token)

    async def authenticate(self, token: str) -> Optional[TokenIdentity]:
        """Liveness check that also says who the token belongs to.

        Returns None for unknown or revoked tokens. On success
        last_used_at is written before returning.
        """
        row = await self.tokens.find_active(token)
        if row is None:
            return None
        await self.tokens.touch(row)
        await self.db.commit()
        return TokenIdentity(user_id=row.user_id, email=row.email)

    async def is_active(self, token: str) -> bool:
        return await self.authenticate(token) is not None

    # ─── Revocation ──────────────────────────────────────

    async def revoke(self, token: str) -> None:
        """Revoke one token. Unknown or already revoked is not an error."""
        revoked = await self.tokens.revoke(token)
        await self.db.commit()
        if revoked:
            logger.info("token.revoked", token=preview(token))

    async def revoke_all(self, email: str) -> int:
        """Revoke every active token of one user. Returns how many flipped."""
        user = await self.credentials.get_by_email(email)
        count = await self.tokens.revoke_all_for_user(user.id)
        await self.db.commit()
        logger.info("token.revoked_all", user_id=str(user.id), count=count)
        return count

    # ─── Rotation ────────────────────────────────────────

    async def rotate(self, old_token: str, revoke_old: bool = True) -> AuthResult:
        """Issue a replacement for old_token, optionally revoking it.

        Raises AuthenticationError for a bad signature or a token that is
        not active (including losing a concurrent rotation), NotFoundError
        if the account behind a valid token is gone. Nothing is written
        unless the whole rotation succeeds.
        """
        email = self.verify_signature(old_token)

        try:
            if revoke_old:
                if not await self.tokens.claim(old_token):
                    logger.warning(
                        "token.rotation_rejected", token=preview(old_token)
                    )
                    raise AuthenticationError(TOKEN_NOT_ACTIVE)
            elif await self.tokens.find_active(old_token) is None:
                raise AuthenticationError(TOKEN_NOT_ACTIVE)

            user = await self.credentials.get_by_email(email)

            new_token = await self.issue(
                user,
                ROTATED_TOKEN,
                rotated_from=old_token if revoke_old else None,
            )
            if revoke_old:
                await self.tokens.set_rotated_to(old_token, new_token)

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "token.rotated",
            user_id=str(user.id),
            revoked_old=revoke_old,
            old=preview(old_token),
            new=preview(new_token),
        )
        return AuthResult(token=new_token, user=user)

    # ─── Account views ───────────────────────────────────

    async def list_active_tokens(self, email: str) -> list[TokenSummary]:
        user = await self.credentials.get_by_email(email)
        rows = await self.tokens.list_active_for_user(user.id)
        return [
            TokenSummary(
                token=preview(row.token),
                description=row.description,
                is_active=row.is_active,
                created_at=row.created_at,
                last_used_at=row.last_used_at,
            )
            for row in rows
        ]

    async def get_user(self, email: str) -> User:
        return await self.credentials.get_by_email(email)

    async def update_profile(
        self,
        email: str,
        name: Optional[str] = None,
        password: Optional[str] = None,
    ) -> User:
        try:
            user = await self.credentials.update_user(email, name=name, password=password)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return user

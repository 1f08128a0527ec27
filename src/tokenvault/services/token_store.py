"""Token store — persisted liveness records for issued JWTs.

Learn: every write here is a single UPDATE with its condition in the
WHERE clause. claim() is the important one: "set inactive only if still
active" is one statement, and its rowcount tells the caller whether it
won. Two requests racing to rotate the same token cannot both see 1.

Like the credential store, nothing here commits.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tokenvault.db.models import Token


class TokenStore:
    """Repository for Token rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(
        self,
        token: str,
        user_id: uuid.UUID,
        email: str,
        description: str,
        rotated_from: Optional[str] = None,
    ) -> Token:
        row = Token(
            token=token,
            user_id=user_id,
            email=email,
            description=description,
            is_active=True,
            rotated_from=rotated_from,
        )
        self.db.add(row)
        await self.db.flush()
        return row

    async def get(self, token: str) -> Optional[Token]:
        return await self.db.get(Token, token)

    async def find_active(self, token: str) -> Optional[Token]:
        result = await self.db.execute(
            select(Token).where(Token.token == token, Token.is_active.is_(True))
        )
        return result.scalars().first()

    async def touch(self, row: Token) -> None:
        """Record a successful use."""
        row.last_used_at = datetime.now(timezone.utc)
        await self.db.flush()

    async def claim(self, token: str) -> bool:
        """Atomically deactivate an active token.

        Returns True only for the caller whose UPDATE flipped the flag.
        """
        result = await self.db.execute(
            update(Token)
            .where(Token.token == token, Token.is_active.is_(True))
            .values(is_active=False, revoked_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def set_rotated_to(self, token: str, new_token: str) -> None:
        await self.db.execute(
            update(Token)
            .where(Token.token == token)
            .values(rotated_to=new_token)
            .execution_options(synchronize_session=False)
        )

    async def revoke(self, token: str) -> bool:
        """Revoke one token. Already revoked or unknown is a no-op."""
        return await self.claim(token)

    async def revoke_all_for_user(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            update(Token)
            .where(Token.user_id == user_id, Token.is_active.is_(True))
            .values(is_active=False, revoked_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def list_active_for_user(self, user_id: uuid.UUID) -> list[Token]:
        result = await self.db.execute(
            select(Token)
            .where(Token.user_id == user_id, Token.is_active.is_(True))
            .order_by(Token.created_at.desc())
        )
        return list(result.scalars().all())

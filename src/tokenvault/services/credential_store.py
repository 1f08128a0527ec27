"""Credential store — User records and password checks.

Learn: the store flushes but never commits. The token service owns the
transaction boundary, so "create user + issue first token" lands in the
database together or not at all.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tokenvault.auth.password import hash_password, verify_password
from tokenvault.db.models import User
from tokenvault.errors import ConflictError, NotFoundError


class CredentialStore:
    """Repository for User rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_user(self, email: str, password: str, name: str) -> User:
        """Insert a user with a hashed password.

        Raises ConflictError if the email is already taken. The unique
        constraint backs up the pre-check when two signups race.
        """
        if await self.find_by_email(email):
            raise ConflictError("Email already in use")

        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password),
        )
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Email already in use")
        return user

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def get_by_email(self, email: str) -> User:
        user = await self.find_by_email(email)
        if not user:
            raise NotFoundError("User not found")
        return user

    def verify_password(self, user: User, password: str) -> bool:
        return verify_password(password, user.password_hash)

    async def update_user(
        self,
        email: str,
        name: Optional[str] = None,
        password: Optional[str] = None,
    ) -> User:
        """Apply only the provided fields. A new password is hashed first."""
        user = await self.get_by_email(email)
        if name:
            user.name = name
        if password:
            user.password_hash = hash_password(password)
        await self.db.flush()
        return user

    async def get_user_id(self, email: str) -> uuid.UUID:
        """Resolve an email to its user id. Raises NotFoundError."""
        result = await self.db.execute(select(User.id).where(User.email == email))
        user_id = result.scalars().first()
        if user_id is None:
            raise NotFoundError("User not found")
        return user_id

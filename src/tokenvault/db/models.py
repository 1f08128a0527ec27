"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Alembic migrations mirror these definitions.

Key concepts:
- UUID primary keys for users (portable Uuid type: native on PostgreSQL,
  CHAR(32) on SQLite)
- The JWT string itself is the primary key of a token row — every lookup
  is by exact token
- Python-side defaults for timestamps so values are known right after
  flush (no refresh round-trip in async code)
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class User(Base):
    """An account that can hold bearer tokens.

    Learn: users are created by signup and mutated by profile updates.
    This subsystem never deletes them. The password is only ever stored
    as a bcrypt hash.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class Token(Base):
    """Persisted liveness record for one issued JWT.

    Learn: a JWT with a valid signature is only honoured while its row
    says is_active. Revocation flips the flag and stamps revoked_at; the
    row is never deleted. Rotation links old and new rows through
    rotated_from / rotated_to.

    user_id is authoritative; email is a readable copy taken at issuance.
    """

    __tablename__ = "tokens"
    __table_args__ = (
        Index("idx_tokens_user_active", "user_id", "is_active"),
        Index("idx_tokens_email_active", "email", "is_active"),
    )

    token: Mapped[str] = mapped_column(String(1024), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(
        String(100), nullable=False, default="API Token"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    last_used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    revoked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rotated_from: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    rotated_to: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

"""users and tokens

Learn: the whole persisted state of the service — accounts and the
liveness record of every token ever issued. Token rows are never deleted,
so the (user_id, is_active) index keeps revoke-all and the token listing
bounded to one user's live tokens.

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "tokens",
        sa.Column("token", sa.String(1024), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("description", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rotated_from", sa.String(1024), nullable=True),
        sa.Column("rotated_to", sa.String(1024), nullable=True),
    )
    op.create_index("idx_tokens_user_active", "tokens", ["user_id", "is_active"])
    op.create_index("idx_tokens_email_active", "tokens", ["email", "is_active"])


def downgrade() -> None:
    op.drop_index("idx_tokens_email_active", table_name="tokens")
    op.drop_index("idx_tokens_user_active", table_name="tokens")
    op.drop_table("tokens")
    op.drop_table("users")

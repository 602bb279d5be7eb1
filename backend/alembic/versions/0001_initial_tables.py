"""Create secrets table

Revision ID: 0001
Revises:
Create Date: 2026-09-28

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "secrets",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("ciphertext", sa.LargeBinary, nullable=False),
        sa.Column("nonce", sa.LargeBinary(12), nullable=False),
        sa.Column("view_limit", sa.Integer, nullable=False, server_default="1"),
        sa.Column("view_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("expires_at", sa.DateTime, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.CheckConstraint("view_limit >= 1", name="ck_secrets_view_limit_positive"),
        sa.CheckConstraint("view_count >= 0", name="ck_secrets_view_count_non_negative"),
    )


def downgrade() -> None:
    op.drop_table("secrets")

"""Index secrets.expires_at for the expiry sweep

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-05

"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: str | None = "0001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_index("ix_secrets_expires_at", "secrets", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_secrets_expires_at", table_name="secrets")

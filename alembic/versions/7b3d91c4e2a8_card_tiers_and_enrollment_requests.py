"""card tiers and enrollment requests

Revision ID: 7b3d91c4e2a8
Revises: 1f4e2a9b7c10
Create Date: 2026-10-18 15:40:07.512330

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '7b3d91c4e2a8'
down_revision: Union[str, Sequence[str], None] = '1f4e2a9b7c10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid(name, *args, **kwargs):
    return sa.Column(name, postgresql.UUID(as_uuid=True), *args, **kwargs)


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    columns = {c["name"] for c in inspector.get_columns("point_accounts")}
    if "tier" not in columns:
        op.add_column(
            "point_accounts",
            sa.Column("tier", sa.String(length=20), nullable=False, server_default="STANDARD"),
        )

    if not inspector.has_table("enrollment_requests"):
        op.create_table(
            "enrollment_requests",
            _uuid("id", primary_key=True, nullable=False),
            _uuid("customer_id", sa.ForeignKey("accounts.id"), nullable=False),
            _uuid("program_id", sa.ForeignKey("programs.id"), nullable=False),
            _uuid("business_id", sa.ForeignKey("accounts.id"), nullable=False),
            _uuid("requested_by", sa.ForeignKey("accounts.id"), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=False),
            sa.Column("responded_at", sa.TIMESTAMP(), nullable=True),
        )
        op.create_index(
            "uq_enrollment_requests_pending_customer_program",
            "enrollment_requests",
            ["customer_id", "program_id"],
            unique=True,
            postgresql_where=sa.text("status = 'pending'"),
            sqlite_where=sa.text("status = 'pending'"),
        )


def downgrade() -> None:
    """Downgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if inspector.has_table("enrollment_requests"):
        op.drop_table("enrollment_requests")

    columns = {c["name"] for c in inspector.get_columns("point_accounts")}
    if "tier" in columns:
        op.drop_column("point_accounts", "tier")

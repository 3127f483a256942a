"""initial loyalty ledger

Revision ID: 1f4e2a9b7c10
Revises: 
Create Date: 2026-10-18 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '1f4e2a9b7c10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid(name, *args, **kwargs):
    return sa.Column(name, postgresql.UUID(as_uuid=True), *args, **kwargs)


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("accounts"):
        op.create_table(
            "accounts",
            _uuid("id", primary_key=True, nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=True),
            _uuid("business_id", sa.ForeignKey("accounts.id"), nullable=True),
            sa.Column("permissions", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
            sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
        )
        op.create_index("ix_accounts_business_role", "accounts", ["business_id", "role"])

    if not inspector.has_table("programs"):
        op.create_table(
            "programs",
            _uuid("id", primary_key=True, nullable=False),
            _uuid("business_id", sa.ForeignKey("accounts.id"), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.String(length=1000), nullable=True),
            sa.Column("type", sa.String(length=20), nullable=False, server_default="points"),
            sa.Column("point_value", sa.Numeric(10, 4), nullable=False, server_default="1"),
            sa.Column("expiration_days", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("welcome_points", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("deleted_at", sa.TIMESTAMP(), nullable=True),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
            sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
        )
        op.create_index("ix_programs_business_status", "programs", ["business_id", "status"])

    if not inspector.has_table("reward_tiers"):
        op.create_table(
            "reward_tiers",
            _uuid("id", primary_key=True, nullable=False),
            _uuid("program_id", sa.ForeignKey("programs.id"), nullable=False),
            sa.Column("threshold", sa.Integer(), nullable=False),
            sa.Column("reward", sa.String(length=255), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
        )

    if not inspector.has_table("enrollments"):
        op.create_table(
            "enrollments",
            _uuid("id", primary_key=True, nullable=False),
            _uuid("customer_id", sa.ForeignKey("accounts.id"), nullable=False),
            _uuid("program_id", sa.ForeignKey("programs.id"), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("enrolled_at", sa.TIMESTAMP(), nullable=False),
            sa.Column("cancelled_at", sa.TIMESTAMP(), nullable=True),
        )
        op.create_index(
            "uq_enrollments_active_customer_program",
            "enrollments",
            ["customer_id", "program_id"],
            unique=True,
            postgresql_where=sa.text("status = 'active'"),
            sqlite_where=sa.text("status = 'active'"),
        )

    if not inspector.has_table("promo_codes"):
        op.create_table(
            "promo_codes",
            _uuid("id", primary_key=True, nullable=False),
            _uuid("business_id", sa.ForeignKey("accounts.id"), nullable=False),
            _uuid("program_id", sa.ForeignKey("programs.id"), nullable=True),
            sa.Column("code", sa.String(length=50), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("type", sa.String(length=20), nullable=False, server_default="points"),
            sa.Column("value", sa.Numeric(12, 2), nullable=False),
            sa.Column("unit", sa.String(length=20), nullable=False, server_default="points"),
            sa.Column("expires_at", sa.TIMESTAMP(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            _uuid("redeemed_by", sa.ForeignKey("accounts.id"), nullable=True),
            sa.Column("redeemed_at", sa.TIMESTAMP(), nullable=True),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
            sa.UniqueConstraint("business_id", "code", name="uq_promo_codes_business_code"),
        )

    if not inspector.has_table("point_accounts"):
        op.create_table(
            "point_accounts",
            _uuid("id", primary_key=True, nullable=False),
            _uuid("customer_id", sa.ForeignKey("accounts.id"), nullable=False),
            _uuid("program_id", sa.ForeignKey("programs.id"), nullable=False),
            sa.Column("balance", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("lifetime_points", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("last_sequence", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
            sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
            sa.UniqueConstraint("customer_id", "program_id", name="uq_point_accounts_customer_program"),
            sa.CheckConstraint("balance >= 0", name="ck_point_accounts_balance_non_negative"),
        )

    if not inspector.has_table("ledger_entries"):
        op.create_table(
            "ledger_entries",
            _uuid("id", primary_key=True, nullable=False),
            _uuid("customer_id", sa.ForeignKey("accounts.id"), nullable=False),
            _uuid("program_id", sa.ForeignKey("programs.id"), nullable=False),
            sa.Column("sequence", sa.Integer(), nullable=False),
            sa.Column("delta", sa.Integer(), nullable=False),
            sa.Column("source", sa.String(length=20), nullable=False),
            sa.Column("balance_after", sa.Integer(), nullable=False),
            sa.Column("description", sa.String(length=500), nullable=True),
            _uuid("reward_tier_id", sa.ForeignKey("reward_tiers.id"), nullable=True),
            _uuid("promo_code_id", sa.ForeignKey("promo_codes.id"), nullable=True),
            sa.Column("created_at", sa.TIMESTAMP(), nullable=False),
            sa.UniqueConstraint("customer_id", "program_id", "sequence", name="uq_ledger_entries_pair_sequence"),
        )

    if not inspector.has_table("notifications"):
        op.create_table(
            "notifications",
            _uuid("id", primary_key=True, nullable=False),
            _uuid("recipient_id", nullable=False),
            _uuid("business_id", nullable=True),
            sa.Column("kind", sa.String(length=50), nullable=False),
            sa.Column("payload", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.TIMESTAMP(), nullable=False),
            sa.Column("dispatched_at", sa.TIMESTAMP(), nullable=True),
        )
        op.create_index("ix_notifications_pending", "notifications", ["dispatched_at", "created_at"])


def downgrade() -> None:
    """Downgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    for table in (
        "notifications",
        "ledger_entries",
        "point_accounts",
        "promo_codes",
        "enrollments",
        "reward_tiers",
        "programs",
        "accounts",
    ):
        if inspector.has_table(table):
            op.drop_table(table)

import uuid
from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, TIMESTAMP, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from app.db import Base


class PointAccount(Base):
    """Cached balance for one (customer, program) pair.

    ``balance`` always equals the sum of the pair's ledger entry deltas;
    ``last_sequence`` is the sequence number of the newest entry.
    """

    __tablename__ = "point_accounts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    customer_id = Column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False)
    program_id = Column(UUID(as_uuid=True), ForeignKey("programs.id"), nullable=False)

    balance = Column(Integer, nullable=False, default=0)
    lifetime_points = Column(Integer, nullable=False, default=0)
    last_sequence = Column(Integer, nullable=False, default=0)

    # card tier from lifetime points: STANDARD / SILVER / GOLD / PLATINUM
    tier = Column(String(20), nullable=False, default="STANDARD")

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("customer_id", "program_id", name="uq_point_accounts_customer_program"),
        CheckConstraint("balance >= 0", name="ck_point_accounts_balance_non_negative"),
    )

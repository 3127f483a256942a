import uuid
from sqlalchemy import Column, ForeignKey, Integer, String, TIMESTAMP, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from app.db import Base


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    customer_id = Column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False)
    program_id = Column(UUID(as_uuid=True), ForeignKey("programs.id"), nullable=False)

    sequence = Column(Integer, nullable=False)

    delta = Column(Integer, nullable=False)
    source = Column(String(20), nullable=False)  # award / redemption / expiration / adjustment / welcome-bonus
    balance_after = Column(Integer, nullable=False)

    description = Column(String(500))

    reward_tier_id = Column(UUID(as_uuid=True), ForeignKey("reward_tiers.id"), nullable=True)
    promo_code_id = Column(UUID(as_uuid=True), ForeignKey("promo_codes.id"), nullable=True)

    created_at = Column(TIMESTAMP, nullable=False)

    __table_args__ = (
        UniqueConstraint("customer_id", "program_id", "sequence", name="uq_ledger_entries_pair_sequence"),
    )

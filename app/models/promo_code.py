import uuid
from sqlalchemy import Column, ForeignKey, Numeric, String, TIMESTAMP, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from app.db import Base


class PromoCode(Base):
    __tablename__ = "promo_codes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    business_id = Column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False)
    program_id = Column(UUID(as_uuid=True), ForeignKey("programs.id"), nullable=True)

    code = Column(String(50), nullable=False)  # stored upper-case
    name = Column(String(200), nullable=False)

    type = Column(String(20), nullable=False, default="points")  # points / discount / cashback
    value = Column(Numeric(12, 2), nullable=False)
    unit = Column(String(20), nullable=False, default="points")

    expires_at = Column(TIMESTAMP, nullable=True)

    status = Column(String(20), nullable=False, default="active")  # active / expired / consumed

    redeemed_by = Column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=True)
    redeemed_at = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, server_default=func.now())

    __table_args__ = (UniqueConstraint("business_id", "code", name="uq_promo_codes_business_code"),)

import uuid
from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String, TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db import Base


class Program(Base):
    __tablename__ = "programs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    business_id = Column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False)

    name = Column(String(200), nullable=False)
    description = Column(String(1000))

    type = Column(String(20), nullable=False, default="points")  # points / stamps / cashback

    # points granted per unit spent
    point_value = Column(Numeric(10, 4), nullable=False, default=1)

    # 0 = points never expire
    expiration_days = Column(Integer, nullable=False, default=0)

    welcome_points = Column(Integer, nullable=False, default=0)

    status = Column(String(20), nullable=False, default="active")  # active / inactive / deleted
    deleted_at = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    tiers = relationship(
        "RewardTier",
        primaryjoin="and_(RewardTier.program_id == Program.id, RewardTier.active.is_(True))",
        order_by="RewardTier.position",
        viewonly=True,
    )


class RewardTier(Base):
    __tablename__ = "reward_tiers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    program_id = Column(UUID(as_uuid=True), ForeignKey("programs.id"), nullable=False)

    threshold = Column(Integer, nullable=False)
    reward = Column(String(255), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    # retired tiers stay for historical redemptions
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(TIMESTAMP, server_default=func.now())

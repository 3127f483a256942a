import uuid
from sqlalchemy import Column, JSON, String, TIMESTAMP, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from app.db import Base


class Account(Base):
    __tablename__ = "accounts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    role = Column(String(20), nullable=False)  # customer / business / staff / admin
    name = Column(String(200), nullable=False)
    email = Column(String(255))

    # staff only: owning business account, never reassigned
    business_id = Column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=True)
    permissions = Column(JSON, nullable=True)

    status = Column(String(20), nullable=False, default="active")  # active / inactive

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

import uuid
from sqlalchemy import Column, JSON, String, TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID
from app.db import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    recipient_id = Column(UUID(as_uuid=True), nullable=False)
    business_id = Column(UUID(as_uuid=True), nullable=True)

    kind = Column(String(50), nullable=False)
    payload = Column(JSON, nullable=True)

    created_at = Column(TIMESTAMP, nullable=False)

    # set by the external dispatcher once delivered
    dispatched_at = Column(TIMESTAMP, nullable=True)

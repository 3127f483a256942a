import uuid
from sqlalchemy import Column, ForeignKey, Index, String, TIMESTAMP, text
from sqlalchemy.dialects.postgresql import UUID
from app.db import Base


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    customer_id = Column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False)
    program_id = Column(UUID(as_uuid=True), ForeignKey("programs.id"), nullable=False)

    status = Column(String(20), nullable=False, default="active")  # active / cancelled

    enrolled_at = Column(TIMESTAMP, nullable=False)
    cancelled_at = Column(TIMESTAMP, nullable=True)

    __table_args__ = (
        Index(
            "uq_enrollments_active_customer_program",
            "customer_id",
            "program_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

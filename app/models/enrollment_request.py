import uuid
from sqlalchemy import Column, ForeignKey, Index, String, TIMESTAMP, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from app.db import Base


class EnrollmentRequest(Base):
    __tablename__ = "enrollment_requests"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    customer_id = Column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False)
    program_id = Column(UUID(as_uuid=True), ForeignKey("programs.id"), nullable=False)
    business_id = Column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False)

    # owner or staff account that sent the request
    requested_by = Column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False)

    status = Column(String(20), nullable=False, default="pending")  # pending / approved / rejected

    created_at = Column(TIMESTAMP, server_default=func.now(), nullable=False)
    responded_at = Column(TIMESTAMP, nullable=True)

    __table_args__ = (
        Index(
            "uq_enrollment_requests_pending_customer_program",
            "customer_id",
            "program_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

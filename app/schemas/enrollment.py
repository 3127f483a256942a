from datetime import datetime
from typing import Optional

from uuid import UUID

from pydantic import BaseModel

from app.schemas.program import ProgramOut


class EnrollmentCreate(BaseModel):
    # omitted when a customer enrolls themselves
    customer_id: Optional[UUID] = None


class EnrollmentOut(BaseModel):
    id: UUID
    customer_id: UUID
    program_id: UUID

    status: str

    enrolled_at: datetime
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomerProgramOut(BaseModel):
    enrollment: EnrollmentOut
    program: ProgramOut
    balance: int


class EnrollmentRequestCreate(BaseModel):
    customer_id: UUID


class EnrollmentRequestOut(BaseModel):
    id: UUID
    customer_id: UUID
    program_id: UUID
    business_id: UUID
    requested_by: UUID

    status: str

    created_at: datetime
    responded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EnrollmentResponseIn(BaseModel):
    approved: bool


class EnrollmentResponseOut(BaseModel):
    request: EnrollmentRequestOut
    enrollment: Optional[EnrollmentOut] = None

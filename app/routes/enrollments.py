from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db import get_db
from app.deps.actor import get_actor
from app.models.account import Account
from app.schemas.enrollment import (
    CustomerProgramOut,
    EnrollmentCreate,
    EnrollmentOut,
    EnrollmentRequestCreate,
    EnrollmentRequestOut,
    EnrollmentResponseIn,
    EnrollmentResponseOut,
)
from app.services import enrollment_service, program_service
from app.services.permission_service import EDIT_PROGRAM, SCAN_QR, require_permission


router = APIRouter(tags=["enrollments"])


@router.post("/programs/{program_id}/enrollments", response_model=EnrollmentOut)
def enroll_customer(
    program_id: UUID,
    payload: EnrollmentCreate,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    program = program_service.get_program(db, program_id)

    if actor.role == "customer":
        if payload.customer_id is not None and payload.customer_id != actor.id:
            raise HTTPException(status_code=403, detail="Customers can only enroll themselves")
        customer_id = actor.id
    else:
        # business-initiated link
        if payload.customer_id is None:
            raise HTTPException(status_code=400, detail="customer_id is required")
        require_permission(actor, SCAN_QR, program.business_id)
        customer_id = payload.customer_id

    enrollment = enrollment_service.enroll(db, customer_id, program.id)
    db.commit()
    db.refresh(enrollment)
    return enrollment


@router.delete("/programs/{program_id}/enrollments/{customer_id}", response_model=EnrollmentOut)
def cancel_enrollment(
    program_id: UUID,
    customer_id: UUID,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    program = program_service.get_program(db, program_id)
    if not (actor.role == "customer" and actor.id == customer_id):
        require_permission(actor, EDIT_PROGRAM, program.business_id)

    enrollment = enrollment_service.cancel_enrollment(db, customer_id, program.id)
    db.commit()
    db.refresh(enrollment)
    return enrollment


@router.get("/customers/{customer_id}/programs", response_model=list[CustomerProgramOut])
def list_customer_programs(
    customer_id: UUID,
    active_only: bool = False,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    if actor.role != "admin" and actor.id != customer_id:
        raise HTTPException(status_code=403, detail="Not allowed to view this customer's programs")

    rows = enrollment_service.list_programs_for(db, customer_id, active_only=active_only)
    return [
        {"enrollment": enrollment, "program": program, "balance": balance}
        for enrollment, program, balance in rows
    ]


@router.post("/programs/{program_id}/enrollment-requests", response_model=EnrollmentRequestOut)
def request_enrollment(
    program_id: UUID,
    payload: EnrollmentRequestCreate,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    request = enrollment_service.request_enrollment(db, actor, payload.customer_id, program_id)
    db.commit()
    db.refresh(request)
    return request


@router.get("/customers/{customer_id}/enrollment-requests", response_model=list[EnrollmentRequestOut])
def list_enrollment_requests(
    customer_id: UUID,
    status: Optional[str] = None,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    if actor.role != "admin" and actor.id != customer_id:
        raise HTTPException(status_code=403, detail="Not allowed to view this customer's requests")

    return enrollment_service.list_enrollment_requests(db, customer_id, status=status)


@router.post("/enrollment-requests/{request_id}/respond", response_model=EnrollmentResponseOut)
def respond_to_enrollment_request(
    request_id: UUID,
    payload: EnrollmentResponseIn,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    if actor.role != "customer":
        raise HTTPException(status_code=403, detail="Only the invited customer can answer a request")

    request, enrollment = enrollment_service.respond_to_request(db, actor.id, request_id, payload.approved)
    db.commit()
    db.refresh(request)
    if enrollment is not None:
        db.refresh(enrollment)
    return {"request": request, "enrollment": enrollment}

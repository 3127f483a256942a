from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db import get_db
from app.deps.actor import get_actor
from app.models.account import Account
from app.schemas.ledger import AdjustmentRequest, AwardOut, AwardRequest, BalanceOut, LedgerEntryOut, ScanRequest
from app.services import enrollment_service, ledger_service, program_service, tier_service
from app.services.permission_service import (
    AWARD_POINTS,
    EDIT_PROGRAM,
    SCAN_QR,
    require_permission,
)


router = APIRouter(tags=["ledger"])


def _require_read_access(actor: Account, customer_id: UUID, business_id) -> None:
    if actor.role == "customer" and actor.id == customer_id:
        return
    if actor.status == "active" and actor.role == "admin":
        return
    if actor.status == "active" and actor.role == "business" and actor.id == business_id:
        return
    if actor.status == "active" and actor.role == "staff" and actor.business_id == business_id:
        return
    raise HTTPException(status_code=403, detail="Not allowed to view this balance")


def _award_out(db: Session, customer_id: UUID, program_id: UUID, *, enrolled: bool = False) -> dict:
    # credited points include the card tier multiplier
    account = ledger_service.get_point_account(db, customer_id, program_id)
    latest = ledger_service.list_entries(db, customer_id, program_id, limit=1)[0]
    return {
        "customer_id": customer_id,
        "program_id": program_id,
        "balance": int(account.balance),
        "tier": account.tier,
        "points": latest.delta,
        "enrolled": enrolled,
    }


@router.post("/programs/{program_id}/customers/{customer_id}/points", response_model=AwardOut)
def award_points(
    program_id: UUID,
    customer_id: UUID,
    payload: AwardRequest,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    program = program_service.get_program(db, program_id)
    require_permission(actor, AWARD_POINTS, program.business_id)

    ledger_service.award(
        db,
        customer_id,
        program.id,
        payload.amount,
        source=ledger_service.AWARD,
        description=payload.description,
        apply_multiplier=True,
    )
    out = _award_out(db, customer_id, program.id)
    db.commit()
    return out


@router.post("/programs/{program_id}/customers/{customer_id}/adjustments", response_model=LedgerEntryOut)
def adjust_points(
    program_id: UUID,
    customer_id: UUID,
    payload: AdjustmentRequest,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    program = program_service.get_program(db, program_id)
    require_permission(actor, EDIT_PROGRAM, program.business_id)

    entry = ledger_service.adjust(db, customer_id, program.id, payload.delta, payload.description)
    db.commit()
    db.refresh(entry)
    return entry


@router.get("/programs/{program_id}/customers/{customer_id}/balance", response_model=BalanceOut)
def read_balance(
    program_id: UUID,
    customer_id: UUID,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    program = program_service.get_program(db, program_id, include_deleted=True)
    _require_read_access(actor, customer_id, program.business_id)

    account = ledger_service.get_point_account(db, customer_id, program.id)
    return {
        "customer_id": customer_id,
        "program_id": program.id,
        "balance": int(account.balance) if account else 0,
        "tier": account.tier if account else tier_service.STANDARD,
    }


@router.get("/programs/{program_id}/customers/{customer_id}/history", response_model=list[LedgerEntryOut])
def list_history(
    program_id: UUID,
    customer_id: UUID,
    limit: int = 100,
    offset: int = 0,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    program = program_service.get_program(db, program_id, include_deleted=True)
    _require_read_access(actor, customer_id, program.business_id)

    return ledger_service.list_entries(db, customer_id, program.id, limit=limit, offset=offset)


@router.post("/scan", response_model=AwardOut)
def scan_and_award(
    payload: ScanRequest,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Counter flow: scan the customer's card, link them if needed, award points."""
    program = program_service.get_program(db, payload.program_id)
    require_permission(actor, SCAN_QR, program.business_id)
    require_permission(actor, AWARD_POINTS, program.business_id)

    enrolled = False
    if enrollment_service.get_active_enrollment(db, payload.customer_id, program.id) is None:
        if not payload.auto_enroll:
            raise HTTPException(status_code=422, detail="Customer is not enrolled in this program")
        enrollment_service.enroll(db, payload.customer_id, program.id)
        enrolled = True

    points = payload.points
    if points is None:
        points = ledger_service.points_for_spend(program, payload.spend)
    if points <= 0:
        raise HTTPException(status_code=422, detail="Spend too small to earn points")

    ledger_service.award(
        db,
        payload.customer_id,
        program.id,
        points,
        description=payload.description or "QR scan",
        apply_multiplier=True,
    )
    out = _award_out(db, payload.customer_id, program.id, enrolled=enrolled)
    db.commit()
    return out

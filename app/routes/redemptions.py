from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db import get_db
from app.deps.actor import get_actor
from app.models.account import Account
from app.schemas.ledger import LedgerEntryOut
from app.schemas.promo_code import RedeemCodeRequest, RedeemTierRequest, RedemptionOut
from app.services import program_service, redemption_service
from app.services.permission_service import require_customer_access


router = APIRouter(prefix="/redemptions", tags=["redemptions"])


def _acting_business_id(actor: Account, requested: UUID | None):
    if actor.role == "business":
        return actor.id
    if actor.role == "staff":
        return actor.business_id
    return requested


def _resolve_customer(actor: Account, customer_id: UUID | None, business_id) -> UUID:
    if actor.role == "customer":
        if customer_id is not None and customer_id != actor.id:
            raise HTTPException(status_code=403, detail="Customers can only redeem for themselves")
        return actor.id

    if customer_id is None:
        raise HTTPException(status_code=400, detail="customer_id is required")
    require_customer_access(actor, customer_id, business_id)
    return customer_id


@router.post("/code", response_model=RedemptionOut)
def redeem_code(
    payload: RedeemCodeRequest,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    business_id = payload.business_id if actor.role == "customer" else _acting_business_id(actor, payload.business_id)
    customer_id = _resolve_customer(actor, payload.customer_id, business_id)

    result = redemption_service.redeem_code(db, payload.code, customer_id, business_id=business_id)
    db.commit()
    return RedemptionOut.model_validate(result, from_attributes=True)


@router.post("/reward-tier", response_model=LedgerEntryOut)
def redeem_reward_tier(
    payload: RedeemTierRequest,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    program = program_service.get_program(db, payload.program_id)
    customer_id = _resolve_customer(actor, payload.customer_id, program.business_id)

    entry = redemption_service.redeem_reward_tier(db, customer_id, program.id, payload.tier_id)
    db.commit()
    db.refresh(entry)
    return entry

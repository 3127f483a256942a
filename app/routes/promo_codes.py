from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db import get_db
from app.deps.actor import get_actor
from app.models.account import Account
from app.schemas.promo_code import PromoCodeCreate, PromoCodeOut
from app.services import promo_service
from app.services.permission_service import CREATE_PROMOTION, require_permission


router = APIRouter(tags=["promo-codes"])


@router.post("/businesses/{business_id}/promo-codes", response_model=PromoCodeOut)
def create_promo_code(
    business_id: UUID,
    payload: PromoCodeCreate,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    promo = promo_service.create_promo_code(db, actor, business_id, payload.model_dump())
    db.commit()
    db.refresh(promo)
    return promo


@router.get("/businesses/{business_id}/promo-codes", response_model=list[PromoCodeOut])
def list_promo_codes(
    business_id: UUID,
    status: str | None = None,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    require_permission(actor, CREATE_PROMOTION, business_id)
    return promo_service.list_promo_codes(db, business_id, status=status)


@router.delete("/promo-codes/{promo_id}", response_model=PromoCodeOut)
def revoke_promo_code(
    promo_id: UUID,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    promo = promo_service.revoke_promo_code(db, actor, promo_id)
    db.commit()
    db.refresh(promo)
    return promo

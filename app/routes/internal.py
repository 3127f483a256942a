from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db import get_db
from app.deps.actor import get_admin_actor
from app.models.account import Account
from app.schemas.notification import NotificationOut
from app.services import ledger_service, notification_service, promo_service


router = APIRouter(prefix="/internal", tags=["internal"])


@router.post("/programs/{program_id}/expire-points")
def expire_points(
    program_id: UUID,
    _: Account = Depends(get_admin_actor),
    db: Session = Depends(get_db),
):
    expired = ledger_service.expire_points(db, program_id)
    db.commit()
    return {"program_id": program_id, "expired_points": expired}


@router.post("/promo-codes/expire")
def expire_promo_codes(
    _: Account = Depends(get_admin_actor),
    db: Session = Depends(get_db),
):
    count = promo_service.expire_promo_codes(db)
    db.commit()
    return {"expired": count}


@router.get("/notifications", response_model=list[NotificationOut])
def list_pending_notifications(
    limit: int = 100,
    _: Account = Depends(get_admin_actor),
    db: Session = Depends(get_db),
):
    return notification_service.list_pending(db, limit=limit)


@router.post("/notifications/{notification_id}/dispatched", response_model=NotificationOut)
def mark_dispatched(
    notification_id: UUID,
    _: Account = Depends(get_admin_actor),
    db: Session = Depends(get_db),
):
    notification = notification_service.mark_dispatched(db, notification_id)
    db.commit()
    db.refresh(notification)
    return notification

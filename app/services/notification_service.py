"""Notification outbox.

Rows are written in the same transaction as the mutation that caused them;
delivery belongs to an external dispatcher that polls ``list_pending`` and
acknowledges with ``mark_dispatched``.
"""

import logging

from sqlalchemy.orm import Session

from app.errors import NotFoundError
from app.models.notification import Notification
from app.time_utils import utcnow


logger = logging.getLogger(__name__)


ENROLLMENT = "ENROLLMENT"
POINTS_ADDED = "POINTS_ADDED"
POINTS_DEDUCTED = "POINTS_DEDUCTED"
PROMO_CODE = "PROMO_CODE"
REWARD_DELIVERED = "REWARD_DELIVERED"
PROGRAM_DELETED = "PROGRAM_DELETED"
TIER_UPGRADED = "TIER_UPGRADED"
ENROLLMENT_REQUEST = "ENROLLMENT_REQUEST"
ENROLLMENT_ACCEPTED = "ENROLLMENT_ACCEPTED"
ENROLLMENT_REJECTED = "ENROLLMENT_REJECTED"


def _jsonable(payload: dict | None) -> dict:
    out = {}
    for k, v in (payload or {}).items():
        if v is None or isinstance(v, (str, int, float, bool)):
            out[k] = v
        else:
            out[k] = str(v)
    return out


def emit(db: Session, recipient_id, kind: str, payload: dict | None = None, *, business_id=None) -> Notification:
    notification = Notification(
        recipient_id=recipient_id,
        business_id=business_id,
        kind=kind,
        payload=_jsonable(payload),
        created_at=utcnow(),
    )
    db.add(notification)
    db.flush()

    logger.debug(
        "notification queued",
        extra={"recipient_id": str(recipient_id), "kind": kind, "notification_id": str(notification.id)},
    )
    return notification


def list_pending(db: Session, limit: int = 100):
    limit = max(1, min(limit, 500))
    return (
        db.query(Notification)
        .filter(Notification.dispatched_at.is_(None))
        .order_by(Notification.created_at.asc())
        .limit(limit)
        .all()
    )


def mark_dispatched(db: Session, notification_id) -> Notification:
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if not notification:
        raise NotFoundError("NOTIFICATION_NOT_FOUND", message="Notification not found")

    if notification.dispatched_at is None:
        notification.dispatched_at = utcnow()
        db.flush()
    return notification

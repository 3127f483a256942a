import logging

from sqlalchemy.orm import Session

from app.errors import NotFoundError, PreconditionError
from app.models.account import Account
from app.services.account_service import create_account, get_account
from app.services.permission_service import (
    MANAGE_STAFF,
    OWNER_ONLY_FLAGS,
    STAFF_PERMISSION_FLAGS,
    require_permission,
)


logger = logging.getLogger(__name__)


KNOWN_FLAGS = frozenset(STAFF_PERMISSION_FLAGS.values()) | frozenset(OWNER_ONLY_FLAGS)


def _clean_permissions(permissions: dict | None) -> dict:
    permissions = permissions or {}
    unknown = set(permissions) - KNOWN_FLAGS
    if unknown:
        raise PreconditionError("INVALID_PERMISSIONS", message=f"Unknown permission flags: {sorted(unknown)}")
    return {flag: bool(permissions.get(flag, False)) for flag in sorted(KNOWN_FLAGS)}


def _get_staff(db: Session, staff_id) -> Account:
    staff = get_account(db, staff_id)
    if not staff or staff.role != "staff":
        raise NotFoundError("STAFF_NOT_FOUND", message="Staff member not found", staff_id=str(staff_id))
    return staff


def create_staff(db: Session, actor, business_id, *, name: str, email: str | None = None, permissions: dict | None = None) -> Account:
    require_permission(actor, MANAGE_STAFF, business_id)

    business = get_account(db, business_id)
    if not business or business.role != "business":
        raise NotFoundError("BUSINESS_NOT_FOUND", message="Business not found", business_id=str(business_id))

    staff = create_account(
        db,
        role="staff",
        name=name,
        email=email,
        business_id=business.id,
        permissions=_clean_permissions(permissions),
    )

    logger.info("staff created", extra={"staff_id": str(staff.id), "business_id": str(business.id)})
    return staff


def list_staff(db: Session, actor, business_id):
    require_permission(actor, MANAGE_STAFF, business_id)
    return (
        db.query(Account)
        .filter(Account.role == "staff", Account.business_id == business_id)
        .order_by(Account.created_at.desc())
        .all()
    )


def update_staff_permissions(db: Session, actor, staff_id, permissions: dict) -> Account:
    staff = _get_staff(db, staff_id)
    require_permission(actor, MANAGE_STAFF, staff.business_id)

    merged = dict(staff.permissions or {})
    merged.update(permissions or {})
    staff.permissions = _clean_permissions(merged)
    db.flush()

    logger.info("staff permissions updated", extra={"staff_id": str(staff.id), "actor_id": str(actor.id)})
    return staff


def revoke_staff(db: Session, actor, staff_id) -> Account:
    staff = _get_staff(db, staff_id)
    require_permission(actor, MANAGE_STAFF, staff.business_id)

    staff.status = "inactive"
    db.flush()

    logger.info("staff revoked", extra={"staff_id": str(staff.id), "actor_id": str(actor.id)})
    return staff

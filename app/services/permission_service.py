"""Permission evaluation for owner, staff and admin actors.

``can_perform`` is the only authority for business-scoped mutations; every
service re-checks it server side. It is a pure decision: no queries, no
logging, never raises. ``require_permission`` is the caller-facing wrapper
that logs the denial and raises ``ForbiddenError``.
"""

import logging

from app.errors import ForbiddenError


logger = logging.getLogger(__name__)


CREATE_PROGRAM = "create-program"
EDIT_PROGRAM = "edit-program"
DELETE_PROGRAM = "delete-program"
CREATE_PROMOTION = "create-promotion"
DELETE_PROMOTION = "delete-promotion"
MANAGE_STAFF = "manage-staff"
ACCESS_SETTINGS = "access-settings"
SCAN_QR = "scan-qr"
AWARD_POINTS = "award-points"

ACTIONS = frozenset({
    CREATE_PROGRAM,
    EDIT_PROGRAM,
    DELETE_PROGRAM,
    CREATE_PROMOTION,
    DELETE_PROMOTION,
    MANAGE_STAFF,
    ACCESS_SETTINGS,
    SCAN_QR,
    AWARD_POINTS,
})

# Never grantable to staff, whatever their stored flags say.
OWNER_ONLY_ACTIONS = frozenset({DELETE_PROGRAM, DELETE_PROMOTION, MANAGE_STAFF, ACCESS_SETTINGS})

STAFF_PERMISSION_FLAGS = {
    CREATE_PROGRAM: "can_create_programs",
    EDIT_PROGRAM: "can_edit_programs",
    CREATE_PROMOTION: "can_create_promotions",
    SCAN_QR: "can_scan_qr",
    AWARD_POINTS: "can_award_points",
}

# Stored for completeness of the staff form; ignored by the evaluator.
OWNER_ONLY_FLAGS = (
    "can_delete_programs",
    "can_delete_promotions",
    "can_manage_staff",
    "can_access_settings",
)


def _same_id(a, b) -> bool:
    if a is None or b is None:
        return False
    return str(a) == str(b)


def can_perform(actor, action: str, target_business_id) -> bool:
    if actor is None or action not in ACTIONS:
        return False

    if getattr(actor, "status", "active") != "active":
        return False

    role = getattr(actor, "role", None)

    if role == "admin":
        return True

    if role == "business":
        return _same_id(actor.id, target_business_id)

    if role == "staff":
        if action in OWNER_ONLY_ACTIONS:
            return False
        if not _same_id(actor.business_id, target_business_id):
            return False
        flags = actor.permissions or {}
        return flags.get(STAFF_PERMISSION_FLAGS[action]) is True

    return False


def require_permission(actor, action: str, target_business_id) -> None:
    if can_perform(actor, action, target_business_id):
        return

    logger.warning(
        "permission denied",
        extra={
            "actor_id": str(getattr(actor, "id", None)),
            "actor_role": getattr(actor, "role", None),
            "action": action,
            "business_id": str(target_business_id),
        },
    )
    raise ForbiddenError(message=f"Not allowed to {action}", action=action)


def can_act_for_customer(actor, customer_id, business_id) -> bool:
    """Customers act for themselves; counter staff need ``scan-qr``."""
    if actor is None or getattr(actor, "status", "active") != "active":
        return False
    if actor.role == "customer":
        return _same_id(actor.id, customer_id)
    return can_perform(actor, SCAN_QR, business_id)


def require_customer_access(actor, customer_id, business_id) -> None:
    if can_act_for_customer(actor, customer_id, business_id):
        return

    logger.warning(
        "customer access denied",
        extra={
            "actor_id": str(getattr(actor, "id", None)),
            "customer_id": str(customer_id),
            "business_id": str(business_id),
        },
    )
    raise ForbiddenError(message="Not allowed to act for this customer")

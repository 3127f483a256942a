import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy.orm import Session

from app import config
from app.errors import ForbiddenError, NotFoundError, PreconditionError
from app.models.program import Program, RewardTier
from app.services import enrollment_service, ledger_service, notification_service
from app.services.account_service import get_account
from app.services.permission_service import (
    CREATE_PROGRAM,
    DELETE_PROGRAM,
    EDIT_PROGRAM,
    require_permission,
)
from app.time_utils import utcnow


logger = logging.getLogger(__name__)


PROGRAM_TYPES = {"points", "stamps", "cashback"}
PROGRAM_STATUSES = {"active", "inactive"}

_EDITABLE_FIELDS = ("name", "description", "type", "point_value", "expiration_days", "welcome_points", "status")


def _validate_program_data(data: dict) -> dict:
    if "name" in data and not (data["name"] or "").strip():
        raise PreconditionError("INVALID_PROGRAM", message="name is required")

    if "type" in data and data["type"] not in PROGRAM_TYPES:
        raise PreconditionError("INVALID_PROGRAM", message=f"type must be one of {sorted(PROGRAM_TYPES)}")

    if "status" in data and data["status"] not in PROGRAM_STATUSES:
        raise PreconditionError("INVALID_PROGRAM", message=f"status must be one of {sorted(PROGRAM_STATUSES)}")

    if "point_value" in data and data["point_value"] is not None:
        try:
            ratio = Decimal(str(data["point_value"]))
        except InvalidOperation:
            raise PreconditionError("INVALID_PROGRAM", message="point_value must be a number")
        if ratio <= 0:
            raise PreconditionError("INVALID_PROGRAM", message="point_value must be > 0")
        data["point_value"] = ratio

    if "expiration_days" in data:
        days = data["expiration_days"] or 0
        if int(days) < 0:
            raise PreconditionError("INVALID_PROGRAM", message="expiration_days must be >= 0")
        data["expiration_days"] = int(days)

    if "welcome_points" in data:
        welcome = data["welcome_points"] or 0
        if int(welcome) < 0 or (config.MAX_AWARD_POINTS and int(welcome) > config.MAX_AWARD_POINTS):
            raise PreconditionError("INVALID_PROGRAM", message="welcome_points out of range")
        data["welcome_points"] = int(welcome)

    return data


def _validate_tiers(tiers) -> list[dict]:
    cleaned = []
    for tier in tiers or []:
        threshold = tier.get("threshold")
        reward = (tier.get("reward") or "").strip()
        if threshold is None or not reward:
            raise PreconditionError("INVALID_TIER", message="each reward tier needs a threshold and a reward")
        if int(threshold) <= 0:
            raise PreconditionError("INVALID_TIER", message="reward tier threshold must be > 0")
        cleaned.append({"threshold": int(threshold), "reward": reward})
    return cleaned


def _add_tiers(db: Session, program: Program, tiers: list[dict]) -> None:
    for position, tier in enumerate(tiers):
        db.add(
            RewardTier(
                program_id=program.id,
                threshold=tier["threshold"],
                reward=tier["reward"],
                position=position,
                active=True,
            )
        )


def get_program(db: Session, program_id, *, include_deleted: bool = False) -> Program:
    program = db.query(Program).filter(Program.id == program_id).first()
    if not program or (program.status == "deleted" and not include_deleted):
        raise NotFoundError("PROGRAM_NOT_FOUND", program_id=str(program_id))
    return program


def list_business_programs(db: Session, business_id, *, status: str | None = None):
    q = db.query(Program).filter(Program.business_id == business_id, Program.status != "deleted")
    if status:
        q = q.filter(Program.status == status)
    return q.order_by(Program.created_at.desc()).all()


# ============================================================
# CREATE
# ============================================================
def create_program(db: Session, actor, business_id, data: dict) -> Program:
    require_permission(actor, CREATE_PROGRAM, business_id)

    business = get_account(db, business_id)
    if not business or business.role != "business":
        raise NotFoundError("BUSINESS_NOT_FOUND", message="Business not found", business_id=str(business_id))

    data = dict(data)
    tiers = _validate_tiers(data.pop("reward_tiers", None))
    data.pop("status", None)
    data.pop("business_id", None)
    if not (data.get("name") or "").strip():
        raise PreconditionError("INVALID_PROGRAM", message="name is required")
    data = _validate_program_data(data)

    program = Program(
        business_id=business.id,
        name=data["name"].strip(),
        description=data.get("description"),
        type=data.get("type") or "points",
        point_value=data.get("point_value") or Decimal("1"),
        expiration_days=data.get("expiration_days") or 0,
        welcome_points=data.get("welcome_points") or 0,
        status="active",
    )
    db.add(program)
    db.flush()

    _add_tiers(db, program, tiers)
    db.flush()

    logger.info(
        "program created",
        extra={"program_id": str(program.id), "business_id": str(business.id), "actor_id": str(actor.id)},
    )
    return program


# ============================================================
# UPDATE
# ============================================================
def update_program(db: Session, actor, program_id, data: dict) -> Program:
    program = get_program(db, program_id)
    require_permission(actor, EDIT_PROGRAM, program.business_id)

    data = dict(data)
    if "business_id" in data and data["business_id"] is not None and str(data["business_id"]) != str(program.business_id):
        raise ForbiddenError("OWNER_CHANGE", message="A program cannot change its owning business")
    data.pop("business_id", None)

    tiers = data.pop("reward_tiers", None)
    data = _validate_program_data(data)

    for field in _EDITABLE_FIELDS:
        if field in data:
            value = data[field]
            if value is None and field != "description":
                continue
            if field == "name":
                value = value.strip()
            setattr(program, field, value)

    if tiers is not None:
        cleaned = _validate_tiers(tiers)
        # retire instead of editing: past redemptions keep pointing at the old rows
        (
            db.query(RewardTier)
            .filter(RewardTier.program_id == program.id, RewardTier.active.is_(True))
            .update({RewardTier.active: False}, synchronize_session=False)
        )
        _add_tiers(db, program, cleaned)

    db.flush()
    db.expire(program, ["tiers"])

    logger.info(
        "program updated",
        extra={"program_id": str(program.id), "actor_id": str(actor.id), "fields": sorted(data.keys())},
    )
    return program


# ============================================================
# DELETE (soft)
# ============================================================
def delete_program(db: Session, actor, program_id) -> int:
    """
    Soft-delete a program and cancel its enrollments.

    Each affected customer gets one PROGRAM_DELETED notification carrying the
    balance they held. Ledger entries stay attributable to the program.
    Returns the number of affected customers.
    """
    program = get_program(db, program_id)
    require_permission(actor, DELETE_PROGRAM, program.business_id)

    cancelled = enrollment_service.cancel_program_enrollments(db, program.id)

    for enrollment in cancelled:
        notification_service.emit(
            db,
            enrollment.customer_id,
            notification_service.PROGRAM_DELETED,
            {
                "programId": program.id,
                "programName": program.name,
                "points": ledger_service.current_balance(db, enrollment.customer_id, program.id),
            },
            business_id=program.business_id,
        )

    program.status = "deleted"
    program.deleted_at = utcnow()
    db.flush()

    logger.info(
        "program deleted",
        extra={"program_id": str(program.id), "actor_id": str(actor.id), "cancelled_enrollments": len(cancelled)},
    )
    return len(cancelled)

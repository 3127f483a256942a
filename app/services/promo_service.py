import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import config
from app.errors import ConflictError, NotFoundError, PreconditionError
from app.models.program import Program
from app.models.promo_code import PromoCode
from app.services.permission_service import CREATE_PROMOTION, DELETE_PROMOTION, require_permission
from app.services.redemption_service import normalize_code
from app.time_utils import utcnow


logger = logging.getLogger(__name__)


PROMO_TYPES = {"points", "discount", "cashback"}


def find_promo_code(db: Session, business_id, code: str):
    return (
        db.query(PromoCode)
        .filter(PromoCode.business_id == business_id, PromoCode.code == normalize_code(code))
        .first()
    )


def create_promo_code(db: Session, actor, business_id, data: dict) -> PromoCode:
    require_permission(actor, CREATE_PROMOTION, business_id)

    code = normalize_code(data.get("code"))
    if not code:
        raise PreconditionError("INVALID_PROMO", message="code is required")

    promo_type = data.get("type") or "points"
    if promo_type not in PROMO_TYPES:
        raise PreconditionError("INVALID_PROMO", message=f"type must be one of {sorted(PROMO_TYPES)}")

    try:
        value = Decimal(str(data.get("value")))
    except InvalidOperation:
        raise PreconditionError("INVALID_PROMO", message="value must be a number")
    if value <= 0:
        raise PreconditionError("INVALID_PROMO", message="value must be > 0")
    if promo_type == "points" and value != value.to_integral_value():
        raise PreconditionError("INVALID_PROMO", message="points codes need a whole number of points")
    if promo_type == "points" and config.MAX_AWARD_POINTS and value > config.MAX_AWARD_POINTS:
        raise PreconditionError(
            "INVALID_PROMO",
            message=f"points codes cannot credit more than {config.MAX_AWARD_POINTS} points",
            max_points=config.MAX_AWARD_POINTS,
        )

    program_id = data.get("program_id")
    if program_id is not None:
        program = db.query(Program).filter(Program.id == program_id).first()
        if not program or program.status == "deleted" or str(program.business_id) != str(business_id):
            raise NotFoundError("PROGRAM_NOT_FOUND", program_id=str(program_id))

    if find_promo_code(db, business_id, code):
        raise ConflictError("DUPLICATE_CODE", promo_code=code)

    promo = PromoCode(
        business_id=business_id,
        program_id=program_id,
        code=code,
        name=(data.get("name") or code).strip(),
        type=promo_type,
        value=value,
        unit=data.get("unit") or ("points" if promo_type == "points" else "USD"),
        expires_at=data.get("expires_at"),
        status="active",
    )
    try:
        with db.begin_nested():
            db.add(promo)
            db.flush()
    except IntegrityError:
        # same code inserted concurrently
        raise ConflictError("DUPLICATE_CODE", promo_code=code)

    logger.info(
        "promo code created",
        extra={"promo_code_id": str(promo.id), "business_id": str(business_id), "code": code},
    )
    return promo


def list_promo_codes(db: Session, business_id, *, status: str | None = None):
    q = db.query(PromoCode).filter(PromoCode.business_id == business_id)
    if status:
        q = q.filter(PromoCode.status == status)
    return q.order_by(PromoCode.created_at.desc()).all()


def revoke_promo_code(db: Session, actor, promo_id) -> PromoCode:
    promo = db.query(PromoCode).filter(PromoCode.id == promo_id).first()
    if not promo:
        raise NotFoundError("CODE_NOT_FOUND", promo_code_id=str(promo_id))

    require_permission(actor, DELETE_PROMOTION, promo.business_id)

    if promo.status == "consumed":
        raise ConflictError("CODE_ALREADY_REDEEMED", promo_code=promo.code)

    if promo.status == "active":
        promo.status = "expired"
        promo.expires_at = utcnow()
        db.flush()

    logger.info("promo code revoked", extra={"promo_code_id": str(promo.id), "actor_id": str(actor.id)})
    return promo


# ============================================================
# EXPIRE PROMO CODES (job batch / cron)
# ============================================================
def expire_promo_codes(db: Session, *, now=None) -> int:
    now = now or utcnow()

    count = (
        db.query(PromoCode)
        .filter(PromoCode.status == "active")
        .filter(PromoCode.expires_at.isnot(None))
        .filter(PromoCode.expires_at <= now)
        .update({PromoCode.status: "expired"}, synchronize_session=False)
    )
    db.flush()

    logger.info("promo codes expired", extra={"count": count})
    return count

"""Promo-code and reward-tier redemption.

Both paths consume something exactly once: a promo code flips
``active -> consumed`` through a guarded UPDATE that only one caller can win,
and a reward tier debits the ledger through the same guarded balance update
the ledger uses for every debit.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from app.errors import ConflictError, NotFoundError, PreconditionError
from app.models.ledger_entry import LedgerEntry
from app.models.program import RewardTier
from app.models.promo_code import PromoCode
from app.services import enrollment_service, ledger_service, notification_service
from app.services.account_service import get_customer_or_404
from app.time_utils import utcnow


logger = logging.getLogger(__name__)


@dataclass
class RedemptionResult:
    value: Decimal
    currency: str
    promotion_name: str
    code: str
    type: str
    program_id: object = None
    points_awarded: int = 0
    balance: int | None = None


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def _find_promo_code(db: Session, code: str, business_id=None):
    q = db.query(PromoCode).filter(PromoCode.code == normalize_code(code))
    if business_id is not None:
        q = q.filter(PromoCode.business_id == business_id)

    matches = q.order_by(PromoCode.created_at.desc()).all()
    if not matches:
        raise NotFoundError("CODE_NOT_FOUND", promo_code=normalize_code(code))
    if len(matches) > 1:
        # same code issued by several businesses; prefer one that is still redeemable
        active = [m for m in matches if m.status == "active"]
        return active[0] if active else matches[0]
    return matches[0]


def _check_redeemable(promo: PromoCode, now: datetime) -> None:
    if promo.status == "consumed":
        raise ConflictError("CODE_ALREADY_REDEEMED", promo_code=promo.code)
    if promo.status == "expired" or (promo.expires_at is not None and promo.expires_at <= now):
        raise ConflictError("CODE_EXPIRED", promo_code=promo.code)
    if promo.status != "active":
        raise ConflictError("CODE_NOT_ACTIVE", message="Promo code is not active", promo_code=promo.code)


def _credit_program_id(db: Session, promo: PromoCode, customer_id):
    if promo.program_id is not None:
        ledger_service.get_active_program(db, promo.program_id)
        ledger_service.require_active_enrollment(db, customer_id, promo.program_id)
        return promo.program_id

    enrollment = enrollment_service.latest_business_enrollment(db, customer_id, promo.business_id)
    return enrollment.program_id


# ============================================================
# REDEEM PROMO CODE
# ============================================================
def redeem_code(db: Session, code: str, customer_id, *, business_id=None, now: datetime | None = None) -> RedemptionResult:
    """
    Consume a promo code for a customer.

    Raises:
        NotFoundError: unknown code or customer
        ConflictError: code already redeemed or expired (also for the loser
            of a concurrent redemption)
        PreconditionError: customer not enrolled with the issuing business
    """
    now = now or utcnow()

    customer = get_customer_or_404(db, customer_id)
    promo = _find_promo_code(db, code, business_id)
    _check_redeemable(promo, now)

    if not enrollment_service.has_business_enrollment(db, customer.id, promo.business_id):
        raise PreconditionError(
            "NOT_ENROLLED",
            message="Customer is not enrolled in any program of this business",
            business_id=str(promo.business_id),
        )

    credit_program_id = None
    if promo.type == "points":
        credit_program_id = _credit_program_id(db, promo, customer.id)

    # only one caller can move the row out of 'active'
    consumed = (
        db.query(PromoCode)
        .filter(PromoCode.id == promo.id, PromoCode.status == "active")
        .update(
            {
                PromoCode.status: "consumed",
                PromoCode.redeemed_by: customer.id,
                PromoCode.redeemed_at: now,
            },
            synchronize_session=False,
        )
    )
    db.expire(promo)

    if consumed != 1:
        logger.warning(
            "promo code redemption lost race",
            extra={"promo_code_id": str(promo.id), "customer_id": str(customer.id)},
        )
        raise ConflictError("CODE_ALREADY_REDEEMED", promo_code=normalize_code(code))

    result = RedemptionResult(
        value=promo.value,
        currency=promo.unit,
        promotion_name=promo.name,
        code=promo.code,
        type=promo.type,
        program_id=credit_program_id,
    )

    if credit_program_id is not None:
        points = int(promo.value)
        result.points_awarded = points
        result.balance = ledger_service.award(
            db,
            customer.id,
            credit_program_id,
            points,
            source=ledger_service.AWARD,
            description=f"Promo code {promo.code}",
            promo_code_id=promo.id,
            now=now,
        )

    notification_service.emit(
        db,
        customer.id,
        notification_service.PROMO_CODE,
        {
            "code": promo.code,
            "promotionName": promo.name,
            "value": str(promo.value),
            "currency": promo.unit,
            "type": promo.type,
        },
        business_id=promo.business_id,
    )

    logger.info(
        "promo code redeemed",
        extra={
            "promo_code_id": str(promo.id),
            "customer_id": str(customer.id),
            "points_awarded": result.points_awarded,
        },
    )
    return result


# ============================================================
# REDEEM REWARD TIER
# ============================================================
def redeem_reward_tier(db: Session, customer_id, program_id, tier_id) -> LedgerEntry:
    program = ledger_service.get_active_program(db, program_id)

    tier = (
        db.query(RewardTier)
        .filter(
            RewardTier.id == tier_id,
            RewardTier.program_id == program.id,
            RewardTier.active.is_(True),
        )
        .first()
    )
    if not tier:
        raise NotFoundError("TIER_NOT_FOUND", tier_id=str(tier_id))

    ledger_service.require_active_enrollment(db, customer_id, program.id)

    entry = ledger_service.debit(
        db,
        customer_id,
        program.id,
        int(tier.threshold),
        source=ledger_service.REDEMPTION,
        description=f"Redeemed: {tier.reward}",
        reward_tier_id=tier.id,
    )

    notification_service.emit(
        db,
        customer_id,
        notification_service.REWARD_DELIVERED,
        {
            "programId": program.id,
            "programName": program.name,
            "reward": tier.reward,
            "pointsUsed": int(tier.threshold),
            "balance": entry.balance_after,
        },
        business_id=program.business_id,
    )

    logger.info(
        "reward tier redeemed",
        extra={
            "customer_id": str(customer_id),
            "program_id": str(program.id),
            "tier_id": str(tier.id),
            "points": int(tier.threshold),
            "balance": entry.balance_after,
        },
    )
    return entry


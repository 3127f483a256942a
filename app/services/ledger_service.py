"""Points ledger: append-only entries plus the cached per-pair balance.

Every mutation goes through ``append_entry``, which moves the cached
``PointAccount`` counter with a single guarded UPDATE and then inserts the
entry carrying the new balance and sequence number. A debit that would take
the balance below zero matches no row and is rejected before anything is
written.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_FLOOR

from sqlalchemy import and_, case, func
from sqlalchemy.orm import Session

from app import config
from app.errors import InsufficientBalanceError, NotFoundError, PreconditionError
from app.models.enrollment import Enrollment
from app.models.ledger_entry import LedgerEntry
from app.models.point_account import PointAccount
from app.models.program import Program
from app.services import notification_service, tier_service
from app.time_utils import utcnow


logger = logging.getLogger(__name__)


AWARD = "award"
REDEMPTION = "redemption"
EXPIRATION = "expiration"
ADJUSTMENT = "adjustment"
WELCOME_BONUS = "welcome-bonus"

SOURCES = frozenset({AWARD, REDEMPTION, EXPIRATION, ADJUSTMENT, WELCOME_BONUS})
CREDIT_SOURCES = frozenset({AWARD, WELCOME_BONUS, ADJUSTMENT})


def _validate_points(amount, *, field: str = "amount") -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise PreconditionError("INVALID_AMOUNT", message=f"{field} must be an integer")
    if amount <= 0:
        raise PreconditionError("INVALID_AMOUNT", message=f"{field} must be greater than 0")
    if config.MAX_AWARD_POINTS and amount > config.MAX_AWARD_POINTS:
        raise PreconditionError(
            "INVALID_AMOUNT",
            message=f"Cannot move more than {config.MAX_AWARD_POINTS} points at once",
            max_points=config.MAX_AWARD_POINTS,
        )
    return amount


def get_active_program(db: Session, program_id) -> Program:
    program = db.query(Program).filter(Program.id == program_id).first()
    if not program or program.status == "deleted":
        raise NotFoundError("PROGRAM_NOT_FOUND", program_id=str(program_id))
    if program.status != "active":
        raise PreconditionError("PROGRAM_INACTIVE", program_id=str(program_id))
    return program


def require_active_enrollment(db: Session, customer_id, program_id) -> Enrollment:
    enrollment = (
        db.query(Enrollment)
        .filter(
            Enrollment.customer_id == customer_id,
            Enrollment.program_id == program_id,
            Enrollment.status == "active",
        )
        .first()
    )
    if not enrollment:
        raise PreconditionError(
            "NOT_ENROLLED",
            customer_id=str(customer_id),
            program_id=str(program_id),
        )
    return enrollment


def get_point_account(db: Session, customer_id, program_id):
    return (
        db.query(PointAccount)
        .filter(PointAccount.customer_id == customer_id, PointAccount.program_id == program_id)
        .first()
    )


def ensure_point_account(db: Session, customer_id, program_id) -> PointAccount:
    account = get_point_account(db, customer_id, program_id)
    if account:
        return account

    account = PointAccount(
        customer_id=customer_id,
        program_id=program_id,
        balance=0,
        lifetime_points=0,
        last_sequence=0,
        tier=tier_service.STANDARD,
    )
    db.add(account)
    db.flush()
    return account


def append_entry(
    db: Session,
    *,
    customer_id,
    program_id,
    delta: int,
    source: str,
    description: str | None = None,
    reward_tier_id=None,
    promo_code_id=None,
    now: datetime | None = None,
) -> LedgerEntry:
    if source not in SOURCES:
        raise PreconditionError("INVALID_SOURCE", message=f"Unknown ledger source: {source}")
    if delta == 0:
        raise PreconditionError("INVALID_AMOUNT", message="delta must not be zero")

    account = get_point_account(db, customer_id, program_id)
    if not account:
        raise PreconditionError("NOT_ENROLLED", customer_id=str(customer_id), program_id=str(program_id))

    values = {
        PointAccount.balance: PointAccount.balance + delta,
        PointAccount.last_sequence: PointAccount.last_sequence + 1,
    }
    if delta > 0:
        values[PointAccount.lifetime_points] = PointAccount.lifetime_points + delta

    # check and mutate in one statement; concurrent writers serialize on the row
    updated = (
        db.query(PointAccount)
        .filter(PointAccount.id == account.id)
        .filter(PointAccount.balance + delta >= 0)
        .update(values, synchronize_session=False)
    )
    db.expire(account)

    if updated != 1:
        available = current_balance(db, customer_id, program_id)
        logger.warning(
            "debit rejected",
            extra={
                "customer_id": str(customer_id),
                "program_id": str(program_id),
                "requested": -delta,
                "available": available,
                "source": source,
            },
        )
        raise InsufficientBalanceError(available=available, requested=-delta)

    balance, sequence = (
        db.query(PointAccount.balance, PointAccount.last_sequence)
        .filter(PointAccount.id == account.id)
        .one()
    )

    entry = LedgerEntry(
        customer_id=customer_id,
        program_id=program_id,
        sequence=sequence,
        delta=delta,
        source=source,
        balance_after=balance,
        description=description,
        reward_tier_id=reward_tier_id,
        promo_code_id=promo_code_id,
        created_at=now or utcnow(),
    )
    db.add(entry)
    db.flush()

    if delta > 0:
        _refresh_tier(db, account.id)
    return entry


def _refresh_tier(db: Session, account_id) -> None:
    account = db.query(PointAccount).filter(PointAccount.id == account_id).one()
    new_tier = tier_service.tier_for_points(int(account.lifetime_points))
    if not tier_service.is_upgrade(account.tier, new_tier):
        return

    old_tier = account.tier
    upgraded = (
        db.query(PointAccount)
        .filter(PointAccount.id == account.id, PointAccount.tier == old_tier)
        .update({PointAccount.tier: new_tier}, synchronize_session=False)
    )
    db.expire(account)
    if upgraded != 1:
        return

    program = db.query(Program).filter(Program.id == account.program_id).one()
    notification_service.emit(
        db,
        account.customer_id,
        notification_service.TIER_UPGRADED,
        {
            "programId": program.id,
            "programName": program.name,
            "previousTier": old_tier,
            "tier": new_tier,
            "multiplier": str(tier_service.multiplier_for(new_tier)),
        },
        business_id=program.business_id,
    )

    logger.info(
        "card tier upgraded",
        extra={"account_id": str(account.id), "previous_tier": old_tier, "tier": new_tier},
    )


# ============================================================
# AWARD / DEBIT / ADJUST
# ============================================================

def award(
    db: Session,
    customer_id,
    program_id,
    amount: int,
    source: str = AWARD,
    description: str | None = None,
    *,
    promo_code_id=None,
    apply_multiplier: bool = False,
    now: datetime | None = None,
) -> int:
    """
    Credit points to an enrolled customer and return the new balance.

    With ``apply_multiplier`` the amount is scaled by the account's card tier;
    the award cap applies to the base amount.

    Raises PreconditionError for a non-positive or oversized amount, a debit
    source, an inactive program or a missing active enrollment.
    """
    _validate_points(amount)
    if source not in CREDIT_SOURCES:
        raise PreconditionError("INVALID_SOURCE", message=f"{source} is not a credit source")

    program = get_active_program(db, program_id)
    require_active_enrollment(db, customer_id, program_id)

    points = amount
    if apply_multiplier:
        account = get_point_account(db, customer_id, program_id)
        if account:
            points = tier_service.apply_multiplier(amount, account.tier)

    entry = append_entry(
        db,
        customer_id=customer_id,
        program_id=program_id,
        delta=points,
        source=source,
        description=description,
        promo_code_id=promo_code_id,
        now=now,
    )

    notification_service.emit(
        db,
        customer_id,
        notification_service.POINTS_ADDED,
        {
            "points": points,
            "balance": entry.balance_after,
            "programId": program.id,
            "programName": program.name,
            "source": source,
            "description": description,
        },
        business_id=program.business_id,
    )

    logger.info(
        "points awarded",
        extra={
            "customer_id": str(customer_id),
            "program_id": str(program_id),
            "points": points,
            "source": source,
            "balance": entry.balance_after,
        },
    )
    return entry.balance_after


def debit(
    db: Session,
    customer_id,
    program_id,
    amount: int,
    source: str = REDEMPTION,
    description: str | None = None,
    *,
    reward_tier_id=None,
    now: datetime | None = None,
) -> LedgerEntry:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise PreconditionError("INVALID_AMOUNT", message="amount must be a positive integer")

    program = db.query(Program).filter(Program.id == program_id).first()
    if not program:
        raise NotFoundError("PROGRAM_NOT_FOUND", program_id=str(program_id))
    # aged-out points are never spendable
    expire_pair(db, customer_id, program, now=now)

    return append_entry(
        db,
        customer_id=customer_id,
        program_id=program_id,
        delta=-amount,
        source=source,
        description=description,
        reward_tier_id=reward_tier_id,
        now=now,
    )


def adjust(db: Session, customer_id, program_id, delta: int, description: str | None = None) -> LedgerEntry:
    """Manual correction in either direction; never drives the balance negative."""
    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise PreconditionError("INVALID_AMOUNT", message="delta must be a non-zero integer")
    _validate_points(abs(delta), field="delta")

    program = db.query(Program).filter(Program.id == program_id).first()
    if not program:
        raise NotFoundError("PROGRAM_NOT_FOUND", program_id=str(program_id))
    if delta < 0:
        expire_pair(db, customer_id, program)

    entry = append_entry(
        db,
        customer_id=customer_id,
        program_id=program_id,
        delta=delta,
        source=ADJUSTMENT,
        description=description,
    )

    notification_service.emit(
        db,
        customer_id,
        notification_service.POINTS_ADDED if delta > 0 else notification_service.POINTS_DEDUCTED,
        {"points": abs(delta), "balance": entry.balance_after, "programId": program.id, "description": description},
        business_id=program.business_id,
    )

    logger.info(
        "points adjusted",
        extra={"customer_id": str(customer_id), "program_id": str(program_id), "delta": delta},
    )
    return entry


# ============================================================
# BALANCE & HISTORY
# ============================================================

def current_balance(db: Session, customer_id, program_id) -> int:
    row = (
        db.query(PointAccount.balance)
        .filter(PointAccount.customer_id == customer_id, PointAccount.program_id == program_id)
        .first()
    )
    return int(row[0]) if row else 0


def replay_balance(db: Session, customer_id, program_id, *, up_to_sequence: int | None = None) -> int:
    q = db.query(func.coalesce(func.sum(LedgerEntry.delta), 0)).filter(
        LedgerEntry.customer_id == customer_id,
        LedgerEntry.program_id == program_id,
    )
    if up_to_sequence is not None:
        q = q.filter(LedgerEntry.sequence <= up_to_sequence)
    return int(q.scalar() or 0)


def audit_balance(db: Session, customer_id, program_id) -> tuple[int, int]:
    """Return ``(cached, replayed)``; the two must always be equal."""
    return current_balance(db, customer_id, program_id), replay_balance(db, customer_id, program_id)


def verify_history(db: Session, customer_id, program_id) -> bool:
    entries = (
        db.query(LedgerEntry)
        .filter(LedgerEntry.customer_id == customer_id, LedgerEntry.program_id == program_id)
        .order_by(LedgerEntry.sequence.asc())
        .all()
    )

    running = 0
    for expected_sequence, entry in enumerate(entries, start=1):
        running += entry.delta
        if entry.sequence != expected_sequence or entry.balance_after != running or running < 0:
            return False

    return running == current_balance(db, customer_id, program_id)


def list_entries(db: Session, customer_id, program_id, *, limit: int = 100, offset: int = 0):
    limit = max(1, min(limit, 500))
    offset = max(0, offset)

    return (
        db.query(LedgerEntry)
        .filter(LedgerEntry.customer_id == customer_id, LedgerEntry.program_id == program_id)
        .order_by(LedgerEntry.sequence.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def points_for_spend(program: Program, spend) -> int:
    ratio = Decimal(str(program.point_value or 0))
    points = (Decimal(str(spend)) * ratio).to_integral_value(rounding=ROUND_FLOOR)
    return max(0, int(points))


# ============================================================
# EXPIRATION
# ============================================================

def pending_expiration(db: Session, customer_id, program: Program, *, now: datetime | None = None) -> int:
    """
    Points that have aged out but are not yet materialized as entries.

    Debits consume the oldest credits first, so whatever was credited before
    the cutoff and not covered by the debits recorded so far (earlier
    expirations included) is due.
    """
    if not program.expiration_days:
        return 0

    cutoff = (now or utcnow()) - timedelta(days=int(program.expiration_days))

    credits_before_cutoff, debits_total = (
        db.query(
            func.coalesce(
                func.sum(case((and_(LedgerEntry.created_at < cutoff, LedgerEntry.delta > 0), LedgerEntry.delta), else_=0)),
                0,
            ),
            func.coalesce(func.sum(case((LedgerEntry.delta < 0, -LedgerEntry.delta), else_=0)), 0),
        )
        .filter(LedgerEntry.customer_id == customer_id, LedgerEntry.program_id == program.id)
        .one()
    )

    return max(0, int(credits_before_cutoff) - int(debits_total))


def balance_as_of(db: Session, customer_id, program_id, *, now: datetime | None = None) -> int:
    """Balance with expiration applied lazily; equals the balance after ``expire_points``."""
    program = db.query(Program).filter(Program.id == program_id).first()
    if not program:
        raise NotFoundError("PROGRAM_NOT_FOUND", program_id=str(program_id))
    return current_balance(db, customer_id, program_id) - pending_expiration(db, customer_id, program, now=now)


def expire_pair(db: Session, customer_id, program: Program, *, now: datetime | None = None) -> int:
    """Write the expiration entry for points of one pair that have aged out; returns the points expired."""
    due = pending_expiration(db, customer_id, program, now=now)
    if due <= 0:
        return 0

    entry = append_entry(
        db,
        customer_id=customer_id,
        program_id=program.id,
        delta=-due,
        source=EXPIRATION,
        description=f"Points older than {program.expiration_days} days expired",
        now=now,
    )
    notification_service.emit(
        db,
        customer_id,
        notification_service.POINTS_DEDUCTED,
        {"points": due, "balance": entry.balance_after, "programId": program.id, "reason": "expiration"},
        business_id=program.business_id,
    )
    return due


def expire_points(db: Session, program_id, *, now: datetime | None = None) -> int:
    """Materialize due expirations for every account of a program; idempotent."""
    program = db.query(Program).filter(Program.id == program_id).first()
    if not program:
        raise NotFoundError("PROGRAM_NOT_FOUND", program_id=str(program_id))
    if not program.expiration_days:
        return 0

    now = now or utcnow()

    accounts = (
        db.query(PointAccount)
        .filter(PointAccount.program_id == program.id)
        .order_by(PointAccount.created_at.asc())
        .with_for_update()
        .all()
    )

    total = 0
    for account in accounts:
        total += expire_pair(db, account.customer_id, program, now=now)

    logger.info(
        "points expired",
        extra={"program_id": str(program.id), "accounts": len(accounts), "expired_points": total},
    )
    return total

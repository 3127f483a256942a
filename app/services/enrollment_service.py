import logging

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import ConflictError, NotFoundError, PreconditionError
from app.models.enrollment import Enrollment
from app.models.enrollment_request import EnrollmentRequest
from app.models.point_account import PointAccount
from app.models.program import Program
from app.services import ledger_service, notification_service
from app.services.account_service import get_customer_or_404
from app.services.permission_service import SCAN_QR, require_permission
from app.time_utils import utcnow


logger = logging.getLogger(__name__)


def get_active_enrollment(db: Session, customer_id, program_id):
    return (
        db.query(Enrollment)
        .filter(
            Enrollment.customer_id == customer_id,
            Enrollment.program_id == program_id,
            Enrollment.status == "active",
        )
        .first()
    )


# ============================================================
# ENROLL
# ============================================================
def enroll(db: Session, customer_id, program_id) -> Enrollment:
    program = db.query(Program).filter(Program.id == program_id).first()
    if not program or program.status == "deleted":
        raise NotFoundError("PROGRAM_NOT_FOUND", program_id=str(program_id))
    if program.status != "active":
        raise PreconditionError("PROGRAM_INACTIVE", program_id=str(program_id))

    customer = get_customer_or_404(db, customer_id)
    if customer.status != "active":
        raise PreconditionError("CUSTOMER_INACTIVE", message="Customer account is not active")

    if get_active_enrollment(db, customer.id, program.id):
        raise ConflictError("ALREADY_ENROLLED", customer_id=str(customer.id), program_id=str(program.id))

    first_time = (
        db.query(Enrollment.id)
        .filter(Enrollment.customer_id == customer.id, Enrollment.program_id == program.id)
        .first()
    ) is None

    enrollment = Enrollment(
        customer_id=customer.id,
        program_id=program.id,
        status="active",
        enrolled_at=utcnow(),
    )
    try:
        # savepoint keeps earlier work of the caller's transaction
        with db.begin_nested():
            db.add(enrollment)
            db.flush()
    except IntegrityError:
        # a concurrent request enrolled the same pair first
        raise ConflictError("ALREADY_ENROLLED", customer_id=str(customer_id), program_id=str(program_id))

    ledger_service.ensure_point_account(db, customer.id, program.id)

    if first_time and program.welcome_points and program.welcome_points > 0:
        ledger_service.award(
            db,
            customer.id,
            program.id,
            int(program.welcome_points),
            source=ledger_service.WELCOME_BONUS,
            description="Welcome bonus",
        )

    notification_service.emit(
        db,
        customer.id,
        notification_service.ENROLLMENT,
        {"programId": program.id, "programName": program.name},
        business_id=program.business_id,
    )

    logger.info(
        "customer enrolled",
        extra={"customer_id": str(customer.id), "program_id": str(program.id), "first_time": first_time},
    )
    return enrollment


# ============================================================
# ENROLLMENT REQUESTS
# ============================================================
def request_enrollment(db: Session, actor, customer_id, program_id) -> EnrollmentRequest:
    """
    Business-initiated invitation; the customer is enrolled only after approving it.

    Needs ``scan-qr`` on the program's business. Raises ConflictError when the
    customer is already enrolled or a request for the pair is still pending.
    """
    program = ledger_service.get_active_program(db, program_id)
    require_permission(actor, SCAN_QR, program.business_id)

    customer = get_customer_or_404(db, customer_id)
    if customer.status != "active":
        raise PreconditionError("CUSTOMER_INACTIVE", message="Customer account is not active")

    if get_active_enrollment(db, customer.id, program.id):
        raise ConflictError("ALREADY_ENROLLED", customer_id=str(customer.id), program_id=str(program.id))

    pending = (
        db.query(EnrollmentRequest.id)
        .filter(
            EnrollmentRequest.customer_id == customer.id,
            EnrollmentRequest.program_id == program.id,
            EnrollmentRequest.status == "pending",
        )
        .first()
    )
    if pending:
        raise ConflictError("REQUEST_PENDING", request_id=str(pending[0]))

    request = EnrollmentRequest(
        customer_id=customer.id,
        program_id=program.id,
        business_id=program.business_id,
        requested_by=actor.id,
        status="pending",
        created_at=utcnow(),
    )
    try:
        with db.begin_nested():
            db.add(request)
            db.flush()
    except IntegrityError:
        raise ConflictError("REQUEST_PENDING", customer_id=str(customer.id), program_id=str(program.id))

    notification_service.emit(
        db,
        customer.id,
        notification_service.ENROLLMENT_REQUEST,
        {"requestId": request.id, "programId": program.id, "programName": program.name},
        business_id=program.business_id,
    )

    logger.info(
        "enrollment requested",
        extra={"customer_id": str(customer.id), "program_id": str(program.id), "requested_by": str(actor.id)},
    )
    return request


def respond_to_request(db: Session, customer_id, request_id, approved: bool):
    """
    Approve or decline a pending request on behalf of its customer.

    Returns ``(request, enrollment)``; ``enrollment`` is None when declined.
    """
    request = (
        db.query(EnrollmentRequest)
        .filter(EnrollmentRequest.id == request_id, EnrollmentRequest.customer_id == customer_id)
        .first()
    )
    if not request:
        raise NotFoundError("REQUEST_NOT_FOUND", request_id=str(request_id))
    if request.status != "pending":
        raise ConflictError("ALREADY_PROCESSED", request_id=str(request_id), status=request.status)

    new_status = "approved" if approved else "rejected"

    # only one response wins
    updated = (
        db.query(EnrollmentRequest)
        .filter(EnrollmentRequest.id == request.id, EnrollmentRequest.status == "pending")
        .update(
            {EnrollmentRequest.status: new_status, EnrollmentRequest.responded_at: utcnow()},
            synchronize_session=False,
        )
    )
    db.expire(request)
    if updated != 1:
        raise ConflictError("ALREADY_PROCESSED", request_id=str(request_id))

    enrollment = None
    if approved:
        enrollment = get_active_enrollment(db, request.customer_id, request.program_id)
        if not enrollment:
            enrollment = enroll(db, request.customer_id, request.program_id)

    notification_service.emit(
        db,
        request.business_id,
        notification_service.ENROLLMENT_ACCEPTED if approved else notification_service.ENROLLMENT_REJECTED,
        {"requestId": request.id, "customerId": request.customer_id, "programId": request.program_id},
        business_id=request.business_id,
    )

    logger.info(
        "enrollment request answered",
        extra={"request_id": str(request.id), "status": new_status},
    )
    return request, enrollment


def list_enrollment_requests(db: Session, customer_id, *, status: str | None = None):
    get_customer_or_404(db, customer_id)

    q = db.query(EnrollmentRequest).filter(EnrollmentRequest.customer_id == customer_id)
    if status:
        q = q.filter(EnrollmentRequest.status == status)
    return q.order_by(EnrollmentRequest.created_at.desc()).all()



# ============================================================
# READ
# ============================================================
def list_programs_for(db: Session, customer_id, *, active_only: bool = False):
    """
    Enrollments of a customer joined with their program and balance.

    Returns a list of ``(Enrollment, Program, balance)`` tuples, newest
    enrollment first. Cancelled enrollments are included unless
    ``active_only`` is set.
    """
    get_customer_or_404(db, customer_id)

    q = (
        db.query(Enrollment, Program, PointAccount.balance)
        .join(Program, Program.id == Enrollment.program_id)
        .outerjoin(
            PointAccount,
            and_(
                PointAccount.customer_id == Enrollment.customer_id,
                PointAccount.program_id == Enrollment.program_id,
            ),
        )
        .filter(Enrollment.customer_id == customer_id)
    )
    if active_only:
        q = q.filter(Enrollment.status == "active")

    rows = q.order_by(Enrollment.enrolled_at.desc()).all()
    return [(enrollment, program, int(balance or 0)) for enrollment, program, balance in rows]


def latest_business_enrollment(db: Session, customer_id, business_id):
    """Most recent active enrollment of the customer in an active program of the business."""
    return (
        db.query(Enrollment)
        .join(Program, Program.id == Enrollment.program_id)
        .filter(
            Enrollment.customer_id == customer_id,
            Enrollment.status == "active",
            Program.business_id == business_id,
            Program.status == "active",
        )
        .order_by(Enrollment.enrolled_at.desc())
        .first()
    )


def has_business_enrollment(db: Session, customer_id, business_id) -> bool:
    return latest_business_enrollment(db, customer_id, business_id) is not None


# ============================================================
# CANCEL
# ============================================================
def cancel_enrollment(db: Session, customer_id, program_id) -> Enrollment:
    enrollment = get_active_enrollment(db, customer_id, program_id)
    if not enrollment:
        raise NotFoundError("NOT_ENROLLED", customer_id=str(customer_id), program_id=str(program_id))

    enrollment.status = "cancelled"
    enrollment.cancelled_at = utcnow()
    db.flush()

    logger.info(
        "enrollment cancelled",
        extra={"customer_id": str(customer_id), "program_id": str(program_id)},
    )
    return enrollment


def cancel_program_enrollments(db: Session, program_id) -> list[Enrollment]:
    now = utcnow()

    enrollments = (
        db.query(Enrollment)
        .filter(Enrollment.program_id == program_id, Enrollment.status == "active")
        .with_for_update()
        .all()
    )
    for enrollment in enrollments:
        enrollment.status = "cancelled"
        enrollment.cancelled_at = now

    db.flush()
    return enrollments

"""Error taxonomy for loyalty operations.

Every service raises one of these; nothing is logged-and-swallowed. The HTTP
layer maps ``status_code`` onto the response, the ``code`` stays stable for
clients.

Usage:
    try:
        enroll(db, customer_id, program_id)
    except ConflictError as e:
        if e.code == "ALREADY_ENROLLED":
            ...
"""


class LoyaltyError(Exception):
    status_code = 400
    default_code = "LOYALTY_ERROR"

    _default_messages = {
        "FORBIDDEN": "Action not permitted",
        "ALREADY_ENROLLED": "Customer is already enrolled in this program",
        "NOT_ENROLLED": "Customer is not enrolled in this program",
        "CODE_ALREADY_REDEEMED": "Promo code has already been redeemed",
        "CODE_EXPIRED": "Promo code has expired",
        "CODE_NOT_FOUND": "Promo code not found",
        "DUPLICATE_CODE": "Promo code already exists",
        "PROGRAM_NOT_FOUND": "Program not found",
        "PROGRAM_INACTIVE": "Program is not active",
        "CUSTOMER_NOT_FOUND": "Customer not found",
        "ACCOUNT_NOT_FOUND": "Account not found",
        "TIER_NOT_FOUND": "Reward tier not found",
        "INSUFFICIENT_BALANCE": "Insufficient points balance",
        "INVALID_AMOUNT": "Invalid points amount",
        "REQUEST_NOT_FOUND": "Enrollment request not found",
        "REQUEST_PENDING": "An enrollment request for this program is already pending",
        "ALREADY_PROCESSED": "Enrollment request has already been answered",
    }

    def __init__(self, code: str | None = None, message: str | None = None, **details):
        self.code = code or self.default_code
        self.message = message or self._default_messages.get(self.code, self.code)
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code, **self.details}


class ForbiddenError(LoyaltyError):
    status_code = 403
    default_code = "FORBIDDEN"


class ConflictError(LoyaltyError):
    status_code = 409
    default_code = "CONFLICT"


class NotFoundError(LoyaltyError):
    status_code = 404
    default_code = "NOT_FOUND"


class InsufficientBalanceError(LoyaltyError):
    status_code = 400
    default_code = "INSUFFICIENT_BALANCE"


class PreconditionError(LoyaltyError):
    status_code = 422
    default_code = "PRECONDITION_FAILED"

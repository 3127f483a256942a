from sqlalchemy.orm import Session

from app.errors import NotFoundError, PreconditionError
from app.models.account import Account


ROLES = {"customer", "business", "staff", "admin"}


def get_account(db: Session, account_id):
    return db.query(Account).filter(Account.id == account_id).first()


def get_account_or_404(db: Session, account_id) -> Account:
    account = get_account(db, account_id)
    if not account:
        raise NotFoundError("ACCOUNT_NOT_FOUND", account_id=str(account_id))
    return account


def get_customer_or_404(db: Session, customer_id) -> Account:
    customer = get_account(db, customer_id)
    if not customer or customer.role != "customer":
        raise NotFoundError("CUSTOMER_NOT_FOUND", customer_id=str(customer_id))
    return customer


def create_account(
    db: Session,
    *,
    role: str,
    name: str,
    email: str | None = None,
    business_id=None,
    permissions: dict | None = None,
) -> Account:
    if role not in ROLES:
        raise PreconditionError("INVALID_ROLE", message=f"Unknown role: {role}")
    if role == "staff" and business_id is None:
        raise PreconditionError("STAFF_WITHOUT_BUSINESS", message="Staff accounts need an owning business")

    account = Account(
        role=role,
        name=name,
        email=email,
        business_id=business_id if role == "staff" else None,
        permissions=(permissions or {}) if role == "staff" else None,
        status="active",
    )
    db.add(account)
    db.flush()
    return account

from uuid import UUID

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.db import get_db
from app.models.account import Account


def get_actor(
    x_actor_id: str | None = Header(default=None, alias="X-Actor-Id"),
    db: Session = Depends(get_db),
) -> Account:
    """Resolve the authenticated principal supplied by the upstream auth layer."""
    if not x_actor_id:
        raise HTTPException(status_code=401, detail="Missing actor context. Provide X-Actor-Id header.")

    try:
        actor_id = UUID(x_actor_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-Actor-Id header")

    actor = db.query(Account).filter(Account.id == actor_id).first()
    if not actor:
        raise HTTPException(status_code=401, detail="Unknown actor")
    return actor


def get_admin_actor(actor: Account = Depends(get_actor)) -> Account:
    if actor.role != "admin" or actor.status != "active":
        raise HTTPException(status_code=403, detail="Admin access required")
    return actor

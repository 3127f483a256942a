from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db import get_db
from app.deps.actor import get_actor
from app.models.account import Account
from app.schemas.account import AccountOut, StaffCreate, StaffPermissionsUpdate
from app.services import staff_service


router = APIRouter(tags=["staff"])


@router.post("/businesses/{business_id}/staff", response_model=AccountOut)
def create_staff(
    business_id: UUID,
    payload: StaffCreate,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    staff = staff_service.create_staff(
        db,
        actor,
        business_id,
        name=payload.name,
        email=payload.email,
        permissions=payload.permissions.model_dump(),
    )
    db.commit()
    db.refresh(staff)
    return staff


@router.get("/businesses/{business_id}/staff", response_model=list[AccountOut])
def list_staff(
    business_id: UUID,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return staff_service.list_staff(db, actor, business_id)


@router.patch("/staff/{staff_id}/permissions", response_model=AccountOut)
def update_staff_permissions(
    staff_id: UUID,
    payload: StaffPermissionsUpdate,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    staff = staff_service.update_staff_permissions(db, actor, staff_id, payload.model_dump(exclude_none=True))
    db.commit()
    db.refresh(staff)
    return staff


@router.delete("/staff/{staff_id}", response_model=AccountOut)
def revoke_staff(
    staff_id: UUID,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    staff = staff_service.revoke_staff(db, actor, staff_id)
    db.commit()
    db.refresh(staff)
    return staff

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db import get_db
from app.deps.actor import get_actor
from app.models.account import Account
from app.schemas.program import ProgramCreate, ProgramDeleteOut, ProgramOut, ProgramUpdate
from app.services import program_service


router = APIRouter(tags=["programs"])


@router.post("/programs", response_model=ProgramOut)
def create_program(
    payload: ProgramCreate,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    data = payload.model_dump()
    business_id = data.pop("business_id")
    program = program_service.create_program(db, actor, business_id, data)
    db.commit()
    db.refresh(program)
    return program


@router.get("/programs/{program_id}", response_model=ProgramOut)
def get_program(program_id: UUID, db: Session = Depends(get_db)):
    return program_service.get_program(db, program_id)


@router.get("/businesses/{business_id}/programs", response_model=list[ProgramOut])
def list_business_programs(
    business_id: UUID,
    status: str | None = None,
    db: Session = Depends(get_db),
):
    return program_service.list_business_programs(db, business_id, status=status)


@router.patch("/programs/{program_id}", response_model=ProgramOut)
def update_program(
    program_id: UUID,
    payload: ProgramUpdate,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    program = program_service.update_program(db, actor, program_id, payload.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(program)
    return program


@router.delete("/programs/{program_id}", response_model=ProgramDeleteOut)
def delete_program(
    program_id: UUID,
    actor: Account = Depends(get_actor),
    db: Session = Depends(get_db),
):
    cancelled = program_service.delete_program(db, actor, program_id)
    db.commit()
    return {"deleted": True, "cancelled_enrollments": cancelled}

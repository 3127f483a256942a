from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from uuid import UUID

from pydantic import BaseModel, Field


class RewardTierIn(BaseModel):
    threshold: int = Field(gt=0)
    reward: str


class RewardTierOut(BaseModel):
    id: UUID
    threshold: int
    reward: str
    position: int

    class Config:
        from_attributes = True


class ProgramCreate(BaseModel):
    business_id: UUID

    name: str
    description: Optional[str] = None

    type: Literal["points", "stamps", "cashback"] = "points"
    point_value: Decimal = Decimal("1")
    expiration_days: int = Field(default=0, ge=0)
    welcome_points: int = Field(default=0, ge=0)

    reward_tiers: List[RewardTierIn] = []


class ProgramUpdate(BaseModel):
    # accepted only to reject ownership changes explicitly
    business_id: Optional[UUID] = None

    name: Optional[str] = None
    description: Optional[str] = None

    type: Optional[Literal["points", "stamps", "cashback"]] = None
    point_value: Optional[Decimal] = None
    expiration_days: Optional[int] = Field(default=None, ge=0)
    welcome_points: Optional[int] = Field(default=None, ge=0)
    status: Optional[Literal["active", "inactive"]] = None

    reward_tiers: Optional[List[RewardTierIn]] = None


class ProgramOut(BaseModel):
    id: UUID
    business_id: UUID

    name: str
    description: Optional[str] = None

    type: str
    point_value: Decimal
    expiration_days: int
    welcome_points: int

    status: str
    tiers: List[RewardTierOut] = []

    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProgramDeleteOut(BaseModel):
    deleted: bool
    cancelled_enrollments: int

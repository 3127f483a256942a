from datetime import datetime
from decimal import Decimal
from typing import Optional

from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class AwardRequest(BaseModel):
    # counter awards are always recorded with source "award"
    amount: int = Field(gt=0)
    description: Optional[str] = None


class AdjustmentRequest(BaseModel):
    delta: int
    description: Optional[str] = None


class ScanRequest(BaseModel):
    customer_id: UUID
    program_id: UUID

    # either a fixed number of points or a spend converted with point_value
    points: Optional[int] = Field(default=None, gt=0)
    spend: Optional[Decimal] = Field(default=None, gt=0)

    description: Optional[str] = None
    auto_enroll: bool = True

    @model_validator(mode="after")
    def _points_or_spend(self):
        if (self.points is None) == (self.spend is None):
            raise ValueError("provide exactly one of points or spend")
        return self


class BalanceOut(BaseModel):
    customer_id: UUID
    program_id: UUID
    balance: int
    tier: str = "STANDARD"


class AwardOut(BalanceOut):
    points: int
    enrolled: bool = False


class LedgerEntryOut(BaseModel):
    id: UUID
    customer_id: UUID
    program_id: UUID

    sequence: int
    delta: int
    source: str
    balance_after: int

    description: Optional[str] = None
    reward_tier_id: Optional[UUID] = None
    promo_code_id: Optional[UUID] = None

    created_at: datetime

    class Config:
        from_attributes = True

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from uuid import UUID

from pydantic import BaseModel, Field


class PromoCodeCreate(BaseModel):
    code: str
    name: Optional[str] = None

    type: Literal["points", "discount", "cashback"] = "points"
    value: Decimal = Field(gt=0)
    unit: Optional[str] = None

    expires_at: Optional[datetime] = None
    program_id: Optional[UUID] = None


class PromoCodeOut(BaseModel):
    id: UUID
    business_id: UUID
    program_id: Optional[UUID] = None

    code: str
    name: str

    type: str
    value: Decimal
    unit: str

    expires_at: Optional[datetime] = None
    status: str

    redeemed_by: Optional[UUID] = None
    redeemed_at: Optional[datetime] = None

    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RedeemCodeRequest(BaseModel):
    code: str
    customer_id: Optional[UUID] = None
    business_id: Optional[UUID] = None


class RedemptionOut(BaseModel):
    value: Decimal
    currency: str
    promotion_name: str
    code: str
    type: str

    program_id: Optional[UUID] = None
    points_awarded: int = 0
    balance: Optional[int] = None

    class Config:
        from_attributes = True


class RedeemTierRequest(BaseModel):
    program_id: UUID
    tier_id: UUID
    customer_id: Optional[UUID] = None

from datetime import datetime
from typing import Dict, Optional

from uuid import UUID

from pydantic import BaseModel


class StaffPermissions(BaseModel):
    can_create_programs: bool = False
    can_edit_programs: bool = False
    can_create_promotions: bool = False
    can_scan_qr: bool = False
    can_award_points: bool = False

    # owner-only actions; stored but never granted to staff
    can_delete_programs: bool = False
    can_delete_promotions: bool = False
    can_manage_staff: bool = False
    can_access_settings: bool = False


class StaffCreate(BaseModel):
    name: str
    email: Optional[str] = None
    permissions: StaffPermissions = StaffPermissions()


class StaffPermissionsUpdate(BaseModel):
    can_create_programs: Optional[bool] = None
    can_edit_programs: Optional[bool] = None
    can_create_promotions: Optional[bool] = None
    can_scan_qr: Optional[bool] = None
    can_award_points: Optional[bool] = None

    can_delete_programs: Optional[bool] = None
    can_delete_promotions: Optional[bool] = None
    can_manage_staff: Optional[bool] = None
    can_access_settings: Optional[bool] = None


class AccountOut(BaseModel):
    id: UUID
    role: str
    name: str
    email: Optional[str] = None

    business_id: Optional[UUID] = None
    permissions: Optional[Dict[str, bool]] = None

    status: str

    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

from datetime import datetime
from typing import Any, Dict, Optional

from uuid import UUID

from pydantic import BaseModel


class NotificationOut(BaseModel):
    id: UUID
    recipient_id: UUID
    business_id: Optional[UUID] = None

    kind: str
    payload: Optional[Dict[str, Any]] = None

    created_at: datetime
    dispatched_at: Optional[datetime] = None

    class Config:
        from_attributes = True

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class NotificationRead(BaseModel):
    id: int
    kind: str
    title: str
    message: str
    inquiry_id: Optional[int] = None
    payload: Optional[Dict[str, Any]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnreadCountRead(BaseModel):
    unread: int


class ReadAllResponse(BaseModel):
    updated: int

from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime

class NotificationBase(BaseModel):
    message: str
    type: str # a tournament event kind, "game_result" or "friend_request"

class NotificationRead(NotificationBase):
    id: int
    user_id: str
    payload: Optional[Dict[str, Any]] = None
    read_status: bool
    created_at: datetime

    class Config:
        from_attributes = True

class MarkAllReadResponse(BaseModel):
    success: bool = True
    updated: int

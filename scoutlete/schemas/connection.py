"""Connection Pydantic schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from scoutlete.models.user_connection import ConnectionStatus
from scoutlete.services.connections import ConnectionAction


class ConnectionCreate(BaseModel):
    connected_user_id: int
    message: Optional[str] = None


class ConnectionRespond(BaseModel):
    action: ConnectionAction


class ConnectionOut(BaseModel):
    id: int
    user_id: int
    connected_user_id: int
    status: ConnectionStatus
    message: Optional[str] = None
    blocked_by: Optional[int] = None
    created_at: Optional[datetime] = None
    connected_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

"""User Pydantic schemas – identity sync and profile output."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserOut(BaseModel):
    """Public user representation returned by the API."""
    id: int
    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None

    model_config = {"from_attributes": True}


class MeOut(UserOut):
    """The caller's own profile, with private fields."""
    external_id: str
    email: Optional[str] = None
    is_verified: bool = False
    created_at: Optional[datetime] = None


class UserSummary(BaseModel):
    id: int
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None

    model_config = {"from_attributes": True}

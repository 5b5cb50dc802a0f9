"""Team Pydantic schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from scoutlete.models.message import Priority
from scoutlete.models.team_membership import MemberStatus, TeamRole
from scoutlete.schemas.user import UserSummary


class TeamCreate(BaseModel):
    name: str
    description: Optional[str] = None
    max_members: Optional[int] = Field(default=None, ge=1)
    is_public: bool = True


class TeamOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    created_by: int
    max_members: Optional[int] = None
    current_members: int = 0
    is_public: bool = True
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TeamMemberOut(BaseModel):
    user: UserSummary
    role: TeamRole
    status: MemberStatus
    joined_at: Optional[datetime] = None


class TeamDetailOut(TeamOut):
    members: List[TeamMemberOut] = []


class MembershipOut(BaseModel):
    team_id: int
    user_id: int
    role: TeamRole
    status: MemberStatus
    joined_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AnnouncementCreate(BaseModel):
    content: str
    priority: Optional[Priority] = None


class RepairResult(BaseModel):
    team_id: int
    team: str
    status: str
    error: Optional[str] = None


class ReconcileReport(BaseModel):
    team_id: int
    captain_restored: bool
    conversations_retired: int
    participants_added: int
    participants_removed: int
    active_members: int

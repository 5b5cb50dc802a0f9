"""Team Membership model."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from scoutlete.database import Base


class TeamRole(str, enum.Enum):
    captain = "captain"
    member = "member"


class MemberStatus(str, enum.Enum):
    active = "active"
    pending = "pending"
    suspended = "suspended"


class TeamMembership(Base):
    """Authoritative source of who may take part in a team's conversations.

    Rows are deleted outright when a member leaves.
    """
    __tablename__ = "team_memberships"

    team_id: Mapped[int] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    role: Mapped[TeamRole] = mapped_column(Enum(TeamRole), default=TeamRole.member)
    status: Mapped[MemberStatus] = mapped_column(Enum(MemberStatus), default=MemberStatus.active)

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

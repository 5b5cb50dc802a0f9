"""Team membership oracle.

Answers who may take part in a team's conversations. A user is entitled
when they created the team OR hold an active membership row. The two facts
are written separately at team creation and either can be missing, so both
are always checked.
"""

from typing import Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scoutlete.exceptions import NotFoundError
from scoutlete.models.conversation_participant import ParticipantRole
from scoutlete.models.team import Team
from scoutlete.models.team_membership import MemberStatus, TeamMembership, TeamRole


async def get_team(db: AsyncSession, team_id: int) -> Team:
    result = await db.execute(select(Team).where(Team.id == team_id))
    team = result.scalar_one_or_none()
    if not team:
        raise NotFoundError("team_not_found")
    return team


async def get_active_membership(db: AsyncSession, team_id: int, user_id: int) -> Optional[TeamMembership]:
    result = await db.execute(
        select(TeamMembership).where(
            TeamMembership.team_id == team_id,
            TeamMembership.user_id == user_id,
            TeamMembership.status == MemberStatus.active,
        )
    )
    return result.scalar_one_or_none()


async def entitled_role(db: AsyncSession, team: Team, user_id: int) -> Optional[ParticipantRole]:
    """Participant role *user_id* is entitled to in *team*'s conversations.

    ``None`` means not entitled.
    """
    membership = await get_active_membership(db, team.id, user_id)
    if team.created_by == user_id:
        return ParticipantRole.admin
    if membership is None:
        return None
    if membership.role == TeamRole.captain:
        return ParticipantRole.admin
    return ParticipantRole.member


async def is_entitled(db: AsyncSession, user_id: int, team_id: int) -> bool:
    """Raises ``NotFoundError`` for an unknown team; otherwise never raises."""
    team = await get_team(db, team_id)
    return await entitled_role(db, team, user_id) is not None


async def is_captain(db: AsyncSession, user_id: int, team: Team) -> bool:
    """Creator, or holder of an active captain membership."""
    if team.created_by == user_id:
        return True
    membership = await get_active_membership(db, team.id, user_id)
    return membership is not None and membership.role == TeamRole.captain


async def active_memberships(db: AsyncSession, team_id: int) -> list[TeamMembership]:
    result = await db.execute(
        select(TeamMembership)
        .where(
            TeamMembership.team_id == team_id,
            TeamMembership.status == MemberStatus.active,
        )
        .order_by(TeamMembership.joined_at)
    )
    return list(result.scalars().all())


async def entitled_user_ids(db: AsyncSession, team: Team) -> Set[int]:
    """Every user entitled to the team's conversations, creator included."""
    members = await active_memberships(db, team.id)
    return {m.user_id for m in members} | {team.created_by}


async def team_participant_roles(db: AsyncSession, team: Team) -> dict[int, ParticipantRole]:
    """Map every entitled user to the participant role they should hold."""
    roles = {
        m.user_id: ParticipantRole.admin if m.role == TeamRole.captain else ParticipantRole.member
        for m in await active_memberships(db, team.id)
    }
    roles[team.created_by] = ParticipantRole.admin
    return roles

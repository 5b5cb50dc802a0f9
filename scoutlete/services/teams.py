"""Team lifecycle and repair passes.

Creating a team is two writes: the team row, then the creator's captain
membership. Either can be missing afterwards, which is why the membership
oracle checks both and why ``ensure_captain_membership`` exists.
"""

import logging
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from scoutlete.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    TransientError,
)
from scoutlete.models.conversation import Conversation, ConversationKind, ConversationType
from scoutlete.models.conversation_participant import ConversationParticipant
from scoutlete.models.team import Team
from scoutlete.models.team_membership import MemberStatus, TeamMembership, TeamRole
from scoutlete.models.user import User
from scoutlete.services import notifications
from scoutlete.services.conversations import (
    collapse_duplicate_team_conversations,
    get_or_create_team_conversation,
)
from scoutlete.services.identity import get_active_user
from scoutlete.services.membership import active_memberships, get_team, is_captain, is_entitled
from scoutlete.services.participants import (
    ensure_participant,
    prune_stale_participants,
    sync_team_participants,
)

logger = logging.getLogger(__name__)


async def _membership_row(db: AsyncSession, team_id: int, user_id: int) -> Optional[TeamMembership]:
    result = await db.execute(
        select(TeamMembership).where(
            TeamMembership.team_id == team_id,
            TeamMembership.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def _recount_members(db: AsyncSession, team_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(TeamMembership).where(
            TeamMembership.team_id == team_id,
            TeamMembership.status == MemberStatus.active,
        )
    )
    count = result.scalar() or 0
    await db.execute(update(Team).where(Team.id == team_id).values(current_members=count))
    await db.commit()
    return count


# ═══════════════════════════════════════════════════════════════
#  Lifecycle
# ═══════════════════════════════════════════════════════════════

async def create_team(
    db: AsyncSession,
    creator_id: int,
    name: str,
    description: Optional[str] = None,
    max_members: Optional[int] = None,
    is_public: bool = True,
) -> Team:
    """Create a team and make its creator the captain."""
    name = (name or "").strip()
    if not name:
        raise InvalidArgumentError("name_required")
    if max_members is not None and max_members < 1:
        raise InvalidArgumentError("invalid_max_members")
    await get_active_user(db, creator_id)

    team = Team(
        name=name,
        description=description,
        created_by=creator_id,
        max_members=max_members or 4,
        current_members=1,
        is_public=is_public,
    )
    db.add(team)
    await db.commit()
    team_id = team.id

    db.add(TeamMembership(team_id=team_id, user_id=creator_id, role=TeamRole.captain, status=MemberStatus.active))
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Captain membership for team %s not saved, removing team: %s", team_id, exc)
        await db.execute(delete(Team).where(Team.id == team_id))
        await db.commit()
        raise TransientError("captain_not_saved") from exc

    logger.info("User %s created team %s", creator_id, team_id)
    return team


async def join_team(db: AsyncSession, team_id: int, user_id: int) -> TeamMembership:
    team = await get_team(db, team_id)
    team_name = team.name
    captain_id = team.created_by
    user = await get_active_user(db, user_id)
    user_name = user.name

    if captain_id == user_id:
        raise ConflictError("already_a_member")
    existing = await _membership_row(db, team_id, user_id)
    if existing and existing.status == MemberStatus.active:
        raise ConflictError("already_a_member")
    if existing and existing.status == MemberStatus.suspended:
        raise ForbiddenError("membership_suspended")
    if team.max_members and team.current_members >= team.max_members:
        raise InvalidArgumentError("team_full")

    if existing:
        existing.status = MemberStatus.active
        membership = existing
    else:
        membership = TeamMembership(team_id=team_id, user_id=user_id, role=TeamRole.member, status=MemberStatus.active)
        db.add(membership)
    await db.commit()

    await db.execute(
        update(Team).where(Team.id == team_id).values(current_members=Team.current_members + 1)
    )
    await db.commit()
    logger.info("User %s joined team %s", user_id, team_id)

    fanout = await notifications.notify_team_joined(db, captain_id, team_id, team_name, user_name)
    if not fanout.ok:
        await db.refresh(membership)
    return membership


async def leave_team(db: AsyncSession, team_id: int, user_id: int) -> None:
    """Remove *user_id* from the team and from its conversations."""
    team = await get_team(db, team_id)
    if team.created_by == user_id:
        raise InvalidArgumentError("captain_cannot_leave")

    result = await db.execute(
        delete(TeamMembership).where(
            TeamMembership.team_id == team_id,
            TeamMembership.user_id == user_id,
            TeamMembership.status == MemberStatus.active,
        )
    )
    if not result.rowcount:
        raise NotFoundError("not_a_member")
    await db.commit()

    await db.execute(
        update(Team)
        .where(Team.id == team_id, Team.current_members > 0)
        .values(current_members=Team.current_members - 1)
    )
    await db.commit()

    team_conversations = select(Conversation.id).where(
        Conversation.team_id == team_id,
        Conversation.type == ConversationType.team,
    )
    await db.execute(
        delete(ConversationParticipant).where(
            ConversationParticipant.user_id == user_id,
            ConversationParticipant.conversation_id.in_(team_conversations),
        )
    )
    await db.commit()
    logger.info("User %s left team %s", user_id, team_id)


async def list_teams(db: AsyncSession, public_only: bool = True) -> list[Team]:
    stmt = select(Team).order_by(Team.created_at.desc(), Team.id.desc())
    if public_only:
        stmt = stmt.where(Team.is_public.is_(True))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_user_teams(db: AsyncSession, user_id: int) -> list[Team]:
    """Teams the user created or actively belongs to."""
    member_of = select(TeamMembership.team_id).where(
        TeamMembership.user_id == user_id,
        TeamMembership.status == MemberStatus.active,
    )
    result = await db.execute(
        select(Team)
        .where((Team.created_by == user_id) | Team.id.in_(member_of))
        .order_by(Team.created_at.desc(), Team.id.desc())
    )
    return list(result.scalars().all())


async def team_members(db: AsyncSession, team_id: int) -> list[tuple]:
    """Active ``(membership, user)`` pairs, oldest first."""
    result = await db.execute(
        select(TeamMembership, User)
        .join(User, TeamMembership.user_id == User.id)
        .where(
            TeamMembership.team_id == team_id,
            TeamMembership.status == MemberStatus.active,
        )
        .order_by(TeamMembership.joined_at)
    )
    return list(result.all())


async def open_team_conversation(
    db: AsyncSession,
    team_id: int,
    kind: ConversationKind,
    caller_id: int,
) -> Conversation:
    """Resolve a team conversation for an entitled caller and make sure they are in it."""
    if not await is_entitled(db, caller_id, team_id):
        raise ForbiddenError("not_a_team_member")
    conversation, _ = await get_or_create_team_conversation(db, team_id, kind, actor_id=caller_id)
    await ensure_participant(db, conversation, caller_id)
    return conversation


# ═══════════════════════════════════════════════════════════════
#  Repair passes
# ═══════════════════════════════════════════════════════════════

async def ensure_captain_membership(db: AsyncSession, team_id: int) -> tuple[TeamMembership, bool]:
    """Insert the creator's captain row if it is missing.

    Returns ``(membership, created)``. Any existing row for the creator,
    whatever its status, counts as present.
    """
    team = await get_team(db, team_id)
    creator_id = team.created_by
    existing = await _membership_row(db, team_id, creator_id)
    if existing:
        return existing, False

    membership = TeamMembership(team_id=team_id, user_id=creator_id, role=TeamRole.captain, status=MemberStatus.active)
    db.add(membership)
    await db.commit()
    await _recount_members(db, team_id)
    logger.info("Restored captain membership of user %s in team %s", creator_id, team_id)
    return membership, True


async def repair_missing_captains(db: AsyncSession) -> list[dict]:
    """Run ``ensure_captain_membership`` over every team that needs it."""
    result = await db.execute(
        select(Team.id, Team.name).where(
            ~select(TeamMembership.user_id)
            .where(
                TeamMembership.team_id == Team.id,
                TeamMembership.user_id == Team.created_by,
            )
            .exists()
        )
    )
    teams = result.all()
    logger.info("Found %d teams missing their captain membership", len(teams))

    report = []
    for team_id, team_name in teams:
        try:
            await ensure_captain_membership(db, team_id)
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Could not repair team %s: %s", team_id, exc)
            report.append({"team_id": team_id, "team": team_name, "status": "error", "error": str(exc)})
        else:
            report.append({"team_id": team_id, "team": team_name, "status": "fixed"})
    return report


async def reconcile_team(db: AsyncSession, team_id: int, caller_id: int) -> dict:
    """Bring a team's membership and conversations back in line.

    Captain only. Restores the captain row, retires duplicate conversations,
    then syncs and prunes participants of the remaining ones.
    """
    team = await get_team(db, team_id)
    if not await is_captain(db, caller_id, team):
        raise ForbiddenError("captain_only")

    _, captain_restored = await ensure_captain_membership(db, team_id)
    retired = await collapse_duplicate_team_conversations(db, team_id)

    result = await db.execute(
        select(Conversation).where(
            Conversation.team_id == team_id,
            Conversation.type == ConversationType.team,
            Conversation.is_active.is_(True),
        )
    )
    added = removed = 0
    for conversation in result.scalars().all():
        added += await sync_team_participants(db, conversation)
        removed += await prune_stale_participants(db, conversation)

    members = len(await active_memberships(db, team_id))
    report = {
        "team_id": team_id,
        "captain_restored": captain_restored,
        "conversations_retired": retired,
        "participants_added": added,
        "participants_removed": removed,
        "active_members": members,
    }
    logger.info("Reconciled team %s: %s", team_id, report)
    return report

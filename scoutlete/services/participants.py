"""Participant synchronizer.

For team conversations, ConversationParticipant rows are derived from team
membership: a missing row for an entitled user is created on first access
instead of denying the request. Direct and group conversations have no such
source, so for them a missing row is final.
"""

import logging
from typing import Mapping, Set

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from scoutlete.exceptions import ForbiddenError
from scoutlete.models.conversation import Conversation
from scoutlete.models.conversation_participant import ConversationParticipant, ParticipantRole
from scoutlete.services.membership import entitled_role, get_team, team_participant_roles

logger = logging.getLogger(__name__)


async def get_participant(db: AsyncSession, conversation_id: int, user_id: int):
    result = await db.execute(
        select(ConversationParticipant).where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def participant_ids(db: AsyncSession, conversation_id: int) -> Set[int]:
    result = await db.execute(
        select(ConversationParticipant.user_id).where(
            ConversationParticipant.conversation_id == conversation_id
        )
    )
    return set(result.scalars().all())


async def add_participants(db: AsyncSession, conversation_id: int, roles: Mapping[int, ParticipantRole]) -> None:
    """Insert one row per user in a single commit.

    On failure the session is rolled back and the error propagates; callers
    decide whether that is fatal.
    """
    db.add_all(
        ConversationParticipant(conversation_id=conversation_id, user_id=user_id, role=role)
        for user_id, role in roles.items()
    )
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise


async def ensure_participant(db: AsyncSession, conversation: Conversation, user_id: int) -> ConversationParticipant:
    """Return the caller's participant row, auto-joining entitled team members.

    Raises ``ForbiddenError`` when the user is not a participant and cannot
    become one. Calling it twice never creates a second row.
    """
    conversation_id = conversation.id
    participant = await get_participant(db, conversation_id, user_id)
    if participant:
        return participant

    if conversation.team_id is None:
        raise ForbiddenError("not_a_participant")

    team = await get_team(db, conversation.team_id)
    role = await entitled_role(db, team, user_id)
    if role is None:
        raise ForbiddenError("not_a_participant")

    participant = ConversationParticipant(conversation_id=conversation_id, user_id=user_id, role=role)
    db.add(participant)
    try:
        await db.commit()
    except IntegrityError:
        # Someone else auto-joined the same user between our read and insert.
        await db.rollback()
        await db.refresh(conversation)
        participant = await get_participant(db, conversation_id, user_id)
        if participant is None:
            raise
        return participant

    logger.info("Auto-joined user %s to conversation %s as %s", user_id, conversation_id, role.value)
    return participant


async def sync_team_participants(db: AsyncSession, conversation: Conversation) -> int:
    """Create rows for every entitled team member that lacks one.

    Returns the number of rows added.
    """
    if conversation.team_id is None:
        return 0
    conversation_id = conversation.id
    team = await get_team(db, conversation.team_id)
    roles = await team_participant_roles(db, team)
    existing = await participant_ids(db, conversation_id)
    missing = {user_id: role for user_id, role in roles.items() if user_id not in existing}
    if not missing:
        return 0
    await add_participants(db, conversation_id, missing)
    logger.info("Synced %d participants into conversation %s", len(missing), conversation_id)
    return len(missing)


async def prune_stale_participants(db: AsyncSession, conversation: Conversation) -> int:
    """Delete rows of users who are no longer entitled (e.g. left the team).

    Returns the number of rows removed.
    """
    if conversation.team_id is None:
        return 0
    conversation_id = conversation.id
    team = await get_team(db, conversation.team_id)
    entitled = set(await team_participant_roles(db, team))
    stale = await participant_ids(db, conversation_id) - entitled
    if not stale:
        return 0
    await db.execute(
        delete(ConversationParticipant).where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id.in_(stale),
        )
    )
    await db.commit()
    logger.info("Pruned %d stale participants from conversation %s", len(stale), conversation_id)
    return len(stale)

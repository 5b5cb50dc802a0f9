"""Conversation resolver.

Get-or-create for the three conversation shapes: direct (one per unordered
pair of users), team chat and team announcements (one of each per team).
Exclusivity is by convention only: look first, then insert. Two racing
callers can both insert, so every lookup takes the earliest match
(``created_at``, then id) and treats later twins as strays that
``collapse_duplicate_team_conversations`` folds back into the earliest.
"""

import logging
from typing import Iterable, Optional, Tuple

from sqlalchemy import desc, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from scoutlete.exceptions import ConflictError, InvalidArgumentError, NotFoundError, TransientError
from scoutlete.models.conversation import Conversation, ConversationKind, ConversationType
from scoutlete.models.conversation_participant import ConversationParticipant, ParticipantRole
from scoutlete.models.message import Message
from scoutlete.models.team import Team
from scoutlete.models.user import User
from scoutlete.services import notifications
from scoutlete.services.identity import get_active_user
from scoutlete.services.membership import get_team, team_participant_roles
from scoutlete.services.participants import add_participants

logger = logging.getLogger(__name__)

TEAM_KINDS = (ConversationKind.chat, ConversationKind.announcement)

_TEAM_TITLES = {
    ConversationKind.chat: ("{name} Chat", "Team discussion and coordination"),
    ConversationKind.announcement: ("{name} Announcements", "Official team updates and announcements"),
}


def _earliest_first(stmt):
    return stmt.order_by(Conversation.created_at, Conversation.id)


async def get_conversation(db: AsyncSession, conversation_id: int) -> Conversation:
    """Load an active conversation or raise ``NotFoundError``."""
    result = await db.execute(
        select(Conversation).where(
            Conversation.id == conversation_id,
            Conversation.is_active.is_(True),
        )
    )
    conversation = result.scalar_one_or_none()
    if not conversation:
        raise NotFoundError("conversation_not_found")
    return conversation


async def _create_with_participants(
    db: AsyncSession,
    conversation: Conversation,
    roles: dict[int, ParticipantRole],
) -> Conversation:
    """Insert *conversation*, then its participants, as two separate commits.

    If the participants cannot be written the conversation is deleted again
    so no direct or group conversation is left without members.
    """
    db.add(conversation)
    await db.commit()
    conversation_id = conversation.id

    try:
        await add_participants(db, conversation_id, roles)
    except SQLAlchemyError as exc:
        logger.error("Adding participants to conversation %s failed, removing it: %s", conversation_id, exc)
        await db.execute(Conversation.__table__.delete().where(Conversation.id == conversation_id))
        await db.commit()
        raise TransientError("participants_not_saved") from exc
    return conversation


# ═══════════════════════════════════════════════════════════════
#  Direct conversations
# ═══════════════════════════════════════════════════════════════

async def find_direct(db: AsyncSession, user_a: int, user_b: int) -> Optional[Conversation]:
    """Earliest active direct conversation whose participants are exactly {a, b}."""
    both = (
        select(ConversationParticipant.conversation_id)
        .where(ConversationParticipant.user_id.in_([user_a, user_b]))
        .group_by(ConversationParticipant.conversation_id)
        .having(func.count(func.distinct(ConversationParticipant.user_id)) == 2)
    )
    pairs = (
        select(ConversationParticipant.conversation_id)
        .group_by(ConversationParticipant.conversation_id)
        .having(func.count() == 2)
    )
    result = await db.execute(
        _earliest_first(
            select(Conversation).where(
                Conversation.id.in_(both),
                Conversation.id.in_(pairs),
                Conversation.kind == ConversationKind.direct,
                Conversation.is_active.is_(True),
            )
        ).limit(1)
    )
    return result.scalar_one_or_none()


async def get_or_create_direct(db: AsyncSession, user_a: int, user_b: int) -> Tuple[Conversation, bool]:
    """Return ``(conversation, created)`` for the direct channel between two users.

    *user_a* is the caller; on creation they become the channel admin and
    *user_b* is notified.
    """
    if user_a == user_b:
        raise InvalidArgumentError("cannot_message_self")

    existing = await find_direct(db, user_a, user_b)
    if existing:
        return existing, False

    creator = await get_active_user(db, user_a)
    await get_active_user(db, user_b)
    creator_name = creator.name

    conversation = await _create_with_participants(
        db,
        Conversation(
            type=ConversationType.direct,
            kind=ConversationKind.direct,
            title="Direct Message",
            created_by=user_a,
            is_active=True,
        ),
        {user_a: ParticipantRole.admin, user_b: ParticipantRole.member},
    )
    conversation_id = conversation.id
    logger.info("Created direct conversation %s between %s and %s", conversation_id, user_a, user_b)

    fanout = await notifications.notify_new_conversation(db, [user_b], conversation_id, creator_name)
    if not fanout.ok:
        await db.refresh(conversation)
    return conversation, True


async def create_direct(db: AsyncSession, user_a: int, user_b: int) -> Conversation:
    """Like ``get_or_create_direct`` but refuses when the pair already talks."""
    conversation, created = await get_or_create_direct(db, user_a, user_b)
    if not created:
        raise ConflictError("conversation_exists")
    return conversation


# ═══════════════════════════════════════════════════════════════
#  Group conversations
# ═══════════════════════════════════════════════════════════════

async def create_group_conversation(
    db: AsyncSession,
    creator_id: int,
    participant_ids: Iterable[int],
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> Conversation:
    others = {pid for pid in participant_ids if pid != creator_id}
    if not others:
        raise InvalidArgumentError("group_needs_participants")

    creator = await get_active_user(db, creator_id)
    creator_name = creator.name
    result = await db.execute(select(User.id).where(User.id.in_(others), User.is_active.is_(True)))
    found = set(result.scalars().all())
    if found != others:
        raise NotFoundError("user_not_found")

    roles = {pid: ParticipantRole.member for pid in others}
    roles[creator_id] = ParticipantRole.admin
    conversation = await _create_with_participants(
        db,
        Conversation(
            type=ConversationType.group,
            kind=ConversationKind.group,
            title=(title or "").strip() or "Group Chat",
            description=description,
            created_by=creator_id,
            is_active=True,
        ),
        roles,
    )
    conversation_id = conversation.id

    fanout = await notifications.notify_new_conversation(db, others, conversation_id, creator_name)
    if not fanout.ok:
        await db.refresh(conversation)
    return conversation


# ═══════════════════════════════════════════════════════════════
#  Team conversations
# ═══════════════════════════════════════════════════════════════

async def find_team_conversation(db: AsyncSession, team_id: int, kind: ConversationKind) -> Optional[Conversation]:
    result = await db.execute(
        _earliest_first(
            select(Conversation).where(
                Conversation.team_id == team_id,
                Conversation.type == ConversationType.team,
                Conversation.kind == kind,
                Conversation.is_active.is_(True),
            )
        ).limit(1)
    )
    return result.scalar_one_or_none()


async def get_or_create_team_conversation(
    db: AsyncSession,
    team_id: int,
    kind: ConversationKind,
    actor_id: Optional[int] = None,
) -> Tuple[Conversation, bool]:
    """Return ``(conversation, created)`` for a team's chat or announcements.

    Seeding participants is best effort: a failure is logged and left for
    ``ensure_participant`` to heal on each member's next access.
    """
    if kind not in TEAM_KINDS:
        raise InvalidArgumentError("not_a_team_conversation_kind")

    team = await get_team(db, team_id)
    existing = await find_team_conversation(db, team.id, kind)
    if existing:
        return existing, False

    title, description = _TEAM_TITLES[kind]
    conversation = Conversation(
        type=kind.conversation_type,
        kind=kind,
        title=title.format(name=team.name or "Team"),
        description=description,
        team_id=team.id,
        created_by=actor_id if actor_id is not None else team.created_by,
        is_active=True,
    )
    roles = await team_participant_roles(db, team)
    db.add(conversation)
    await db.commit()
    conversation_id = conversation.id
    logger.info("Created %s conversation %s for team %s", kind.value, conversation_id, team_id)

    try:
        await add_participants(db, conversation_id, roles)
    except SQLAlchemyError:
        logger.exception("Seeding participants for conversation %s failed; members will auto-join", conversation_id)
        await db.refresh(conversation)
    return conversation, True


async def collapse_duplicate_team_conversations(db: AsyncSession, team_id: int) -> int:
    """Fold every later active team conversation into the earliest of its kind.

    Messages and any participant rows the survivor lacks move across before
    the duplicate is deactivated. Returns how many were deactivated.
    """
    result = await db.execute(
        _earliest_first(
            select(Conversation).where(
                Conversation.team_id == team_id,
                Conversation.type == ConversationType.team,
                Conversation.is_active.is_(True),
            )
        )
    )
    survivors: dict[ConversationKind, Conversation] = {}
    duplicates: dict[ConversationKind, list[Conversation]] = {}
    for conversation in result.scalars().all():
        if conversation.kind in survivors:
            duplicates.setdefault(conversation.kind, []).append(conversation)
        else:
            survivors[conversation.kind] = conversation

    retired = 0
    for kind, twins in duplicates.items():
        survivor = survivors[kind]
        twin_ids = [c.id for c in twins]

        await db.execute(
            update(Message)
            .where(Message.conversation_id.in_(twin_ids))
            .values(conversation_id=survivor.id)
        )

        present = set(
            (await db.execute(
                select(ConversationParticipant.user_id)
                .where(ConversationParticipant.conversation_id == survivor.id)
            )).scalars().all()
        )
        rows = await db.execute(
            select(ConversationParticipant)
            .where(ConversationParticipant.conversation_id.in_(twin_ids))
            .order_by(ConversationParticipant.joined_at, ConversationParticipant.id)
        )
        for row in rows.scalars().all():
            if row.user_id not in present:
                db.add(ConversationParticipant(conversation_id=survivor.id, user_id=row.user_id, role=row.role))
                present.add(row.user_id)

        latest = await db.scalar(
            select(func.max(Message.created_at)).where(Message.conversation_id == survivor.id)
        )
        if latest is not None:
            survivor.last_message_at = latest
        for twin in twins:
            twin.is_active = False
        retired += len(twins)

    if retired:
        await db.commit()
        logger.warning("Folded %d duplicate conversations into the earliest for team %s", retired, team_id)
    return retired


# ═══════════════════════════════════════════════════════════════
#  Listing
# ═══════════════════════════════════════════════════════════════

async def list_conversations(
    db: AsyncSession,
    user_id: int,
    conversation_type: Optional[ConversationType] = None,
) -> list[Conversation]:
    """Active conversations *user_id* participates in, latest activity first."""
    stmt = (
        select(Conversation)
        .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
        .where(
            ConversationParticipant.user_id == user_id,
            Conversation.is_active.is_(True),
        )
        .order_by(
            desc(func.coalesce(Conversation.last_message_at, Conversation.created_at)),
            desc(Conversation.id),
        )
    )
    if conversation_type is not None:
        stmt = stmt.where(Conversation.type == conversation_type)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_participants(db: AsyncSession, conversation_ids: Iterable[int]) -> dict[int, list[tuple]]:
    """Participant ``(row, user)`` pairs keyed by conversation id."""
    ids = list(conversation_ids)
    grouped: dict[int, list[tuple]] = {cid: [] for cid in ids}
    if not ids:
        return grouped
    result = await db.execute(
        select(ConversationParticipant, User)
        .join(User, ConversationParticipant.user_id == User.id)
        .where(ConversationParticipant.conversation_id.in_(ids))
        .order_by(ConversationParticipant.joined_at, ConversationParticipant.id)
    )
    for participant, user in result.all():
        grouped[participant.conversation_id].append((participant, user))
    return grouped


async def team_for(db: AsyncSession, conversation: Conversation) -> Optional[Team]:
    if conversation.team_id is None:
        return None
    return await get_team(db, conversation.team_id)

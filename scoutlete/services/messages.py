"""Message store & access guard.

Only participants read or write a conversation's messages. Team members who
have no participant row yet are auto-joined by ``ensure_participant``
before the check. Announcements are captain-only and fan out to the whole
team instead of just the current participants.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional, Set

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from scoutlete.config import settings
from scoutlete.exceptions import ForbiddenError, InvalidArgumentError, NotFoundError
from scoutlete.models.conversation import ConversationKind
from scoutlete.models.conversation_participant import ParticipantRole
from scoutlete.models.message import Message, MessageType, Priority
from scoutlete.models.user import User
from scoutlete.services import notifications
from scoutlete.services.conversations import get_conversation, team_for
from scoutlete.services.membership import entitled_user_ids, get_team, is_captain
from scoutlete.services.participants import ensure_participant, get_participant, participant_ids

logger = logging.getLogger(__name__)


async def _active_user_ids(db: AsyncSession, user_ids: Iterable[int]) -> Set[int]:
    ids = set(user_ids)
    if not ids:
        return set()
    result = await db.execute(select(User.id).where(User.id.in_(ids), User.is_active.is_(True)))
    return set(result.scalars().all())


async def list_messages(
    db: AsyncSession,
    conversation_id: int,
    caller_id: int,
    newest_first: bool = False,
    limit: Optional[int] = None,
    offset: int = 0,
) -> list[Message]:
    """One page of visible messages, oldest first unless *newest_first*.

    The page size is capped at ``MESSAGE_PAGE_SIZE``.
    """
    conversation = await get_conversation(db, conversation_id)
    await ensure_participant(db, conversation, caller_id)

    page_size = min(limit or settings.MESSAGE_PAGE_SIZE, settings.MESSAGE_PAGE_SIZE)
    if newest_first:
        ordering = (desc(Message.created_at), desc(Message.id))
    else:
        ordering = (Message.created_at, Message.id)

    result = await db.execute(
        select(Message)
        .where(
            Message.conversation_id == conversation_id,
            Message.is_deleted.is_(False),
        )
        .order_by(*ordering)
        .offset(max(offset, 0))
        .limit(page_size)
    )
    return list(result.scalars().all())


async def post_message(
    db: AsyncSession,
    conversation_id: int,
    sender_id: int,
    content: str,
    message_type: MessageType = MessageType.text,
    priority: Optional[Priority] = None,
) -> Message:
    """Store a message and notify everyone else who should hear about it."""
    text = (content or "").strip()
    if not text:
        raise InvalidArgumentError("content_required")
    if message_type == MessageType.system:
        raise InvalidArgumentError("unsupported_message_type")

    conversation = await get_conversation(db, conversation_id)
    if conversation.kind == ConversationKind.announcement:
        message_type = MessageType.announcement

    team = await team_for(db, conversation)
    team_id = team.id if team else None
    team_name = team.name if team else None
    if message_type == MessageType.announcement:
        if team is None:
            raise ForbiddenError("captain_only")
        # Checked against team membership, not the participant cache.
        if not await is_captain(db, sender_id, team):
            raise ForbiddenError("captain_only")

    await ensure_participant(db, conversation, sender_id)

    sender = await db.get(User, sender_id)
    sender_name = sender.name if sender else "Someone"

    message = Message(
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=text,
        message_type=message_type,
        priority=priority,
    )
    db.add(message)
    conversation.last_message_at = datetime.now(timezone.utc)
    await db.commit()
    message_id = message.id

    if message_type == MessageType.announcement:
        audience = await entitled_user_ids(db, await get_team(db, team_id))
        recipients = await _active_user_ids(db, audience - {sender_id})
        fanout = await notifications.notify_announcement(
            db, recipients, team_id, team_name, message_id, text,
            priority=priority.value if priority else None,
        )
    else:
        audience = await participant_ids(db, conversation_id)
        recipients = await _active_user_ids(db, audience - {sender_id})
        fanout = await notifications.notify_new_message(
            db, recipients, conversation_id, message_id, sender_name, text,
        )

    if not fanout.ok:
        await db.refresh(message)
    return message


async def delete_message(
    db: AsyncSession,
    message_id: int,
    caller_id: int,
    conversation_id: Optional[int] = None,
) -> Message:
    """Soft-delete a message. Allowed for its sender and conversation admins."""
    result = await db.execute(select(Message).where(Message.id == message_id))
    message = result.scalar_one_or_none()
    if not message or (conversation_id is not None and message.conversation_id != conversation_id):
        raise NotFoundError("message_not_found")

    await get_conversation(db, message.conversation_id)
    if message.sender_id != caller_id:
        participant = await get_participant(db, message.conversation_id, caller_id)
        if participant is None or participant.role != ParticipantRole.admin:
            raise ForbiddenError("cannot_delete_message")

    if message.is_deleted:
        return message

    message.is_deleted = True
    message.deleted_at = datetime.now(timezone.utc)
    message.deleted_by = caller_id
    await db.commit()
    logger.info("Message %s deleted by user %s", message_id, caller_id)
    return message

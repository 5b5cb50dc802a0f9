"""Conversations router – direct and group conversations and their messages."""

from typing import Iterable, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scoutlete.database import get_db
from scoutlete.models.conversation import Conversation, ConversationType
from scoutlete.models.message import Message
from scoutlete.models.user import User
from scoutlete.routers.auth import require_user
from scoutlete.schemas.conversation import (
    ConversationOut,
    DirectConversationCreate,
    GroupConversationCreate,
    MessageCreate,
    MessageOut,
)
from scoutlete.services import conversations as conversation_service
from scoutlete.services import messages as message_service
from scoutlete.services.participants import ensure_participant

router = APIRouter(prefix="/conversations", tags=["conversations"])


# ═══════════════════════════════════════════════════════════════
#  Serialisation helpers (shared with the teams router)
# ═══════════════════════════════════════════════════════════════

def _user_summary(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {"id": user.id, "display_name": user.display_name, "avatar_url": user.avatar_url}


async def serialize_conversations(db: AsyncSession, conversations: Iterable[Conversation]) -> list[dict]:
    """Conversations with their participant lists attached."""
    conversations = list(conversations)
    grouped = await conversation_service.list_participants(db, [c.id for c in conversations])
    return [
        {
            "id": c.id,
            "type": c.type,
            "kind": c.kind,
            "title": c.title,
            "description": c.description,
            "team_id": c.team_id,
            "created_by": c.created_by,
            "last_message_at": c.last_message_at,
            "created_at": c.created_at,
            "participants": [
                {"user": _user_summary(user), "role": p.role, "joined_at": p.joined_at}
                for p, user in grouped.get(c.id, [])
            ],
        }
        for c in conversations
    ]


async def serialize_messages(db: AsyncSession, messages: Iterable[Message]) -> list[dict]:
    """Messages enriched with their senders' public profile."""
    messages = list(messages)
    sender_ids = {m.sender_id for m in messages}
    users_dict = {}
    if sender_ids:
        res_users = await db.execute(select(User).where(User.id.in_(sender_ids)))
        users_dict = {u.id: u for u in res_users.scalars().all()}

    return [
        {
            "id": m.id,
            "conversation_id": m.conversation_id,
            "sender_id": m.sender_id,
            "sender": _user_summary(users_dict.get(m.sender_id)),
            "content": m.content,
            "message_type": m.message_type,
            "priority": m.priority,
            "created_at": m.created_at,
        }
        for m in messages
    ]


# ═══════════════════════════════════════════════════════════════
#  Conversations
# ═══════════════════════════════════════════════════════════════

@router.get("", response_model=List[ConversationOut])
async def list_conversations(
    type: Optional[ConversationType] = None,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Every active conversation the caller is in, latest activity first."""
    items = await conversation_service.list_conversations(db, current_user.id, type)
    return await serialize_conversations(db, items)


@router.post("/direct", response_model=ConversationOut)
async def open_direct_conversation(
    body: DirectConversationCreate,
    response: Response,
    exclusive: bool = False,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Return the caller's direct conversation with ``user_id``, creating it if needed.

    With ``exclusive`` an existing conversation is a 409 instead.
    """
    if exclusive:
        conversation = await conversation_service.create_direct(db, current_user.id, body.user_id)
        created = True
    else:
        conversation, created = await conversation_service.get_or_create_direct(db, current_user.id, body.user_id)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return (await serialize_conversations(db, [conversation]))[0]


@router.post("/group", response_model=ConversationOut, status_code=status.HTTP_201_CREATED)
async def create_group_conversation(
    body: GroupConversationCreate,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    conversation = await conversation_service.create_group_conversation(
        db, current_user.id, body.participant_ids, title=body.title, description=body.description,
    )
    return (await serialize_conversations(db, [conversation]))[0]


@router.get("/{conversation_id}", response_model=ConversationOut)
async def get_conversation(
    conversation_id: int,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    user_id = current_user.id
    conversation = await conversation_service.get_conversation(db, conversation_id)
    await ensure_participant(db, conversation, user_id)
    return (await serialize_conversations(db, [conversation]))[0]


# ═══════════════════════════════════════════════════════════════
#  Messages
# ═══════════════════════════════════════════════════════════════

@router.get("/{conversation_id}/messages", response_model=List[MessageOut])
async def list_messages(
    conversation_id: int,
    newest_first: bool = False,
    limit: Optional[int] = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    messages = await message_service.list_messages(
        db, conversation_id, current_user.id, newest_first=newest_first, limit=limit, offset=offset,
    )
    return await serialize_messages(db, messages)


@router.post("/{conversation_id}/messages", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def post_message(
    conversation_id: int,
    body: MessageCreate,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    message = await message_service.post_message(
        db, conversation_id, current_user.id, body.content, body.message_type, body.priority,
    )
    return (await serialize_messages(db, [message]))[0]


@router.delete("/{conversation_id}/messages/{message_id}")
async def delete_message(
    conversation_id: int,
    message_id: int,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    await message_service.delete_message(db, message_id, current_user.id, conversation_id=conversation_id)
    return {"ok": True}

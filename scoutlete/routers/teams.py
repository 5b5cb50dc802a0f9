"""Teams router – team lifecycle, team chat, announcements and repair endpoints."""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from scoutlete.config import settings
from scoutlete.database import get_db
from scoutlete.exceptions import ForbiddenError
from scoutlete.models.conversation import ConversationKind
from scoutlete.models.message import MessageType
from scoutlete.models.user import User
from scoutlete.routers.auth import require_user
from scoutlete.routers.conversations import serialize_conversations, serialize_messages
from scoutlete.schemas.conversation import MessageCreate, MessageOut, TeamConversationOut
from scoutlete.schemas.team import (
    AnnouncementCreate,
    MembershipOut,
    ReconcileReport,
    RepairResult,
    TeamCreate,
    TeamDetailOut,
    TeamOut,
)
from scoutlete.services import messages as message_service
from scoutlete.services import teams as team_service
from scoutlete.services.membership import get_team

router = APIRouter(prefix="/teams", tags=["teams"])


@router.get("", response_model=List[TeamOut])
async def list_teams(db: AsyncSession = Depends(get_db)):
    """List public teams, newest first."""
    return await team_service.list_teams(db)


@router.get("/mine", response_model=List[TeamOut])
async def my_teams(
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return await team_service.list_user_teams(db, current_user.id)


@router.post("", response_model=TeamOut, status_code=status.HTTP_201_CREATED)
async def create_team(
    body: TeamCreate,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a new team with the caller as captain."""
    return await team_service.create_team(
        db,
        current_user.id,
        body.name,
        description=body.description,
        max_members=body.max_members,
        is_public=body.is_public,
    )


@router.post("/fix-missing-members", response_model=List[RepairResult])
async def fix_missing_members(
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Give every team whose creator lacks a membership row its captain back."""
    return await team_service.repair_missing_captains(db)


@router.get("/{team_id}", response_model=TeamDetailOut)
async def team_detail(team_id: int, db: AsyncSession = Depends(get_db)):
    """Show a team and its active members."""
    team = await get_team(db, team_id)
    members = await team_service.team_members(db, team_id)
    detail = TeamOut.model_validate(team).model_dump()
    detail["members"] = [
        {
            "user": {"id": u.id, "display_name": u.display_name, "avatar_url": u.avatar_url},
            "role": m.role,
            "status": m.status,
            "joined_at": m.joined_at,
        }
        for m, u in members
    ]
    return detail


@router.post("/{team_id}/join", response_model=MembershipOut, status_code=status.HTTP_201_CREATED)
async def join_team(
    team_id: int,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return await team_service.join_team(db, team_id, current_user.id)


@router.delete("/{team_id}/leave")
async def leave_team(
    team_id: int,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    await team_service.leave_team(db, team_id, current_user.id)
    return {"ok": True}


# ═══════════════════════════════════════════════════════════════
#  Team chat & announcements
# ═══════════════════════════════════════════════════════════════

async def _conversation_page(db: AsyncSession, team_id: int, kind: ConversationKind, user_id: int) -> dict:
    conversation = await team_service.open_team_conversation(db, team_id, kind, user_id)
    if kind == ConversationKind.announcement:
        messages = await message_service.list_messages(
            db, conversation.id, user_id, newest_first=True, limit=settings.ANNOUNCEMENT_PAGE_SIZE,
        )
    else:
        messages = await message_service.list_messages(db, conversation.id, user_id)
    return {
        "conversation": (await serialize_conversations(db, [conversation]))[0],
        "messages": await serialize_messages(db, messages),
    }


@router.get("/{team_id}/chat", response_model=TeamConversationOut)
async def get_team_chat(
    team_id: int,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """The team's chat conversation with its latest page of messages."""
    return await _conversation_page(db, team_id, ConversationKind.chat, current_user.id)


@router.post("/{team_id}/chat", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def post_team_chat(
    team_id: int,
    body: MessageCreate,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    user_id = current_user.id
    conversation = await team_service.open_team_conversation(db, team_id, ConversationKind.chat, user_id)
    message = await message_service.post_message(
        db, conversation.id, user_id, body.content, body.message_type, body.priority,
    )
    return (await serialize_messages(db, [message]))[0]


@router.get("/{team_id}/announcements", response_model=TeamConversationOut)
async def get_team_announcements(
    team_id: int,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Latest announcements, newest first."""
    return await _conversation_page(db, team_id, ConversationKind.announcement, current_user.id)


@router.post("/{team_id}/announcements", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def post_team_announcement(
    team_id: int,
    body: AnnouncementCreate,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Captains only."""
    user_id = current_user.id
    conversation = await team_service.open_team_conversation(db, team_id, ConversationKind.announcement, user_id)
    message = await message_service.post_message(
        db, conversation.id, user_id, body.content, MessageType.announcement, body.priority,
    )
    return (await serialize_messages(db, [message]))[0]


# ═══════════════════════════════════════════════════════════════
#  Repairs
# ═══════════════════════════════════════════════════════════════

@router.post("/{team_id}/fix-membership")
async def fix_membership(
    team_id: int,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Restore the creator's own captain membership."""
    user_id = current_user.id
    team = await get_team(db, team_id)
    if team.created_by != user_id:
        raise ForbiddenError("creator_only")
    membership, created = await team_service.ensure_captain_membership(db, team_id)
    return {
        "fixed": created,
        "member": MembershipOut.model_validate(membership).model_dump(mode="json"),
    }


@router.post("/{team_id}/reconcile", response_model=ReconcileReport)
async def reconcile_team(
    team_id: int,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return await team_service.reconcile_team(db, team_id, current_user.id)

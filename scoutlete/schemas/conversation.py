"""Conversation and message Pydantic schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from scoutlete.models.conversation import ConversationKind, ConversationType
from scoutlete.models.conversation_participant import ParticipantRole
from scoutlete.models.message import MessageType, Priority
from scoutlete.schemas.user import UserSummary


class DirectConversationCreate(BaseModel):
    user_id: int


class GroupConversationCreate(BaseModel):
    participant_ids: List[int]
    title: Optional[str] = None
    description: Optional[str] = None


class ParticipantOut(BaseModel):
    user: UserSummary
    role: ParticipantRole
    joined_at: Optional[datetime] = None


class ConversationOut(BaseModel):
    id: int
    type: ConversationType
    kind: ConversationKind
    title: Optional[str] = None
    description: Optional[str] = None
    team_id: Optional[int] = None
    created_by: int
    last_message_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    participants: List[ParticipantOut] = []

    model_config = {"from_attributes": True}


class MessageCreate(BaseModel):
    content: str
    message_type: MessageType = MessageType.text
    priority: Optional[Priority] = None


class MessageOut(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    sender: Optional[UserSummary] = None
    content: str
    message_type: MessageType
    priority: Optional[Priority] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TeamConversationOut(BaseModel):
    conversation: ConversationOut
    messages: List[MessageOut]

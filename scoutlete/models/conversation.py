"""Conversation model – direct messages, group chats and team channels."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from scoutlete.database import Base


class ConversationType(str, enum.Enum):
    direct = "direct"
    team = "team"
    group = "group"


class ConversationKind(str, enum.Enum):
    """Which logical channel a conversation is.

    ``chat`` and ``announcement`` both have ``type == team``.
    """
    direct = "direct"
    group = "group"
    chat = "chat"
    announcement = "announcement"

    @property
    def conversation_type(self) -> ConversationType:
        if self in (ConversationKind.chat, ConversationKind.announcement):
            return ConversationType.team
        return ConversationType(self.value)


class Conversation(Base):
    __tablename__ = "conversations"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    type: Mapped[ConversationType] = mapped_column(Enum(ConversationType), nullable=False)
    kind: Mapped[ConversationKind] = mapped_column(Enum(ConversationKind), nullable=False, index=True)

    title: Mapped[Optional[str]] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text)

    team_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"), index=True
    )
    created_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    last_message_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

"""In-app notification fan-out.

Every recipient gets its own row and its own commit, so a failed write for
one recipient neither blocks the others nor undoes the state change that
triggered the notification. Failures are logged, never raised.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from scoutlete.config import settings
from scoutlete.models.notification import Notification

logger = logging.getLogger(__name__)


@dataclass
class FanoutResult:
    delivered: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def preview(text: str, limit: Optional[int] = None) -> str:
    """Shorten *text* for a notification body."""
    limit = limit or settings.NOTIFICATION_PREVIEW_CHARS
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


async def notify(
    db: AsyncSession,
    recipients: Iterable[int],
    notification_type: str,
    title: str,
    body: str,
    payload: Optional[dict[str, Any]] = None,
    link: Optional[str] = None,
    expires_at: Optional[datetime] = None,
) -> FanoutResult:
    """Write one notification per recipient.

    The caller computes *recipients* and leaves the actor out. Anything the
    caller still needs from the session should be committed beforehand: a
    failed recipient rolls back the session.
    """
    result = FanoutResult()
    for user_id in sorted(set(recipients)):
        db.add(
            Notification(
                user_id=user_id,
                type=notification_type,
                title=title,
                message=body,
                data=payload,
                link=link,
                expires_at=expires_at,
            )
        )
        try:
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Could not write %s notification for user %s", notification_type, user_id)
            result.failed.append(user_id)
        else:
            result.delivered.append(user_id)

    if result.failed and not result.delivered:
        logger.error("%s fan-out reached none of %d recipients", notification_type, len(result.failed))
    elif result.failed:
        logger.warning(
            "%s fan-out partial: %d delivered, %d failed",
            notification_type, len(result.delivered), len(result.failed),
        )
    return result


# ═══════════════════════════════════════════════════════════════
#  Event-specific helpers
# ═══════════════════════════════════════════════════════════════

async def notify_new_conversation(db: AsyncSession, recipients: Iterable[int], conversation_id: int, actor_name: str) -> FanoutResult:
    """Tell participants someone started a conversation with them."""
    return await notify(
        db,
        recipients,
        notification_type="new_conversation",
        title="New Message",
        body=f"{actor_name} started a conversation with you",
        payload={"conversation_id": conversation_id},
        link=f"/messages/{conversation_id}",
    )


async def notify_new_message(
    db: AsyncSession,
    recipients: Iterable[int],
    conversation_id: int,
    message_id: int,
    actor_name: str,
    content: str,
) -> FanoutResult:
    return await notify(
        db,
        recipients,
        notification_type="new_message",
        title=f"New message from {actor_name}",
        body=preview(content),
        payload={"conversation_id": conversation_id, "message_id": message_id},
        link=f"/messages/{conversation_id}",
    )


async def notify_announcement(
    db: AsyncSession,
    recipients: Iterable[int],
    team_id: int,
    team_name: str,
    message_id: int,
    content: str,
    priority: Optional[str] = None,
) -> FanoutResult:
    """Broadcast a captain's announcement to the team."""
    return await notify(
        db,
        recipients,
        notification_type="team_announcement",
        title=f"Team Announcement: {team_name}",
        body=preview(content),
        payload={"team_id": team_id, "announcement_id": message_id, "priority": priority},
        link=f"/teams/{team_id}",
    )


async def notify_team_joined(db: AsyncSession, captain_id: int, team_id: int, team_name: str, member_name: str) -> FanoutResult:
    return await notify(
        db,
        [captain_id],
        notification_type="team_joined",
        title="New Team Member",
        body=f"{member_name} joined {team_name}",
        payload={"team_id": team_id},
        link=f"/teams/{team_id}",
    )


async def notify_connection_request(db: AsyncSession, recipient_id: int, connection_id: int, requester_id: int, requester_name: str) -> FanoutResult:
    return await notify(
        db,
        [recipient_id],
        notification_type="connection_request",
        title="New Connection Request",
        body=f"{requester_name} wants to connect with you",
        payload={"connection_id": connection_id, "user_id": requester_id},
        link="/connections",
    )


async def notify_connection_accepted(db: AsyncSession, requester_id: int, connection_id: int, accepter_name: str) -> FanoutResult:
    return await notify(
        db,
        [requester_id],
        notification_type="connection_accepted",
        title="Connection Accepted",
        body=f"{accepter_name} accepted your connection request",
        payload={"connection_id": connection_id},
        link="/connections",
    )

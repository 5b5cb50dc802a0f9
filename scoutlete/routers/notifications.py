"""Notifications router – inbox listing and read markers."""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import desc, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from scoutlete.config import settings
from scoutlete.database import get_db
from scoutlete.exceptions import NotFoundError
from scoutlete.models.notification import Notification
from scoutlete.models.user import User
from scoutlete.routers.auth import get_current_user, require_user
from scoutlete.schemas.notification import NotificationInbox, NotificationOut

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _not_expired(now: datetime):
    return or_(Notification.expires_at.is_(None), Notification.expires_at > now)


@router.get("", response_model=NotificationInbox)
async def get_notifications(
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Return the latest notifications + unread count for the current user."""
    if not current_user:
        return {"notifications": [], "unread_count": 0}

    now = datetime.now(timezone.utc)

    # Unread count
    count_result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == current_user.id,
            Notification.is_read.is_(False),
            _not_expired(now),
        )
    )
    unread_count = count_result.scalar() or 0

    # Latest page
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == current_user.id, _not_expired(now))
        .order_by(desc(Notification.created_at), desc(Notification.id))
        .limit(settings.NOTIFICATION_PAGE_SIZE)
    )
    notifs = result.scalars().all()

    return {"unread_count": unread_count, "notifications": notifs}


@router.post("/read/{notif_id}", response_model=NotificationOut)
async def mark_read(
    notif_id: int,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark a single notification as read."""
    result = await db.execute(
        select(Notification).where(
            Notification.id == notif_id,
            Notification.user_id == current_user.id,
        )
    )
    notif = result.scalar_one_or_none()
    if not notif:
        raise NotFoundError("notification_not_found")

    if not notif.is_read:
        notif.is_read = True
        notif.read_at = datetime.now(timezone.utc)
        await db.commit()
    return notif


@router.post("/read-all")
async def mark_all_read(
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark all notifications as read for the current user."""
    result = await db.execute(
        update(Notification)
        .where(
            Notification.user_id == current_user.id,
            Notification.is_read.is_(False),
        )
        .values(is_read=True, read_at=datetime.now(timezone.utc))
    )
    await db.commit()
    return {"ok": True, "updated": result.rowcount}

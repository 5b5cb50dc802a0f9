"""User-to-user connection requests."""

import enum
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from scoutlete.exceptions import ConflictError, ForbiddenError, InvalidArgumentError, NotFoundError
from scoutlete.models.user_connection import ConnectionStatus, UserConnection
from scoutlete.services import notifications
from scoutlete.services.identity import get_active_user

logger = logging.getLogger(__name__)


class ConnectionAction(str, enum.Enum):
    accept = "accept"
    decline = "decline"
    block = "block"


class ConnectionFilter(str, enum.Enum):
    all = "all"
    accepted = "accepted"
    pending = "pending"
    blocked = "blocked"


def _between(user_id: int, other_id: int):
    return or_(
        and_(UserConnection.user_id == user_id, UserConnection.connected_user_id == other_id),
        and_(UserConnection.user_id == other_id, UserConnection.connected_user_id == user_id),
    )


async def _get_connection(db: AsyncSession, connection_id: int, user_id: int) -> UserConnection:
    result = await db.execute(select(UserConnection).where(UserConnection.id == connection_id))
    connection = result.scalar_one_or_none()
    if not connection:
        raise NotFoundError("connection_not_found")
    if user_id not in (connection.user_id, connection.connected_user_id):
        raise ForbiddenError("not_your_connection")
    return connection


async def list_connections(
    db: AsyncSession,
    user_id: int,
    which: ConnectionFilter = ConnectionFilter.all,
) -> list[UserConnection]:
    """Connections touching *user_id*.

    ``pending`` only lists requests waiting on this user, ``blocked`` only
    the ones this user blocked, and ``all`` hides blocked ones.
    """
    stmt = select(UserConnection).where(
        or_(UserConnection.user_id == user_id, UserConnection.connected_user_id == user_id)
    )
    if which == ConnectionFilter.accepted:
        stmt = stmt.where(UserConnection.status == ConnectionStatus.accepted)
    elif which == ConnectionFilter.pending:
        stmt = stmt.where(
            UserConnection.status == ConnectionStatus.pending,
            UserConnection.connected_user_id == user_id,
        )
    elif which == ConnectionFilter.blocked:
        stmt = stmt.where(
            UserConnection.status == ConnectionStatus.blocked,
            UserConnection.blocked_by == user_id,
        )
    else:
        stmt = stmt.where(UserConnection.status != ConnectionStatus.blocked)
    result = await db.execute(stmt.order_by(UserConnection.created_at.desc(), UserConnection.id.desc()))
    return list(result.scalars().all())


async def request_connection(
    db: AsyncSession,
    user_id: int,
    other_id: int,
    message: Optional[str] = None,
) -> UserConnection:
    if user_id == other_id:
        raise InvalidArgumentError("cannot_connect_with_self")
    requester = await get_active_user(db, user_id)
    requester_name = requester.name
    await get_active_user(db, other_id)

    existing = await db.execute(select(UserConnection.id).where(_between(user_id, other_id)).limit(1))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("connection_exists")

    connection = UserConnection(
        user_id=user_id,
        connected_user_id=other_id,
        status=ConnectionStatus.pending,
        message=message,
    )
    db.add(connection)
    await db.commit()
    connection_id = connection.id
    logger.info("User %s asked to connect with %s", user_id, other_id)

    fanout = await notifications.notify_connection_request(db, other_id, connection_id, user_id, requester_name)
    if not fanout.ok:
        await db.refresh(connection)
    return connection


async def respond_connection(
    db: AsyncSession,
    connection_id: int,
    user_id: int,
    action: ConnectionAction,
) -> UserConnection:
    """Accept, decline or block. Only the recipient may accept."""
    connection = await _get_connection(db, connection_id, user_id)

    if action == ConnectionAction.accept:
        if connection.connected_user_id != user_id:
            raise ForbiddenError("only_recipient_can_accept")
        if connection.status == ConnectionStatus.blocked:
            raise ForbiddenError("connection_blocked")
        if connection.status == ConnectionStatus.accepted:
            return connection
        accepter = await get_active_user(db, user_id)
        accepter_name = accepter.name
        requester_id = connection.user_id
        connection.status = ConnectionStatus.accepted
        connection.connected_at = datetime.now(timezone.utc)
        await db.commit()
        logger.info("Connection %s accepted", connection_id)

        fanout = await notifications.notify_connection_accepted(db, requester_id, connection_id, accepter_name)
        if not fanout.ok:
            await db.refresh(connection)
        return connection

    if action == ConnectionAction.decline:
        connection.status = ConnectionStatus.declined
    else:
        connection.status = ConnectionStatus.blocked
        connection.blocked_by = user_id
    await db.commit()
    logger.info("Connection %s %s by user %s", connection_id, connection.status.value, user_id)
    return connection


async def remove_connection(db: AsyncSession, connection_id: int, user_id: int) -> None:
    """Delete a connection. Either side may do it, except to undo someone else's block."""
    connection = await _get_connection(db, connection_id, user_id)
    if connection.status == ConnectionStatus.blocked and connection.blocked_by != user_id:
        raise ForbiddenError("connection_blocked")
    await db.delete(connection)
    await db.commit()
    logger.info("Connection %s removed by user %s", connection_id, user_id)

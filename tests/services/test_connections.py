import pytest
from sqlalchemy import select

from scoutlete.exceptions import ConflictError, ForbiddenError, InvalidArgumentError
from scoutlete.models.notification import Notification
from scoutlete.models.user_connection import ConnectionStatus
from scoutlete.services import connections
from scoutlete.services.connections import ConnectionAction, ConnectionFilter


async def _notes(db):
    rows = (await db.execute(select(Notification.user_id, Notification.type).order_by(Notification.id))).all()
    return [tuple(r) for r in rows]


@pytest.mark.asyncio
async def test_request_and_accept_notify_each_side(db, make_user):
    asker, target = await make_user("Asker"), await make_user("Target")

    request = await connections.request_connection(db, asker.id, target.id, "Train together?")
    with pytest.raises(ForbiddenError):
        await connections.respond_connection(db, request.id, asker.id, ConnectionAction.accept)
    accepted = await connections.respond_connection(db, request.id, target.id, ConnectionAction.accept)

    assert accepted.status == ConnectionStatus.accepted
    assert accepted.connected_at is not None
    assert await _notes(db) == [(target.id, "connection_request"), (asker.id, "connection_accepted")]


@pytest.mark.asyncio
async def test_duplicate_request_in_either_direction_conflicts(db, make_user):
    a, b = await make_user(), await make_user()
    await connections.request_connection(db, a.id, b.id)

    with pytest.raises(ConflictError):
        await connections.request_connection(db, a.id, b.id)
    with pytest.raises(ConflictError):
        await connections.request_connection(db, b.id, a.id)
    with pytest.raises(InvalidArgumentError):
        await connections.request_connection(db, a.id, a.id)


@pytest.mark.asyncio
async def test_block_hides_connection_and_only_blocker_lifts_it(db, make_user):
    a, b, c = await make_user(), await make_user(), await make_user()
    request = await connections.request_connection(db, a.id, b.id)

    blocked = await connections.respond_connection(db, request.id, b.id, ConnectionAction.block)
    assert blocked.blocked_by == b.id
    assert await connections.list_connections(db, a.id) == []
    assert [x.id for x in await connections.list_connections(db, b.id, ConnectionFilter.blocked)] == [request.id]

    with pytest.raises(ForbiddenError):
        await connections.remove_connection(db, request.id, a.id)
    with pytest.raises(ForbiddenError):
        await connections.respond_connection(db, request.id, c.id, ConnectionAction.decline)
    await connections.remove_connection(db, request.id, b.id)
    assert await connections.list_connections(db, b.id, ConnectionFilter.blocked) == []


@pytest.mark.asyncio
async def test_pending_filter_lists_incoming_only(db, make_user):
    a, b = await make_user(), await make_user()
    request = await connections.request_connection(db, a.id, b.id)

    assert await connections.list_connections(db, a.id, ConnectionFilter.pending) == []
    assert [x.id for x in await connections.list_connections(db, b.id, ConnectionFilter.pending)] == [request.id]

"""Connections router – requests between athletes and their answers."""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from scoutlete.database import get_db
from scoutlete.models.user import User
from scoutlete.routers.auth import require_user
from scoutlete.schemas.connection import ConnectionCreate, ConnectionOut, ConnectionRespond
from scoutlete.services import connections as connection_service
from scoutlete.services.connections import ConnectionFilter

router = APIRouter(prefix="/connections", tags=["connections"])


@router.get("", response_model=List[ConnectionOut])
async def list_connections(
    which: ConnectionFilter = Query(default=ConnectionFilter.all, alias="filter"),
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return await connection_service.list_connections(db, current_user.id, which)


@router.post("", response_model=ConnectionOut, status_code=status.HTTP_201_CREATED)
async def request_connection(
    body: ConnectionCreate,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Send a connection request; the other user is notified."""
    return await connection_service.request_connection(
        db, current_user.id, body.connected_user_id, body.message,
    )


@router.patch("/{connection_id}", response_model=ConnectionOut)
async def respond_connection(
    connection_id: int,
    body: ConnectionRespond,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Accept, decline or block."""
    return await connection_service.respond_connection(db, connection_id, current_user.id, body.action)


@router.delete("/{connection_id}")
async def remove_connection(
    connection_id: int,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    await connection_service.remove_connection(db, connection_id, current_user.id)
    return {"ok": True}

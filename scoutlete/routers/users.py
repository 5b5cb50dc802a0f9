"""Users router – profiles."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from scoutlete.database import get_db
from scoutlete.models.user import User
from scoutlete.routers.auth import require_user
from scoutlete.schemas.user import MeOut, UserOut
from scoutlete.services.identity import get_active_user

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=MeOut)
async def read_me(current_user: User = Depends(require_user)):
    """Return the authenticated user's profile."""
    return current_user


@router.get("/{user_id}", response_model=UserOut)
async def read_user(user_id: int, db: AsyncSession = Depends(get_db)):
    """Get a public user profile by ID. Deactivated users are not found."""
    return await get_active_user(db, user_id)

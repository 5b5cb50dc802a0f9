"""Identity mapping between the external identity provider and internal users."""

import logging
from typing import Any, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scoutlete.exceptions import InvalidArgumentError, NotFoundError
from scoutlete.models.user import User

logger = logging.getLogger(__name__)


async def get_by_external_id(db: AsyncSession, external_id: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.external_id == external_id))
    return result.scalar_one_or_none()


async def resolve_internal_user(db: AsyncSession, external_id: str) -> User:
    """Map an identity-provider subject to the active internal user."""
    user = await get_by_external_id(db, external_id)
    if not user or not user.is_active:
        raise NotFoundError("user_not_found")
    return user


def _display_name(claims: Mapping[str, Any]) -> Optional[str]:
    if claims.get("name"):
        return claims["name"]
    parts = [claims.get("given_name"), claims.get("family_name")]
    joined = " ".join(p for p in parts if p)
    return joined or None


async def sync_user(db: AsyncSession, claims: Mapping[str, Any]) -> User:
    """Create or update a user from identity-provider claims.

    Empty claims never overwrite stored values. A deactivated user that signs
    in again is reactivated.
    """
    external_id = claims.get("sub")
    if not external_id:
        raise InvalidArgumentError("missing_subject")

    fields = {
        "email": claims.get("email"),
        "first_name": claims.get("given_name"),
        "last_name": claims.get("family_name"),
        "display_name": _display_name(claims),
        "avatar_url": claims.get("picture"),
    }

    user = await get_by_external_id(db, external_id)
    if user is None:
        user = User(
            external_id=external_id,
            is_verified=bool(claims.get("email_verified")),
            is_active=True,
            **fields,
        )
        db.add(user)
        await db.commit()
        logger.info("Created user %s for subject %s", user.id, external_id)
        return user

    for key, value in fields.items():
        if value:
            setattr(user, key, value)
    if claims.get("email_verified") is not None:
        user.is_verified = bool(claims["email_verified"])
    if not user.is_active:
        logger.info("Reactivating user %s", user.id)
        user.is_active = True
    await db.commit()
    return user


async def deactivate_user(db: AsyncSession, external_id: str) -> User:
    """Soft-delete the user mapped to *external_id*. Idempotent."""
    user = await get_by_external_id(db, external_id)
    if not user:
        raise NotFoundError("user_not_found")
    if user.is_active:
        user.is_active = False
        await db.commit()
        logger.info("Deactivated user %s (subject %s)", user.id, external_id)
    return user


async def get_active_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id, User.is_active.is_(True)))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("user_not_found")
    return user

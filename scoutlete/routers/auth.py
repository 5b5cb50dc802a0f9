"""
Authentication router – identity-provider tokens, user sync and webhooks.

Endpoints:
    POST /auth/sync                     → create/update the caller from token claims
    POST /auth/logout                   → clear the token cookie
    POST /auth/webhooks/user-deleted    → signed notice that a user is gone
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from svix.webhooks import Webhook, WebhookVerificationError

from scoutlete.config import settings
from scoutlete.database import get_db
from scoutlete.exceptions import NotFoundError
from scoutlete.models.user import User
from scoutlete.schemas.user import MeOut
from scoutlete.services import identity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

COOKIE_KEY = "access_token"


# ═══════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════

def create_access_token(data: dict) -> str:
    """Create a signed JWT with an expiry claim."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _read_token(request: Request) -> Optional[str]:
    """Bearer header first, then the cookie."""
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return request.cookies.get(COOKIE_KEY)


def decode_claims(token: str) -> Optional[dict[str, Any]]:
    """Verified claims of *token*, or None when it is invalid or has no subject."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if not payload.get("sub"):
        return None
    return payload


async def get_token_claims(request: Request) -> dict[str, Any]:
    token = _read_token(request)
    claims = decode_claims(token) if token else None
    if claims is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return claims


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """
    Decode the token and map its subject to the internal user.
    Returns None when there is no valid token or no active user behind it.
    """
    token = _read_token(request)
    if not token:
        return None
    claims = decode_claims(token)
    if claims is None:
        return None
    try:
        return await identity.resolve_internal_user(db, str(claims["sub"]))
    except NotFoundError:
        return None


async def require_user(current_user: Optional[User] = Depends(get_current_user)) -> User:
    if not current_user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return current_user


# ═══════════════════════════════════════════════════════════════
#  Routes
# ═══════════════════════════════════════════════════════════════

@router.post("/sync", response_model=MeOut)
async def sync_user(
    request: Request,
    response: Response,
    claims: dict = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db),
):
    """Create or refresh the caller's internal user from their token claims."""
    user = await identity.sync_user(db, claims)
    # Browsers keep calling with the cookie after the first sync.
    response.set_cookie(
        key=COOKIE_KEY,
        value=_read_token(request),
        httponly=True,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        samesite="lax",
    )
    return user


@router.post("/logout")
async def logout(response: Response):
    """Clear the auth cookie."""
    response.delete_cookie(key=COOKIE_KEY)
    return {"ok": True}


@router.post("/webhooks/user-deleted")
async def user_deleted_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Soft-delete the user named in a signed ``user.deleted`` event."""
    if not settings.IDENTITY_WEBHOOK_SECRET:
        logger.error("IDENTITY_WEBHOOK_SECRET is not configured")
        raise HTTPException(status_code=500, detail="Missing webhook secret")

    payload = await request.body()
    try:
        event = Webhook(settings.IDENTITY_WEBHOOK_SECRET).verify(payload, dict(request.headers))
    except WebhookVerificationError:
        logger.warning("Rejected webhook with a bad or stale signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Webhook verification failed")

    event_type = event.get("type")
    external_id = (event.get("data") or {}).get("id")
    logger.info("Webhook received: %s for subject %s", event_type, external_id)
    if event_type != "user.deleted":
        return {"ok": True, "handled": False}
    if not external_id:
        raise HTTPException(status_code=400, detail="Missing user id")

    user = await identity.deactivate_user(db, str(external_id))
    return {"ok": True, "handled": True, "user_id": user.id}

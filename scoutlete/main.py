"""
Scoutlete – FastAPI application entry-point.

Run with:
    uvicorn scoutlete.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

from scoutlete import models  # noqa: F401  (registers tables on Base.metadata)
from scoutlete.config import settings
from scoutlete.database import Base, engine
from scoutlete.exceptions import ScoutleteError, TransientError

# ── Import routers ──
from scoutlete.routers import auth, connections, conversations, notifications, teams, users

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: create tables on startup ──
@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield


app = FastAPI(
    title=settings.APP_NAME,
    description="Athlete conversations, team chat and announcements.",
    version="0.1.0",
    lifespan=lifespan,
)


# ── Error mapping ──
@app.exception_handler(ScoutleteError)
async def scoutlete_error_handler(request: Request, exc: ScoutleteError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
async def store_unavailable_handler(request: Request, exc: Exception):
    logger.error("Store unavailable during %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": TransientError.detail},
    )


# ── Register API routers ──
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(teams.router)
app.include_router(conversations.router)
app.include_router(connections.router)
app.include_router(notifications.router)


@app.get("/health")
async def health():
    return {"status": "ok", "app": settings.APP_NAME}

"""
Scoutlete – Async SQLAlchemy engine, session, and declarative base.
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from scoutlete.config import settings


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for *url* with per-dialect connection tweaks."""
    kwargs = {"echo": echo, "future": True}

    # PgBouncer (transaction mode) does not support prepared statement caching.
    if "postgresql" in url:
        kwargs["connect_args"] = {"statement_cache_size": 0}

    new_engine = create_async_engine(url, **kwargs)

    # SQLite ships with foreign keys off; ondelete=CASCADE depends on them.
    if url.startswith("sqlite"):
        @event.listens_for(new_engine.sync_engine, "connect")
        def _enable_sqlite_fks(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


# ── Engine ──
engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# ── Session factory ──
async_session = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Declarative base ──
class Base(DeclarativeBase):
    """Base class for all ORM models."""

    # Server-side timestamps are read back after INSERT/UPDATE, so async
    # code never has to lazy-load them.
    __mapper_args__ = {"eager_defaults": True}


# ── Dependency for FastAPI routes ──
async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async database session, auto-closed on exit."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

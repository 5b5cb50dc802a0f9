import itertools

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scoutlete import models  # noqa: F401
from scoutlete.database import Base, build_engine, get_db
from scoutlete.main import app
from scoutlete.models.team import Team
from scoutlete.models.team_membership import MemberStatus, TeamMembership, TeamRole
from scoutlete.models.user import User
from scoutlete.routers.auth import create_access_token

_ids = itertools.count(1)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """A fresh SQLite database per test."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'scoutlete-test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield test_engine
    finally:
        await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def api_client(session_factory):
    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    async def _make_user(name=None, external_id=None, is_active=True):
        n = next(_ids)
        user = User(
            external_id=external_id or f"ext_{n}",
            email=f"athlete{n}@example.com",
            display_name=name or f"Athlete {n}",
            is_active=is_active,
        )
        db.add(user)
        await db.commit()
        return user

    return _make_user


@pytest.fixture
def make_team(db):
    """Insert a team directly, optionally without the creator's captain row."""

    async def _make_team(captain, members=(), captain_row=True, name="Falcons", max_members=4):
        team = Team(
            name=name,
            created_by=captain.id,
            max_members=max_members,
            current_members=len(members) + (1 if captain_row else 0),
        )
        db.add(team)
        await db.commit()
        if captain_row:
            db.add(TeamMembership(team_id=team.id, user_id=captain.id, role=TeamRole.captain, status=MemberStatus.active))
        for member in members:
            db.add(TeamMembership(team_id=team.id, user_id=member.id, role=TeamRole.member, status=MemberStatus.active))
        await db.commit()
        return team

    return _make_team


@pytest.fixture
def auth_headers():
    def _headers(user_or_external_id):
        sub = getattr(user_or_external_id, "external_id", user_or_external_id)
        return {"Authorization": f"Bearer {create_access_token({'sub': sub})}"}

    return _headers

import pytest
from typing import AsyncGenerator
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, Mock

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from club_scheduler.main import app
from club_scheduler.database import Base
from club_scheduler.api.deps import get_db  # Import from where routes actually use it
from club_scheduler.models import (
    Event, EventStatus, EventType, Field, Site, SpondConfig, Team
)
from club_scheduler.services.spond_session import SpondSessionManager


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

GROUP_ID = "6F1A2B3C4D5E6F708192A3B4C5D6E7F8"
SUBGROUP_ID = "0A1B2C3D4E5F60718293A4B5C6D7E8F9"


# Note: Using pytest-asyncio's built-in event_loop fixture (asyncio_mode = auto)


@pytest.fixture(scope="function")
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def test_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def mock_spond_client() -> Mock:
    """Spond client double; every remote call is an AsyncMock."""
    spond = Mock()
    spond.token = "test-token"
    spond.ensure_authenticated = AsyncMock()
    spond.get_groups = AsyncMock(return_value=[])
    spond.get_group = AsyncMock(return_value=None)
    spond.get_events = AsyncMock(return_value=[])
    spond.get_event = AsyncMock(return_value=None)
    spond.get_event_attendance = AsyncMock()
    spond.create_event = AsyncMock()
    spond.update_event = AsyncMock()
    spond.test_connection = AsyncMock(
        return_value={"success": True, "message": "Connected successfully. Found 1 group(s).", "group_count": 1}
    )
    return spond


@pytest.fixture(scope="function")
async def client(test_session, mock_spond_client) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with overridden database dependency and Spond session."""

    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.state.spond_sessions = SpondSessionManager(
        client_factory=lambda username, password: mock_spond_client
    )

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.spond_sessions = SpondSessionManager()


# --- Data Fixtures ---

@pytest.fixture
async def spond_config(test_session) -> SpondConfig:
    """Active Spond credentials."""
    config = SpondConfig(username="coach@example.org", password="secret", is_active=True)
    test_session.add(config)
    await test_session.commit()
    await test_session.refresh(config)
    return config


@pytest.fixture
async def sample_teams(test_session) -> list[Team]:
    """A team mapped to a Spond group and one mapped to a subgroup of it."""
    teams = [
        Team(id=1, name="Renegades U14", sport="Tackle Football", spond_group_id=GROUP_ID),
        Team(
            id=2,
            name="Renegades Flag",
            sport="Flag Football",
            spond_group_id=SUBGROUP_ID,
            spond_parent_group_id=GROUP_ID,
        ),
        Team(id=3, name="Renegades Alumni"),
    ]
    test_session.add_all(teams)
    await test_session.commit()
    for team in teams:
        await test_session.refresh(team)
    return teams


@pytest.fixture
async def sample_field(test_session) -> Field:
    """Field 2 at Riverside Park."""
    site = Site(
        id=1,
        name="Riverside Park",
        address="12 River Road",
        city="Springfield",
        latitude=59.9139,
        longitude=10.7522,
    )
    field = Field(id=1, site_id=1, name="Field 2")
    test_session.add_all([site, field])
    await test_session.commit()
    await test_session.refresh(field)
    return field


@pytest.fixture
async def sample_event(test_session, sample_teams, sample_field) -> Event:
    """Unlinked practice at 18:10 on 2026-11-05."""
    start = datetime(2026, 11, 5, 18, 10)
    event = Event(
        name="U14 Practice",
        description="Bring pads",
        event_type=EventType.practice,
        status=EventStatus.planned,
        start_time=start,
        end_time=start + timedelta(minutes=90),
        team_id=sample_teams[0].id,
        team_ids=[sample_teams[0].id],
        field_id=sample_field.id,
    )
    test_session.add(event)
    await test_session.commit()
    await test_session.refresh(event)
    return event

"""Service test fixtures — async DB, FastAPI test client, fakes for the deferred seams.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use test DB session
    - db_manager patched for code that opens its own session
    - The assessment runner is a FakeRunner: records calls, can block or fail on demand
    - The observer is a RecordingObserver: tests assert on events, not log output

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for route tests
      (PostgreSQL-specific features not exercised here)
    - Real BackgroundTaskRegistry: the non-blocking guarantee is tested end to end
"""

import asyncio
from dataclasses import dataclass
from datetime import date

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

import crewgate.infrastructure.database as db_module
from crewgate.api.dependencies import (
    get_assessment_runner, get_observer,
)
from crewgate.core.domain_types import RiskLevel
from crewgate.db.base import Base
from crewgate.infrastructure.background_tasks import (
    BackgroundTaskRegistry, get_task_registry,
)
from crewgate.infrastructure.database import get_db, DatabaseSessionManager
from crewgate.main import app
from crewgate.models import (
    Activity, ActivityRequirement, Asset, Document, Membership, Profile, Segment,
)


class RecordingObserver:
    """AdmissionObserver that keeps every event as (name, args)."""

    def __init__(self):
        self.events: list[tuple[str, tuple]] = []

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)

        def record(*args):
            self.events.append((name, args))
        return record


class FakeRunner:
    """AssessmentRunner stand-in."""

    def __init__(self):
        self.calls: list = []
        self.release = asyncio.Event()
        self.release.set()
        self.error: Exception | None = None

    async def __call__(self, membership_id) -> None:
        self.calls.append(membership_id)
        await self.release.wait()
        if self.error:
            raise self.error


@dataclass
class Journey:
    owner: Profile
    asset: Asset
    activity: Activity
    segment: Segment


class Seeder:
    """Inserts rows for a test scenario."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _save(self, obj):
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def profile(self, **kwargs) -> Profile:
        defaults = {
            "full_name": "Crew Member",
            "roles": ["crew"],
            "experience_level": 2,
            "risk_levels": [RiskLevel.COASTAL.value],
            "skills": ["Cooking"],
            "ai_processing_consent": True,
        }
        defaults.update(kwargs)
        return await self._save(Profile(**defaults))

    async def journey(
        self,
        state: str = "Published",
        auto_approval_enabled: bool = False,
        auto_approval_threshold: int = 80,
        risk_levels: list[str] | None = None,
        min_experience_level: int | None = None,
    ) -> Journey:
        owner = await self.profile(full_name="Boat Owner", roles=["owner"])
        asset = await self._save(Asset(owner_id=owner.id, name="Albatross"))
        activity = await self._save(Activity(
            asset_id=asset.id,
            name="Atlantic Crossing",
            state=state,
            risk_levels=risk_levels or [],
            min_experience_level=min_experience_level,
            auto_approval_enabled=auto_approval_enabled,
            auto_approval_threshold=auto_approval_threshold,
        ))
        segment = await self._save(Segment(
            activity_id=activity.id,
            name="Canaries to Cape Verde",
            start_date=date(2026, 11, 1),
            end_date=date(2026, 11, 8),
            skills=["Navigation"],
        ))
        return Journey(owner, asset, activity, segment)

    async def requirement(self, activity: Activity, kind: str, **kwargs) -> ActivityRequirement:
        return await self._save(ActivityRequirement(
            activity_id=activity.id, requirement_type=kind, **kwargs,
        ))

    async def document(self, owner: Profile) -> Document:
        return await self._save(Document(owner_id=owner.id, file_name="passport.jpg"))

    async def membership(self, participant: Profile, segment: Segment, **kwargs) -> Membership:
        return await self._save(Membership(
            participant_id=participant.id, segment_id=segment.id, **kwargs,
        ))


def _participant_headers(profile: Profile, roles: str = "crew") -> dict:
    return {"X-Participant-Id": str(profile.id), "X-Participant-Roles": roles}


@pytest.fixture
def crew_headers():
    """Gateway identity headers for a seeded profile."""
    return _participant_headers


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def seed(test_db) -> Seeder:
    return Seeder(test_db)


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def registry() -> BackgroundTaskRegistry:
    return BackgroundTaskRegistry()


@pytest.fixture
async def client(test_engine, test_session_factory, observer, runner, registry):
    """FastAPI test client with DB and deferred-assessment seams overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_observer] = lambda: observer
    app.dependency_overrides[get_assessment_runner] = lambda: runner
    app.dependency_overrides[get_task_registry] = lambda: registry

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    await registry.drain(timeout=1)
    app.dependency_overrides.clear()
    db_module.db_manager = original_manager

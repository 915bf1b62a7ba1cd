"""
Shared fixtures: an in-memory SQLite database per test.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from milestone_escrow.infrastructure.local.database import Base
from milestone_escrow.infrastructure.local.milestone_repository import SqliteMilestoneRepository
from milestone_escrow.infrastructure.local.project_repository import SqliteProjectRepository
from milestone_escrow.models.enums import UserRole
from milestone_escrow.models.milestone import MilestoneCreate
from milestone_escrow.models.project import ProjectCreate
from milestone_escrow.models.user import ActorContext
from milestone_escrow.utils.datetime_utils import now_utc


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session factory bound to the test database, passed to repositories."""
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_user_id():
    return "partner_1"


# ============================================
# Domain fixtures
# ============================================


@pytest.fixture
def project_repo(session_factory):
    return SqliteProjectRepository(session_factory=session_factory)


@pytest.fixture
def milestone_repo(session_factory):
    return SqliteMilestoneRepository(session_factory=session_factory)


@pytest_asyncio.fixture
async def project(project_repo, test_user_id):
    """Project owned by partner_1, worked on by student_1, supervised by supervisor_1."""
    return await project_repo.create(
        test_user_id,
        ProjectCreate(
            name="Campus Energy Dashboard",
            assignee_ids=["student_1"],
            supervisor_ids=["supervisor_1"],
        ),
    )


@pytest.fixture
def owner(test_user_id):
    return ActorContext(user_id=test_user_id, role=UserRole.PARTNER)


@pytest.fixture
def student():
    return ActorContext(user_id="student_1", role=UserRole.STUDENT)


@pytest.fixture
def supervisor():
    return ActorContext(user_id="supervisor_1", role=UserRole.SUPERVISOR)


@pytest.fixture
def admin():
    return ActorContext(user_id="admin_1", role=UserRole.SUPER_ADMIN)


@pytest.fixture
def make_milestone_create():
    def factory(project_id, **overrides) -> MilestoneCreate:
        data = {
            "project_id": project_id,
            "title": "Data pipeline",
            "scope": "Ingest meter readings into the warehouse",
            "acceptance_criteria": "Hourly readings visible for every building",
            "due_date": now_utc() + timedelta(days=30),
            "amount": Decimal("1000.00"),
        }
        data.update(overrides)
        return MilestoneCreate(**data)

    return factory

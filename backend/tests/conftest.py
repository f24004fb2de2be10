"""
Shared fixtures.

Database tests run against a fresh aiosqlite file per test; the schema is
created with workforce.database.init_db so partial indexes and constraints
match production.
"""

import uuid

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from workforce.config import Settings
from workforce.database import init_db
from workforce.schemas.analysis import SkillMap
from workforce.services import encryption
from workforce.services.fit_scoring import FitScoringEngine
from workforce.storage import Storage

TEST_KEY = "0123456789abcdef" * 4


@pytest.fixture(autouse=True)
def fixed_encryption_key():
    """Deterministic cipher so stored tokens round-trip within a test."""
    encryption.validate_encryption_config(Settings(encryption_key=TEST_KEY, environment="development"))
    yield
    encryption._cipher = None


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def storage(db_engine):
    return Storage(async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False))


@pytest.fixture
def fallback_engine():
    """Engine with no AI judge: every judgment takes the rule-based path."""
    return FitScoringEngine(judge=None)


class Factory:
    """Creates persisted entities with sensible defaults."""

    def __init__(self, storage: Storage):
        self.storage = storage

    async def project(self, **fields):
        fields.setdefault("business_user_id", "biz-1")
        fields.setdefault("name", "Platform Rebuild")
        return await self.storage.create_project(**fields)

    async def milestone(self, project=None, **fields):
        project = project or await self.project()
        fields.setdefault("name", "Backend API")
        fields.setdefault("description", "Build REST endpoints")
        fields.setdefault(
            "skill_map",
            SkillMap(milestone=fields["name"], required_skills=["python", "postgres"]).model_dump(),
        )
        return await self.storage.create_milestone(project_id=project.id, **fields)

    async def candidate(self, **fields):
        fields.setdefault("name", "Ada Lovelace")
        fields.setdefault("email", f"{uuid.uuid4().hex[:8]}@example.com")
        fields.setdefault("skills", ["python", "postgres", "react"])
        fields.setdefault("experience", "5 years building Python services")
        return await self.storage.create_candidate(**fields)


@pytest.fixture
def factory(storage):
    return Factory(storage)

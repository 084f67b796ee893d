"""
Shared pytest fixtures and path setup for unit tests.
"""

import os
import sys
from pathlib import Path

# Set required environment variables BEFORE any dbconfig imports to prevent
# Pydantic Settings validation errors. These are test-only defaults.
os.environ.setdefault("DBCONFIG_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DBCONFIG_ENCRYPTION_KEY", "test-encryption-key-for-unit-tests")
os.environ.setdefault("DBCONFIG_ENVIRONMENT", "test")

# Add backend/src to sys.path so dbconfig.* imports work when running pytest from repo root.
PROJECT_SRC = Path(__file__).resolve().parents[2]
if str(PROJECT_SRC) not in sys.path:
    sys.path.insert(0, str(PROJECT_SRC))

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dbconfig import models  # noqa: F401  # populate Base.metadata
from dbconfig.core.database import Base
from dbconfig.core.key_policy import KeyPolicy
from dbconfig.core.value_codec import ValueCodec
from dbconfig.services.app_settings_service import AppSettingsService
from dbconfig.services.config_registry import ConfigRegistry

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"
TEST_ENCRYPTION_KEY = "unit-test-settings-key"


@pytest.fixture
async def db_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory):
    """Provide a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def codec():
    return ValueCodec(key_provider=lambda: TEST_ENCRYPTION_KEY)


@pytest.fixture
def registry(codec):
    """Registry without process-level hooks, so tests don't touch TZ or locale."""
    return ConfigRegistry(key_policy=KeyPolicy(), codec=codec, defaults={}, hooks=[])


@pytest.fixture
def service(db_session, registry):
    return AppSettingsService(db_session, registry=registry)

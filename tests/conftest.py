"""Pytest configuration and fixtures."""

import os

# Must be set before the app (and its engine) is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENV", "test")

from collections.abc import AsyncGenerator, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from clinic_ops.api.deps import get_store
from clinic_ops.db.base import Base
from clinic_ops.db.session import get_db
from clinic_ops.main import app
from clinic_ops.services.audit import AuditContext
from clinic_ops.services.rbac import StaffRole
from clinic_ops.store.memory import InMemoryClinicStore

from tests.factories import ClinicFactory, auth_headers_for, new_uuid

# Use SQLite for testing (simpler than spinning up postgres)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def async_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture
def store() -> InMemoryClinicStore:
    """Empty in-memory clinic store."""
    return InMemoryClinicStore()


@pytest.fixture
def factory(store: InMemoryClinicStore) -> ClinicFactory:
    return ClinicFactory(store)


@pytest.fixture
def audit_context() -> AuditContext:
    return AuditContext(
        actor_id=new_uuid(),
        actor_role=StaffRole.DENTIST.value,
        ip_address="127.0.0.1",
        request_id="req-test",
    )


@pytest.fixture(scope="function")
def client(
    store: InMemoryClinicStore,
    async_session: AsyncSession,
) -> Generator[TestClient, None, None]:
    """Create FastAPI test client backed by the in-memory store."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield async_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_store] = lambda: store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def dentist_headers() -> dict[str, str]:
    return auth_headers_for(StaffRole.DENTIST)


@pytest.fixture
def receptionist_headers() -> dict[str, str]:
    return auth_headers_for(StaffRole.RECEPTIONIST)


@pytest.fixture
def readonly_headers() -> dict[str, str]:
    return auth_headers_for(StaffRole.READONLY)

"""
Root conftest.py - Shared fixtures for all test types.

This file is automatically loaded by pytest and provides:
- Database session fixtures for integration tests
- FastAPI test client
- Isolated gateway state (locks, task registry, clone root) per test
- Scratch git repositories built with dulwich
"""
import shutil
import sys
import tempfile
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Add backend and tdd to path for imports
backend_path = Path(__file__).parent.parent / "backend"
tdd_path = Path(__file__).parent
sys.path.insert(0, str(backend_path))
sys.path.insert(0, str(tdd_path))

from repogate.database import Base, get_db
from repogate.main import app

from shared.git_helpers import PROTOCOL_HEADERS, commit_files, init_repository


# -----------------------------------------------------------------------------
# Database Fixtures
# -----------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def async_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a transactional database session for tests.

    Each test gets a fresh session that is rolled back after the test.
    """
    async_session_factory = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client for API testing.

    This client is configured to use the test database session. It sends no
    protocol-version header by default; mutating calls pass PROTOCOL_HEADERS.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# -----------------------------------------------------------------------------
# Marker-based fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _mark_test(request):
    """Automatically apply markers based on test location."""
    if "unit" in str(request.fspath):
        request.applymarker(pytest.mark.unit)
    elif "integration" in str(request.fspath):
        request.applymarker(pytest.mark.integration)


# -----------------------------------------------------------------------------
# Gateway State Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def temp_dir():
    """Create a temporary directory for repositories during tests.

    Uses resolve() to get the full path so repository keys compare equal.
    """
    path = Path(tempfile.mkdtemp()).resolve()
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest_asyncio.fixture(autouse=True)
async def clean_gateway(temp_dir, monkeypatch):
    """Give every test fresh locks, an empty task registry and its own clone root.

    Lock primitives bind to the running event loop, so they must not leak
    between tests.
    """
    from repogate.services.gateway import gateway
    from repogate.services.locking import RepositoryLockManager
    from repogate.services.task_registry import TaskRegistry

    registry = TaskRegistry(retention_seconds=300)
    monkeypatch.setattr(gateway, "locks", RepositoryLockManager())
    monkeypatch.setattr(gateway, "tasks", registry)
    monkeypatch.setattr(
        gateway, "settings", gateway.settings.model_copy(update={"clone_root": temp_dir / "clones"}),
    )

    yield gateway

    await registry.shutdown()


# -----------------------------------------------------------------------------
# Repository Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def work_repo(temp_dir) -> Path:
    """A working-tree repository on master with one committed file."""
    path = init_repository(temp_dir / "work")
    commit_files(path, {"README.md": "# Test Repo\n"}, "Initial commit")
    return path


@pytest_asyncio.fixture
async def project(client, work_repo):
    """Link ``work_repo`` as a project and return the project JSON."""
    response = await client.post(
        "/api/projects",
        json={"content_location": str(work_repo), "name": "test-repo"},
        headers=PROTOCOL_HEADERS,
    )
    assert response.status_code == 201, f"Failed to link project: {response.text}"
    return response.json()


# -----------------------------------------------------------------------------
# Utility Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def anyio_backend():
    """Required for pytest-asyncio compatibility."""
    return "asyncio"

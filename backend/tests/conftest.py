from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from simflow.db import build_engine, get_session
from simflow.main import app
from simflow.models import Project, ProjectStatus, SimulationRequest, SQLModel

if TYPE_CHECKING:
    import uuid
    from collections.abc import AsyncIterator, Awaitable, Callable
    from datetime import date
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Create an async engine with fresh tables for one test.

    Uses TEST_DATABASE_URL when set (e.g. a PostgreSQL instance in CI),
    otherwise a throwaway SQLite file.
    """
    database_url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'simflow.db'}"
    _engine = build_engine(database_url)
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await _engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Yield a database session; anything left uncommitted is rolled back on close."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def make_project(db_session: AsyncSession) -> Callable[..., Awaitable[uuid.UUID]]:
    """Insert and commit a project directly, returning its ID."""
    counter = 0

    async def _make(
        total_hours: int = 100,
        used_hours: int = 0,
        status: ProjectStatus = ProjectStatus.ACTIVE,
        name: str = "Crash simulation",
        deadline: date | None = None,
    ) -> uuid.UUID:
        nonlocal counter
        counter += 1
        project = Project(
            code=f"{900000 + counter}-TEST",
            name=name,
            status=status.value,
            total_hours=total_hours,
            used_hours=used_hours,
            created_by_name="Fixture",
            deadline=deadline,
        )
        db_session.add(project)
        await db_session.commit()
        return project.id

    return _make


@pytest.fixture
def make_request(db_session: AsyncSession) -> Callable[..., Awaitable[uuid.UUID]]:
    """Insert and commit a simulation request, returning its ID."""

    async def _make(project_id: uuid.UUID, title: str = "Drop test at 2m") -> uuid.UUID:
        request = SimulationRequest(title=title, project_id=project_id)
        db_session.add(request)
        await db_session.commit()
        return request.id

    return _make


"""Tests for project creation, lifecycle transitions, and the projects API."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from simflow.exceptions import AppError
from simflow.models import Project, ProjectStatus
from simflow.schemas.auth import AuthContext
from simflow.schemas.project import CreateProjectRequest, StatusTransitionRequest
from simflow.services import project as project_service
from simflow.services.unit_of_work import UnitOfWork
from simflow.worker import run_expiry_pass

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

MANAGER_ID = uuid.uuid4()
MANAGER = AuthContext(user_id=MANAGER_ID, user_name="Manager One", role="Manager")

MANAGER_HEADERS = {"X-User-Id": str(MANAGER_ID), "X-User-Name": "Manager One", "X-Role": "Manager"}
ENGINEER_HEADERS = {"X-User-Id": str(uuid.uuid4()), "X-User-Name": "Engineer One", "X-Role": "Engineer"}


async def _transition(
    session: AsyncSession, project_id: uuid.UUID, to_status: ProjectStatus, reason: str | None = None
) -> project_service.ProjectResponse:
    return await project_service.transition_project_status(
        UnitOfWork.owned(session), MANAGER, project_id, StatusTransitionRequest(to_status=to_status, reason=reason)
    )


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------


class TestTransitionTable:
    def test_every_status_has_an_entry(self) -> None:
        assert set(project_service.VALID_TRANSITIONS) == set(ProjectStatus)

    def test_archived_is_terminal(self) -> None:
        assert project_service.VALID_TRANSITIONS[ProjectStatus.ARCHIVED] == frozenset()

    @pytest.mark.parametrize(
        ("from_status", "to_status", "expected"),
        [
            (ProjectStatus.PENDING, ProjectStatus.ACTIVE, True),
            (ProjectStatus.ACTIVE, ProjectStatus.ON_HOLD, True),
            (ProjectStatus.ON_HOLD, ProjectStatus.ACTIVE, True),
            (ProjectStatus.EXPIRED, ProjectStatus.ACTIVE, True),
            (ProjectStatus.PENDING, ProjectStatus.COMPLETED, False),
            (ProjectStatus.COMPLETED, ProjectStatus.ACTIVE, False),
            (ProjectStatus.CANCELLED, ProjectStatus.ACTIVE, False),
        ],
    )
    def test_is_valid_transition(self, from_status: ProjectStatus, to_status: ProjectStatus, expected: bool) -> None:
        assert project_service.is_valid_transition(from_status, to_status) is expected


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


async def test_create_project_generates_sequential_codes(db_session: AsyncSession) -> None:
    year = datetime.now(UTC).year
    first = await project_service.create_project(
        UnitOfWork.owned(db_session), MANAGER, CreateProjectRequest(name="Crash test", total_hours=40)
    )
    second = await project_service.create_project(
        UnitOfWork.owned(db_session), MANAGER, CreateProjectRequest(name="Drop test", total_hours=10)
    )

    assert first.code == f"100001-{year}"
    assert second.code == f"100002-{year}"
    assert first.status == ProjectStatus.PENDING
    assert first.used_hours == 0
    assert first.available_hours == 40
    assert first.created_by == MANAGER_ID
    assert first.created_by_name == "Manager One"


async def test_create_project_ignores_other_years(
    db_session: AsyncSession,
    make_project: Callable[..., Awaitable[uuid.UUID]],
) -> None:
    await make_project()
    db_session.add(Project(code="100050-1999", name="Old", total_hours=0, created_by_name="Fixture"))
    await db_session.commit()

    created = await project_service.create_project(
        UnitOfWork.owned(db_session), MANAGER, CreateProjectRequest(name="Fresh", total_hours=5)
    )
    assert created.code == f"100001-{datetime.now(UTC).year}"


async def test_transition_records_history(
    db_session: AsyncSession,
    make_project: Callable[..., Awaitable[uuid.UUID]],
) -> None:
    project_id = await make_project(status=ProjectStatus.ACTIVE)

    updated = await _transition(db_session, project_id, ProjectStatus.ON_HOLD, "waiting on hardware")
    assert updated.status == ProjectStatus.ON_HOLD

    history = await project_service.get_status_history(db_session, project_id)
    assert history.total == 1
    entry = history.items[0]
    assert entry.from_status == ProjectStatus.ACTIVE
    assert entry.to_status == ProjectStatus.ON_HOLD
    assert entry.reason == "waiting on hardware"
    assert entry.changed_by == MANAGER_ID


@pytest.mark.parametrize("to_status", [ProjectStatus.ON_HOLD, ProjectStatus.SUSPENDED, ProjectStatus.CANCELLED])
async def test_transition_requires_reason(
    db_session: AsyncSession,
    make_project: Callable[..., Awaitable[uuid.UUID]],
    to_status: ProjectStatus,
) -> None:
    project_id = await make_project(status=ProjectStatus.ACTIVE)

    with pytest.raises(AppError, match="requires a reason") as exc_info:
        await _transition(db_session, project_id, to_status, "   ")
    assert exc_info.value.status_code == 400

    project = await project_service.get_project(db_session, project_id)
    assert project.status == ProjectStatus.ACTIVE
    assert (await project_service.get_status_history(db_session, project_id)).total == 0


async def test_invalid_transition_is_rejected(
    db_session: AsyncSession,
    make_project: Callable[..., Awaitable[uuid.UUID]],
) -> None:
    project_id = await make_project(status=ProjectStatus.COMPLETED)

    with pytest.raises(AppError, match="Invalid transition from 'Completed' to 'Active'") as exc_info:
        await _transition(db_session, project_id, ProjectStatus.ACTIVE)
    assert exc_info.value.status_code == 400
    assert "Valid transitions: Archived" in exc_info.value.message


async def test_transition_missing_project(db_session: AsyncSession) -> None:
    with pytest.raises(AppError) as exc_info:
        await _transition(db_session, uuid.uuid4(), ProjectStatus.ACTIVE)
    assert exc_info.value.status_code == 404


async def test_cancel_stamps_reason_and_time(
    db_session: AsyncSession,
    make_project: Callable[..., Awaitable[uuid.UUID]],
) -> None:
    project_id = await make_project(status=ProjectStatus.ACTIVE)
    updated = await _transition(db_session, project_id, ProjectStatus.CANCELLED, "customer withdrew")
    assert updated.cancelled_at is not None
    assert updated.cancellation_reason == "customer withdrew"
    assert updated.completed_at is None


async def test_complete_stamps_notes_and_time(
    db_session: AsyncSession,
    make_project: Callable[..., Awaitable[uuid.UUID]],
) -> None:
    project_id = await make_project(status=ProjectStatus.ACTIVE)
    updated = await project_service.transition_project_status(
        UnitOfWork.owned(db_session),
        MANAGER,
        project_id,
        StatusTransitionRequest(to_status=ProjectStatus.COMPLETED, completion_notes="all runs delivered"),
    )
    assert updated.completed_at is not None
    assert updated.completion_notes == "all runs delivered"


async def test_list_projects_filters_by_status(
    db_session: AsyncSession,
    make_project: Callable[..., Awaitable[uuid.UUID]],
) -> None:
    active = await make_project(status=ProjectStatus.ACTIVE)
    await make_project(status=ProjectStatus.PENDING)

    everything = await project_service.list_projects(db_session)
    assert everything.total == 2

    only_active = await project_service.list_projects(db_session, ProjectStatus.ACTIVE)
    assert only_active.total == 1
    assert only_active.items[0].id == active


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


async def test_api_create_and_get_project(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/projects",
        json={"name": "Crash test", "total_hours": 40, "status": "Active"},
        headers=MANAGER_HEADERS,
    )
    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "Active"
    assert created["available_hours"] == 40

    response = await async_client.get(f"/projects/{created['id']}", headers=ENGINEER_HEADERS)
    assert response.status_code == 200
    assert response.json()["code"] == created["code"]


async def test_api_create_requires_manager(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/projects", json={"name": "Crash test", "total_hours": 40}, headers=ENGINEER_HEADERS
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Manager or Admin access required"


async def test_api_requires_identity_headers(async_client: AsyncClient) -> None:
    response = await async_client.get("/projects")
    assert response.status_code == 422


async def test_api_get_missing_project(async_client: AsyncClient) -> None:
    response = await async_client.get(f"/projects/{uuid.uuid4()}", headers=MANAGER_HEADERS)
    assert response.status_code == 404
    assert response.json()["detail"] == "Project not found"


async def test_api_list_projects_by_status(
    async_client: AsyncClient,
    make_project: Callable[..., Awaitable[uuid.UUID]],
) -> None:
    await make_project(status=ProjectStatus.ON_HOLD)
    await make_project(status=ProjectStatus.ACTIVE)

    response = await async_client.get("/projects", params={"status": "On Hold"}, headers=MANAGER_HEADERS)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["status"] == "On Hold"


async def test_api_transition_and_history(
    async_client: AsyncClient,
    make_project: Callable[..., Awaitable[uuid.UUID]],
) -> None:
    project_id = await make_project(status=ProjectStatus.PENDING)

    response = await async_client.post(
        f"/projects/{project_id}/status", json={"to_status": "Active"}, headers=MANAGER_HEADERS
    )
    assert response.status_code == 200
    assert response.json()["status"] == "Active"

    response = await async_client.post(
        f"/projects/{project_id}/status", json={"to_status": "Suspended"}, headers=MANAGER_HEADERS
    )
    assert response.status_code == 400

    response = await async_client.get(f"/projects/{project_id}/status-history", headers=ENGINEER_HEADERS)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["from_status"] == "Pending"
    assert data["items"][0]["to_status"] == "Active"


async def test_create_project_code_clash_returns_conflict(
    db_session: AsyncSession,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Two creates that pick the same code: the loser gets a 409, not a driver error."""
    clashing_code = f"100001-{datetime.now(UTC).year}"
    db_session.add(Project(code=clashing_code, name="First", total_hours=10, created_by_name="Fixture"))
    await db_session.commit()

    async def _stale_next_code(*_args: object) -> str:
        return clashing_code

    monkeypatch.setattr(project_service, "_next_project_code", _stale_next_code)

    with pytest.raises(AppError, match="already in use") as exc_info:
        await project_service.create_project(
            UnitOfWork.owned(db_session), MANAGER, CreateProjectRequest(name="Second", total_hours=5)
        )
    assert exc_info.value.status_code == 409

    listing = await project_service.list_projects(db_session)
    assert listing.total == 1
    assert listing.items[0].name == "First"


# ---------------------------------------------------------------------------
# Deadlines
# ---------------------------------------------------------------------------

TODAY = date(2026, 10, 18)


async def test_expire_overdue_projects(
    db_session: AsyncSession,
    make_project: Callable[..., Awaitable[uuid.UUID]],
) -> None:
    overdue_active = await make_project(status=ProjectStatus.ACTIVE, deadline=TODAY - timedelta(days=1))
    overdue_on_hold = await make_project(status=ProjectStatus.ON_HOLD, deadline=TODAY - timedelta(days=30))
    due_today = await make_project(status=ProjectStatus.ACTIVE, deadline=TODAY)
    overdue_completed = await make_project(status=ProjectStatus.COMPLETED, deadline=TODAY - timedelta(days=5))
    no_deadline = await make_project(status=ProjectStatus.ACTIVE)

    result = await project_service.expire_overdue_projects(UnitOfWork.owned(db_session), TODAY)

    assert result.expired == 2
    statuses = {
        pid: (await project_service.get_project(db_session, pid)).status
        for pid in (overdue_active, overdue_on_hold, due_today, overdue_completed, no_deadline)
    }
    assert statuses == {
        overdue_active: ProjectStatus.EXPIRED,
        overdue_on_hold: ProjectStatus.EXPIRED,
        due_today: ProjectStatus.ACTIVE,
        overdue_completed: ProjectStatus.COMPLETED,
        no_deadline: ProjectStatus.ACTIVE,
    }

    history = await project_service.get_status_history(db_session, overdue_on_hold)
    assert history.total == 1
    assert history.items[0].from_status == ProjectStatus.ON_HOLD
    assert history.items[0].to_status == ProjectStatus.EXPIRED
    assert history.items[0].changed_by_name == "System"
    assert history.items[0].reason == "Project deadline has passed"

    again = await project_service.expire_overdue_projects(UnitOfWork.owned(db_session), TODAY)
    assert again.expired == 0
    assert again.codes == []


async def test_projects_near_deadline(
    db_session: AsyncSession,
    make_project: Callable[..., Awaitable[uuid.UUID]],
) -> None:
    in_three_days = await make_project(deadline=TODAY + timedelta(days=3))
    today = await make_project(deadline=TODAY)
    await make_project(deadline=TODAY + timedelta(days=8))
    await make_project(deadline=TODAY - timedelta(days=1))
    await make_project(status=ProjectStatus.CANCELLED, deadline=TODAY + timedelta(days=1))

    result = await project_service.get_projects_near_deadline(db_session, TODAY, days_ahead=7)

    assert result.total == 2
    assert [p.id for p in result.items] == [today, in_three_days]
    assert [p.days_until_deadline for p in result.items] == [0, 3]


class TestRequestAcceptance:
    async def test_open_project_with_hours_accepts(
        self, db_session: AsyncSession, make_project: Callable[..., Awaitable[uuid.UUID]]
    ) -> None:
        project_id = await make_project(total_hours=40, used_hours=10, deadline=TODAY)
        result = await project_service.can_project_accept_requests(db_session, project_id, TODAY)
        assert result.can_accept is True
        assert result.available_hours == 30

    async def test_missing_project(self, db_session: AsyncSession) -> None:
        result = await project_service.can_project_accept_requests(db_session, uuid.uuid4(), TODAY)
        assert result.can_accept is False
        assert result.reason == "Project not found"

    async def test_closed_status(
        self, db_session: AsyncSession, make_project: Callable[..., Awaitable[uuid.UUID]]
    ) -> None:
        project_id = await make_project(status=ProjectStatus.SUSPENDED)
        result = await project_service.can_project_accept_requests(db_session, project_id, TODAY)
        assert result.can_accept is False
        assert result.reason == "Project is in 'Suspended' status and cannot accept new requests"

    async def test_no_hours_left(
        self, db_session: AsyncSession, make_project: Callable[..., Awaitable[uuid.UUID]]
    ) -> None:
        project_id = await make_project(total_hours=10, used_hours=10)
        result = await project_service.can_project_accept_requests(db_session, project_id, TODAY)
        assert result.can_accept is False
        assert result.reason == "Project has no available hours"
        assert result.available_hours == 0

    async def test_past_deadline(
        self, db_session: AsyncSession, make_project: Callable[..., Awaitable[uuid.UUID]]
    ) -> None:
        project_id = await make_project(total_hours=10, deadline=TODAY - timedelta(days=1))
        result = await project_service.can_project_accept_requests(db_session, project_id, TODAY)
        assert result.can_accept is False
        assert result.reason == "Project deadline has passed"
        assert result.available_hours == 10


async def test_worker_expiry_pass(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    make_project: Callable[..., Awaitable[uuid.UUID]],
) -> None:
    project_id = await make_project(deadline=TODAY - timedelta(days=2))

    result = await run_expiry_pass(session_factory, TODAY)

    assert result is not None
    assert result.expired == 1
    assert (await project_service.get_project(db_session, project_id)).status == ProjectStatus.EXPIRED


async def test_api_deadline_endpoints(
    async_client: AsyncClient,
    make_project: Callable[..., Awaitable[uuid.UUID]],
) -> None:
    today = datetime.now(UTC).date()
    soon = await make_project(deadline=today + timedelta(days=2))
    overdue = await make_project(deadline=today - timedelta(days=2))

    response = await async_client.get("/projects/near-deadline", params={"days": 7}, headers=ENGINEER_HEADERS)
    assert response.status_code == 200
    assert [p["id"] for p in response.json()["items"]] == [str(soon)]

    response = await async_client.get(f"/projects/{overdue}/acceptance", headers=ENGINEER_HEADERS)
    assert response.status_code == 200
    assert response.json()["reason"] == "Project deadline has passed"

    response = await async_client.post("/projects/expirations", headers=ENGINEER_HEADERS)
    assert response.status_code == 403

    response = await async_client.post("/projects/expirations", headers=MANAGER_HEADERS)
    assert response.status_code == 200
    assert response.json()["expired"] == 1

    response = await async_client.get(f"/projects/{overdue}", headers=ENGINEER_HEADERS)
    assert response.json()["status"] == "Expired"


async def test_api_create_with_deadline(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/projects",
        json={"name": "Crash test", "total_hours": 40, "deadline": "2027-03-31"},
        headers=MANAGER_HEADERS,
    )
    assert response.status_code == 201
    assert response.json()["deadline"] == "2027-03-31"

from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from simflow.exceptions import AppError
from simflow.models.base import now_utc
from simflow.models.enums import ProjectStatus
from simflow.models.project import Project
from simflow.models.status_history import ProjectStatusHistory
from simflow.schemas.project import (
    ExpiryRunResponse,
    NearDeadlineListResponse,
    NearDeadlineProjectResponse,
    ProjectListResponse,
    ProjectResponse,
    RequestAcceptanceResponse,
    StatusHistoryEntryResponse,
    StatusHistoryResponse,
)
from simflow.services.hours import can_allocate_to

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from simflow.schemas.auth import AuthContext
    from simflow.schemas.project import CreateProjectRequest, StatusTransitionRequest
    from simflow.services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

FIRST_PROJECT_NUMBER = 100001

VALID_TRANSITIONS: dict[ProjectStatus, frozenset[ProjectStatus]] = {
    ProjectStatus.PENDING: frozenset({ProjectStatus.ACTIVE, ProjectStatus.CANCELLED, ProjectStatus.ARCHIVED}),
    ProjectStatus.APPROVED: frozenset(
        {
            ProjectStatus.ACTIVE,
            ProjectStatus.ON_HOLD,
            ProjectStatus.SUSPENDED,
            ProjectStatus.COMPLETED,
            ProjectStatus.CANCELLED,
            ProjectStatus.ARCHIVED,
        }
    ),
    ProjectStatus.ACTIVE: frozenset(
        {
            ProjectStatus.ON_HOLD,
            ProjectStatus.SUSPENDED,
            ProjectStatus.COMPLETED,
            ProjectStatus.CANCELLED,
            ProjectStatus.EXPIRED,
            ProjectStatus.ARCHIVED,
        }
    ),
    ProjectStatus.ON_HOLD: frozenset(
        {ProjectStatus.ACTIVE, ProjectStatus.SUSPENDED, ProjectStatus.CANCELLED, ProjectStatus.ARCHIVED}
    ),
    ProjectStatus.SUSPENDED: frozenset(
        {ProjectStatus.ACTIVE, ProjectStatus.ON_HOLD, ProjectStatus.CANCELLED, ProjectStatus.ARCHIVED}
    ),
    ProjectStatus.COMPLETED: frozenset({ProjectStatus.ARCHIVED}),
    ProjectStatus.CANCELLED: frozenset({ProjectStatus.ARCHIVED}),
    ProjectStatus.EXPIRED: frozenset({ProjectStatus.ACTIVE, ProjectStatus.ARCHIVED}),
    ProjectStatus.ARCHIVED: frozenset(),
}

REQUIRES_REASON = frozenset(
    {ProjectStatus.ON_HOLD, ProjectStatus.SUSPENDED, ProjectStatus.CANCELLED, ProjectStatus.EXPIRED}
)

# Open statuses whose deadline is watched; the expiry pass moves them to Expired.
DEADLINE_TRACKED_STATUSES = frozenset({ProjectStatus.ACTIVE, ProjectStatus.APPROVED, ProjectStatus.ON_HOLD})

SYSTEM_ACTOR_NAME = "System"


def is_valid_transition(from_status: ProjectStatus, to_status: ProjectStatus) -> bool:
    return to_status in VALID_TRANSITIONS[from_status]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_project_response(project: Project) -> ProjectResponse:
    """Map a project model to its response schema."""
    return ProjectResponse(
        id=project.id,
        code=project.code,
        name=project.name,
        description=project.description,
        status=ProjectStatus(project.status),
        total_hours=project.total_hours,
        used_hours=project.used_hours,
        available_hours=project.available_hours,
        created_by=project.created_by,
        created_by_name=project.created_by_name,
        completed_at=project.completed_at,
        completion_notes=project.completion_notes,
        cancelled_at=project.cancelled_at,
        cancellation_reason=project.cancellation_reason,
        deadline=project.deadline,
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


def _build_history_response(entry: ProjectStatusHistory) -> StatusHistoryEntryResponse:
    return StatusHistoryEntryResponse(
        id=entry.id,
        project_id=entry.project_id,
        from_status=ProjectStatus(entry.from_status),
        to_status=ProjectStatus(entry.to_status),
        changed_by=entry.changed_by,
        changed_by_name=entry.changed_by_name,
        reason=entry.reason,
        created_at=entry.created_at,
    )


async def _get_project_or_404(session: AsyncSession, project_id: uuid.UUID, *, for_update: bool = False) -> Project:
    """Fetch a project by ID. Raises 404 if not found."""
    query = select(Project).where(col(Project.id) == project_id).execution_options(populate_existing=True)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    project = result.scalar_one_or_none()
    if project is None:
        raise AppError("Project not found", status_code=404)
    return project


async def _next_project_code(session: AsyncSession, year: int) -> str:
    """Return the next ``<number>-<year>`` code, past the highest one used this year."""
    result = await session.execute(select(col(Project.code)).where(col(Project.code).like(f"%-{year}")))
    next_number = FIRST_PROJECT_NUMBER
    for code in result.scalars().all():
        prefix = code.split("-", 1)[0]
        if prefix.isdigit() and int(prefix) >= next_number:
            next_number = int(prefix) + 1
    return f"{next_number}-{year}"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def create_project(
    uow: UnitOfWork,
    auth: AuthContext,
    payload: CreateProjectRequest,
) -> ProjectResponse:
    """Create a project with an empty hour balance and an auto-generated code."""
    async with uow.begin() as session:
        code = await _next_project_code(session, datetime.now(UTC).year)
        project = Project(
            code=code,
            name=payload.name,
            description=payload.description,
            deadline=payload.deadline,
            status=payload.status.value,
            total_hours=payload.total_hours,
            used_hours=0,
            created_by=auth.user_id,
            created_by_name=auth.user_name,
        )
        session.add(project)
        try:
            await session.flush()
        except IntegrityError:
            raise AppError(f"Project code {code} is already in use", status_code=409) from None
        response = _build_project_response(project)

    logger.info("Created project %s with code %s (%dh)", project.id, code, payload.total_hours)
    return response


async def get_project(session: AsyncSession, project_id: uuid.UUID) -> ProjectResponse:
    """Get a single project."""
    return _build_project_response(await _get_project_or_404(session, project_id))


async def list_projects(session: AsyncSession, status: ProjectStatus | None = None) -> ProjectListResponse:
    """List projects newest first, optionally filtered by status."""
    query = select(Project).order_by(col(Project.created_at).desc())
    if status is not None:
        query = query.where(col(Project.status) == status.value)
    result = await session.execute(query)
    projects = list(result.scalars().all())
    return ProjectListResponse(items=[_build_project_response(p) for p in projects], total=len(projects))


async def transition_project_status(
    uow: UnitOfWork,
    auth: AuthContext,
    project_id: uuid.UUID,
    payload: StatusTransitionRequest,
) -> ProjectResponse:
    """Move a project to a new status and record the transition.

    Flow:
    1. Lock the project row
    2. Validate the transition and that a reason is given where required
    3. Stamp completion / cancellation fields
    4. Insert a status history row
    """
    async with uow.begin() as session:
        project = await _get_project_or_404(session, project_id, for_update=True)
        from_status = ProjectStatus(project.status)
        to_status = payload.to_status

        if not is_valid_transition(from_status, to_status):
            allowed = ", ".join(sorted(VALID_TRANSITIONS[from_status])) or "none"
            raise AppError(
                f"Invalid transition from '{from_status}' to '{to_status}'. Valid transitions: {allowed}",
                status_code=400,
            )
        if to_status in REQUIRES_REASON and not (payload.reason and payload.reason.strip()):
            raise AppError(f"Transition to '{to_status}' requires a reason", status_code=400)

        now = now_utc()
        project.status = to_status.value
        project.updated_at = now
        if to_status == ProjectStatus.COMPLETED:
            project.completed_at = now
            project.completion_notes = payload.completion_notes
        if to_status == ProjectStatus.CANCELLED:
            project.cancelled_at = now
            project.cancellation_reason = payload.reason

        session.add(
            ProjectStatusHistory(
                project_id=project.id,
                from_status=from_status.value,
                to_status=to_status.value,
                changed_by=auth.user_id,
                changed_by_name=auth.user_name,
                reason=payload.reason,
            )
        )
        await session.flush()
        response = _build_project_response(project)

    logger.info(
        "Project %s transitioned from '%s' to '%s' by %s", project_id, from_status, to_status, auth.user_name
    )
    return response


async def get_status_history(
    session: AsyncSession,
    project_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> StatusHistoryResponse:
    """Get paginated status transitions for a project, newest first."""
    await _get_project_or_404(session, project_id)
    base_filter = col(ProjectStatusHistory.project_id) == project_id

    count_result = await session.execute(select(func.count()).select_from(ProjectStatusHistory).where(base_filter))
    total = count_result.scalar_one()

    entries_result = await session.execute(
        select(ProjectStatusHistory)
        .where(base_filter)
        .order_by(col(ProjectStatusHistory.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    return StatusHistoryResponse(
        items=[_build_history_response(e) for e in entries_result.scalars().all()],
        total=total,
    )


# ---------------------------------------------------------------------------
# Deadlines
# ---------------------------------------------------------------------------


async def expire_overdue_projects(uow: UnitOfWork, today: date) -> ExpiryRunResponse:
    """Move open projects whose deadline is before ``today`` to Expired.

    Each expired project gets a status history row attributed to the system.
    """
    async with uow.begin() as session:
        result = await session.execute(
            select(Project)
            .where(
                col(Project.status).in_([s.value for s in DEADLINE_TRACKED_STATUSES]),
                col(Project.deadline).is_not(None),
                col(Project.deadline) < today,
            )
            .order_by(col(Project.deadline))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        projects = list(result.scalars().all())

        now = now_utc()
        for project in projects:
            session.add(
                ProjectStatusHistory(
                    project_id=project.id,
                    from_status=project.status,
                    to_status=ProjectStatus.EXPIRED.value,
                    changed_by_name=SYSTEM_ACTOR_NAME,
                    reason="Project deadline has passed",
                )
            )
            project.status = ProjectStatus.EXPIRED.value
            project.updated_at = now
        await session.flush()
        codes = [p.code for p in projects]

    for code in codes:
        logger.info("Project %s automatically expired due to deadline", code)
    return ExpiryRunResponse(expired=len(codes), codes=codes)


async def get_projects_near_deadline(
    session: AsyncSession,
    today: date,
    days_ahead: int = 7,
) -> NearDeadlineListResponse:
    """List open projects due between ``today`` and ``today + days_ahead``, soonest first."""
    result = await session.execute(
        select(Project)
        .where(
            col(Project.status).in_([s.value for s in DEADLINE_TRACKED_STATUSES]),
            col(Project.deadline).is_not(None),
            col(Project.deadline) >= today,
            col(Project.deadline) <= today + timedelta(days=days_ahead),
        )
        .order_by(col(Project.deadline))
    )
    items = [
        NearDeadlineProjectResponse(
            **_build_project_response(p).model_dump(),
            days_until_deadline=(p.deadline - today).days,  # type: ignore[operator]
        )
        for p in result.scalars().all()
    ]
    return NearDeadlineListResponse(items=items, total=len(items))


async def can_project_accept_requests(
    session: AsyncSession,
    project_id: uuid.UUID,
    today: date,
) -> RequestAcceptanceResponse:
    """Check whether new simulation requests may be filed against a project.

    The project must be in an allocatable status, have hours left and not be
    past its deadline.
    """
    result = await session.execute(
        select(Project).where(col(Project.id) == project_id).execution_options(populate_existing=True)
    )
    project = result.scalar_one_or_none()
    if project is None:
        return RequestAcceptanceResponse(can_accept=False, reason="Project not found")

    if not can_allocate_to(project.status):
        return RequestAcceptanceResponse(
            can_accept=False,
            reason=f"Project is in '{project.status}' status and cannot accept new requests",
        )

    available = project.available_hours
    if available <= 0:
        return RequestAcceptanceResponse(can_accept=False, reason="Project has no available hours", available_hours=0)

    if project.deadline is not None and project.deadline < today:
        return RequestAcceptanceResponse(
            can_accept=False, reason="Project deadline has passed", available_hours=available
        )

    return RequestAcceptanceResponse(can_accept=True, available_hours=available)

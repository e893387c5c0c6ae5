# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import UTC, datetime

from fastapi import APIRouter, Query, status

from simflow.api.deps import AuthDep, ManagerDep, UnitOfWorkDep
from simflow.db import SessionDep
from simflow.models.enums import ProjectStatus
from simflow.schemas.project import (
    CreateProjectRequest,
    ExpiryRunResponse,
    NearDeadlineListResponse,
    ProjectListResponse,
    ProjectResponse,
    RequestAcceptanceResponse,
    StatusHistoryResponse,
    StatusTransitionRequest,
)
from simflow.services import project as project_service

projects_router = APIRouter(prefix="/projects", tags=["projects"])


@projects_router.get("", response_model=ProjectListResponse)
async def list_projects(
    session: SessionDep,
    _auth: AuthDep,
    project_status: ProjectStatus | None = Query(default=None, alias="status"),
) -> ProjectListResponse:
    """List projects, newest first."""
    return await project_service.list_projects(session, project_status)


@projects_router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: CreateProjectRequest,
    uow: UnitOfWorkDep,
    auth: ManagerDep,
) -> ProjectResponse:
    """Create a project with an hour budget."""
    return await project_service.create_project(uow, auth, payload)


@projects_router.get("/near-deadline", response_model=NearDeadlineListResponse)
async def list_projects_near_deadline(
    session: SessionDep,
    _auth: AuthDep,
    days: int = Query(default=7, ge=0, le=365),
) -> NearDeadlineListResponse:
    """List open projects due within the next ``days`` days."""
    return await project_service.get_projects_near_deadline(session, datetime.now(UTC).date(), days)


@projects_router.post("/expirations", response_model=ExpiryRunResponse)
async def expire_overdue_projects(
    uow: UnitOfWorkDep,
    _auth: ManagerDep,
) -> ExpiryRunResponse:
    """Expire open projects whose deadline has passed."""
    return await project_service.expire_overdue_projects(uow, datetime.now(UTC).date())


@projects_router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: uuid.UUID,
    session: SessionDep,
    _auth: AuthDep,
) -> ProjectResponse:
    """Get a single project."""
    return await project_service.get_project(session, project_id)


@projects_router.post("/{project_id}/status", response_model=ProjectResponse)
async def transition_status(
    project_id: uuid.UUID,
    payload: StatusTransitionRequest,
    uow: UnitOfWorkDep,
    auth: ManagerDep,
) -> ProjectResponse:
    """Move a project to a new lifecycle status."""
    return await project_service.transition_project_status(uow, auth, project_id, payload)


@projects_router.get("/{project_id}/status-history", response_model=StatusHistoryResponse)
async def get_status_history(
    project_id: uuid.UUID,
    session: SessionDep,
    _auth: AuthDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> StatusHistoryResponse:
    """Get the status transitions of a project."""
    return await project_service.get_status_history(session, project_id, limit, offset)


@projects_router.get("/{project_id}/acceptance", response_model=RequestAcceptanceResponse)
async def check_request_acceptance(
    project_id: uuid.UUID,
    session: SessionDep,
    _auth: AuthDep,
) -> RequestAcceptanceResponse:
    """Check whether the project can take new simulation requests."""
    return await project_service.can_project_accept_requests(session, project_id, datetime.now(UTC).date())

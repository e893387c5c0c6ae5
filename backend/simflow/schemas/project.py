# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from simflow.models.enums import ProjectStatus


class CreateProjectRequest(BaseModel):
    """Request body for creating a project."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    total_hours: int = Field(ge=0)
    status: ProjectStatus = ProjectStatus.PENDING
    deadline: date | None = None


class ProjectResponse(BaseModel):
    """A project with its hour budget."""

    id: uuid.UUID
    code: str
    name: str
    description: str | None
    status: ProjectStatus
    total_hours: int
    used_hours: int
    available_hours: int
    created_by: uuid.UUID | None
    created_by_name: str
    completed_at: datetime | None
    completion_notes: str | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    deadline: date | None
    created_at: datetime
    updated_at: datetime


class ProjectListResponse(BaseModel):
    """List of projects."""

    items: list[ProjectResponse]
    total: int


class StatusTransitionRequest(BaseModel):
    """Request body for moving a project to a new status."""

    to_status: ProjectStatus
    reason: str | None = Field(default=None, max_length=1000)
    completion_notes: str | None = Field(default=None, max_length=1000)


class StatusHistoryEntryResponse(BaseModel):
    """A single recorded status transition."""

    id: uuid.UUID
    project_id: uuid.UUID
    from_status: ProjectStatus
    to_status: ProjectStatus
    changed_by: uuid.UUID | None
    changed_by_name: str
    reason: str | None
    created_at: datetime


class StatusHistoryResponse(BaseModel):
    """Paginated status transitions, newest first."""

    items: list[StatusHistoryEntryResponse]
    total: int


# ---------------------------------------------------------------------------
# Deadlines
# ---------------------------------------------------------------------------


class NearDeadlineProjectResponse(ProjectResponse):
    """An open project due within the look-ahead window."""

    days_until_deadline: int


class NearDeadlineListResponse(BaseModel):
    items: list[NearDeadlineProjectResponse]
    total: int


class ExpiryRunResponse(BaseModel):
    """Outcome of one pass that expires overdue projects."""

    expired: int
    codes: list[str]


class RequestAcceptanceResponse(BaseModel):
    """Whether a project can take on new simulation requests, and why not."""

    can_accept: bool
    reason: str | None = None
    available_hours: int | None = None

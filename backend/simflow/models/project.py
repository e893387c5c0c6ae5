# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from simflow.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from simflow.models.enums import ProjectStatus


class Project(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """A unit of work with an hour budget.

    ``used_hours`` is only ever written by the hours ledger, which keeps
    ``0 <= used_hours <= total_hours``; the check constraints back that up.
    """

    __tablename__ = "projects"
    __table_args__ = (
        sa.CheckConstraint("total_hours >= 0", name="ck_projects_total_hours_non_negative"),
        sa.CheckConstraint("used_hours >= 0", name="ck_projects_used_hours_non_negative"),
        sa.CheckConstraint("used_hours <= total_hours", name="ck_projects_used_within_total"),
    )

    code: str = Field(max_length=50, unique=True, index=True)
    name: str = Field(max_length=255)
    description: str | None = None
    status: str = Field(
        default=ProjectStatus.PENDING, max_length=50, index=True, sa_column_kwargs={"server_default": "Pending"}
    )
    total_hours: int
    used_hours: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    created_by: uuid.UUID | None = None
    created_by_name: str = Field(max_length=255)
    completed_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    completion_notes: str | None = None
    cancelled_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    cancellation_reason: str | None = None
    deadline: date | None = Field(default=None, index=True)

    @property
    def available_hours(self) -> int:
        return self.total_hours - self.used_hours

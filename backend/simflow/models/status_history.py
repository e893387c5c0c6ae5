# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from simflow.models.base import TimestampMixin, UUIDBase


class ProjectStatusHistory(UUIDBase, TimestampMixin, table=True):
    """Immutable record of a project status transition."""

    __tablename__ = "project_status_history"

    project_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    from_status: str = Field(max_length=50)
    to_status: str = Field(max_length=50)
    changed_by: uuid.UUID | None = None
    changed_by_name: str = Field(max_length=255)
    reason: str | None = None

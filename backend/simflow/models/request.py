# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from simflow.models.base import TimestampMixin, UUIDBase


class SimulationRequest(UUIDBase, TimestampMixin, table=True):
    """The part of a simulation request that the hours ledger reads.

    Requests are created and moved through their workflow elsewhere; ledger
    history only joins them for their title.
    """

    __tablename__ = "requests"

    title: str = Field(max_length=255)
    project_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True),
    )
    allocated_hours: int | None = None

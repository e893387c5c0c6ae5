# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from simflow.models.base import TimestampMixin, UUIDBase


class ProjectHourTransaction(UUIDBase, TimestampMixin, table=True):
    """Append-only record of one change to a project's hour balance.

    ``balance_before``/``balance_after`` snapshot the project's used hours
    around the change so history can be read without replaying the ledger.
    """

    __tablename__ = "project_hour_transactions"
    __table_args__ = (
        sa.Index("ix_hour_transactions_project_request", "project_id", "request_id"),
        sa.Index("ix_hour_transactions_created", "created_at"),
    )

    project_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    request_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("requests.id", ondelete="SET NULL"), nullable=True, index=True),
    )
    transaction_type: str = Field(max_length=50, index=True)
    hours: int
    balance_before: int
    balance_after: int
    performed_by: uuid.UUID | None = None
    performed_by_name: str = Field(max_length=255)
    notes: str | None = None

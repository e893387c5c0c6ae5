# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from simflow.models.enums import HourTransactionType, LedgerErrorCode

# ---------------------------------------------------------------------------
# Ledger results
# ---------------------------------------------------------------------------


class LedgerResult(BaseModel):
    """Outcome of a ledger write.

    Exactly one of two shapes: ``success=True`` with the balance snapshot and
    transaction id, or ``success=False`` with ``error``/``error_code`` and,
    depending on the code, the figures that explain the rejection.
    """

    success: bool
    error: str | None = None
    error_code: LedgerErrorCode | None = None
    balance_before: int | None = None
    balance_after: int | None = None
    transaction_id: uuid.UUID | None = None
    available_hours: int | None = None
    requested_hours: int | None = None
    used_hours: int | None = None


class AvailabilityResponse(BaseModel):
    """Read-only preview of whether an allocation would currently succeed.

    Not a reservation: the real allocation can still be rejected if another
    writer consumes the hours in between.
    """

    available: bool
    current_available: int
    total_hours: int
    used_hours: int


class RequestAllocationResponse(BaseModel):
    """Hours currently tied up by one request on a project."""

    project_id: uuid.UUID
    request_id: uuid.UUID
    allocated_hours: int


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


class HourTransactionResponse(BaseModel):
    """A single ledger row, with the originating request's title if any."""

    id: uuid.UUID
    project_id: uuid.UUID
    request_id: uuid.UUID | None
    request_title: str | None
    transaction_type: HourTransactionType
    hours: int
    balance_before: int
    balance_after: int
    performed_by: uuid.UUID | None
    performed_by_name: str
    notes: str | None
    created_at: datetime


class HourHistoryResponse(BaseModel):
    """Paginated ledger rows, newest first."""

    transactions: list[HourTransactionResponse]
    total: int


# ---------------------------------------------------------------------------
# Write payloads
# ---------------------------------------------------------------------------


class AllocateHoursRequest(BaseModel):
    """Request body for allocating project hours to a request."""

    request_id: uuid.UUID
    hours: int = Field(description="Hours to allocate; must be positive")


class DeallocateHoursRequest(BaseModel):
    """Request body for returning a request's hours to the project."""

    request_id: uuid.UUID
    hours: int = Field(description="Hours to return; must be positive")
    reason: str = Field(min_length=1, max_length=1000)


class AdjustHoursRequest(BaseModel):
    """Request body for a manual adjustment of used hours."""

    hours: int = Field(description="Signed integer: positive consumes budget, negative returns it")
    reason: str = Field(min_length=1, max_length=1000)


class CompleteRequestHoursRequest(BaseModel):
    """Request body for settling a completed request's hours."""

    request_id: uuid.UUID
    allocated_hours: int
    actual_hours: int


class ExtendHoursRequest(BaseModel):
    """Request body for growing a project's total budget."""

    additional_hours: int = Field(description="Hours added to the budget; must be positive")
    reason: str = Field(min_length=1, max_length=1000)

"""Project hours ledger: budgeted allocation with an append-only audit trail.

Every write locks the project row (``SELECT ... FOR UPDATE``) for the length
of one unit of work, so writers against the same project are totally ordered
and none can act on a stale ``used_hours``. Each change appends one
``ProjectHourTransaction`` with before/after snapshots; history is never
edited, only compensated by later rows.

Write operations never raise: rule violations and persistence failures come
back as a ``LedgerResult`` with ``success=False`` and an ``error_code``.
Reads never leak a driver error either. History raises
``UnexpectedLedgerError``; the per-request sum and the availability preview
fall back to zero figures.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from simflow.config import get_settings
from simflow.exceptions import (
    InsufficientHoursError,
    InvalidProjectStateError,
    LedgerError,
    NegativeBalanceError,
    PreconditionFailedError,
    ProjectNotFoundError,
    UnexpectedLedgerError,
)
from simflow.models.base import now_utc
from simflow.models.enums import HourTransactionType
from simflow.models.hour_transaction import ProjectHourTransaction
from simflow.models.project import Project
from simflow.models.request import SimulationRequest
from simflow.schemas.hours import (
    AvailabilityResponse,
    HourHistoryResponse,
    HourTransactionResponse,
    LedgerResult,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from simflow.services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HourTransactionParams:
    """Input to ``record_transaction``.

    ``hours`` is signed: positive consumes budget, negative returns it.
    """

    project_id: uuid.UUID
    transaction_type: HourTransactionType
    hours: int
    performed_by_name: str
    request_id: uuid.UUID | None = None
    performed_by_id: uuid.UUID | None = None
    notes: str | None = None


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def can_allocate_to(status: str) -> bool:
    """Whether a project in ``status`` accepts positive allocations."""
    return status in get_settings().allocatable_project_statuses


def _failure(exc: LedgerError) -> LedgerResult:
    return LedgerResult(
        success=False,
        error=exc.message,
        error_code=exc.code,
        available_hours=exc.available_hours,
        requested_hours=exc.requested_hours,
        used_hours=exc.used_hours,
    )


async def _lock_project(session: AsyncSession, project_id: uuid.UUID) -> Project:
    """Read the project with an exclusive row lock held until the transaction ends."""
    result = await session.execute(
        select(Project)
        .where(col(Project.id) == project_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    project = result.scalar_one_or_none()
    if project is None:
        raise ProjectNotFoundError("Project not found")
    return project


def _validate_balance(project: Project, hours: int, balance_after: int) -> None:
    """Reject a change that breaks the budget, checked in a fixed order."""
    if balance_after > project.total_hours:
        available = project.total_hours - project.used_hours
        raise InsufficientHoursError(
            f"Insufficient hours. Available: {available}, Requested: {hours}",
            available_hours=available,
            requested_hours=hours,
        )
    if balance_after < 0:
        raise NegativeBalanceError(
            f"Cannot deallocate more hours than used. Currently used: {project.used_hours}, "
            f"Attempting to remove: {abs(hours)}",
            used_hours=project.used_hours,
            requested_hours=hours,
        )
    if hours > 0 and not can_allocate_to(project.status):
        raise InvalidProjectStateError(
            f"Cannot allocate hours to project with status '{project.status}'. Project must be Active."
        )


def _build_transaction_response(entry: ProjectHourTransaction, request_title: str | None) -> HourTransactionResponse:
    """Map a ledger row to its response schema."""
    return HourTransactionResponse(
        id=entry.id,
        project_id=entry.project_id,
        request_id=entry.request_id,
        request_title=request_title,
        transaction_type=HourTransactionType(entry.transaction_type),
        hours=entry.hours,
        balance_before=entry.balance_before,
        balance_after=entry.balance_after,
        performed_by=entry.performed_by,
        performed_by_name=entry.performed_by_name,
        notes=entry.notes,
        created_at=entry.created_at,
    )


# ---------------------------------------------------------------------------
# Core write path
# ---------------------------------------------------------------------------


async def record_transaction(uow: UnitOfWork, params: HourTransactionParams) -> LedgerResult:
    """Apply a signed change to a project's used hours and record it.

    Usage changes only: extensions grow the budget instead and are rejected
    here in favour of ``extend_project_hours``.

    Flow:
    1. Lock the project row (NOT_FOUND if missing)
    2. balance_after = used_hours + hours
    3. Validate: within total, not below zero, project allocatable for hours > 0
    4. Insert the ledger row with both snapshots
    5. Update used_hours and updated_at
    6. Commit (owned) or release the savepoint (joined)
    """
    if params.transaction_type == HourTransactionType.EXTENSION:
        return _failure(PreconditionFailedError("Extensions must go through extend_project_hours"))

    try:
        async with uow.begin() as session:
            project = await _lock_project(session, params.project_id)
            balance_before = project.used_hours
            balance_after = balance_before + params.hours
            _validate_balance(project, params.hours, balance_after)

            entry = ProjectHourTransaction(
                project_id=params.project_id,
                request_id=params.request_id,
                transaction_type=params.transaction_type.value,
                hours=params.hours,
                balance_before=balance_before,
                balance_after=balance_after,
                performed_by=params.performed_by_id,
                performed_by_name=params.performed_by_name,
                notes=params.notes,
            )
            session.add(entry)

            project.used_hours = balance_after
            project.updated_at = now_utc()
            await session.flush()

            transaction_id = entry.id
            available_hours = project.total_hours - balance_after
    except LedgerError as exc:
        logger.info(
            "Hour transaction rejected: project=%s type=%s hours=%+d reason=%s",
            params.project_id,
            params.transaction_type,
            params.hours,
            exc.code,
        )
        return _failure(exc)
    except Exception:
        logger.exception("Error recording hour transaction for project %s", params.project_id)
        return _failure(UnexpectedLedgerError("Failed to record hour transaction"))

    logger.info(
        "Hour transaction recorded: project=%s type=%s hours=%+d balance=%d->%d",
        params.project_id,
        params.transaction_type,
        params.hours,
        balance_before,
        balance_after,
    )
    return LedgerResult(
        success=True,
        balance_before=balance_before,
        balance_after=balance_after,
        transaction_id=transaction_id,
        available_hours=available_hours,
    )


# ---------------------------------------------------------------------------
# Derived write operations
# ---------------------------------------------------------------------------


async def allocate_hours(
    uow: UnitOfWork,
    project_id: uuid.UUID,
    request_id: uuid.UUID,
    hours: int,
    performed_by_id: uuid.UUID | None,
    performed_by_name: str,
) -> LedgerResult:
    """Allocate project hours to a request, e.g. when an engineer is assigned."""
    if hours <= 0:
        return _failure(PreconditionFailedError("Hours to allocate must be positive", requested_hours=hours))

    return await record_transaction(
        uow,
        HourTransactionParams(
            project_id=project_id,
            request_id=request_id,
            transaction_type=HourTransactionType.ALLOCATION,
            hours=hours,
            performed_by_id=performed_by_id,
            performed_by_name=performed_by_name,
            notes="Hours allocated for request assignment",
        ),
    )


async def deallocate_hours(
    uow: UnitOfWork,
    project_id: uuid.UUID,
    request_id: uuid.UUID,
    hours: int,
    performed_by_id: uuid.UUID | None,
    performed_by_name: str,
    reason: str,
) -> LedgerResult:
    """Return a request's hours to the project, e.g. when it is denied or cancelled."""
    if hours <= 0:
        return _failure(PreconditionFailedError("Hours to deallocate must be positive", requested_hours=hours))

    return await record_transaction(
        uow,
        HourTransactionParams(
            project_id=project_id,
            request_id=request_id,
            transaction_type=HourTransactionType.DEALLOCATION,
            hours=-hours,
            performed_by_id=performed_by_id,
            performed_by_name=performed_by_name,
            notes=reason,
        ),
    )


async def adjust_hours(
    uow: UnitOfWork,
    project_id: uuid.UUID,
    hours: int,
    performed_by_id: uuid.UUID | None,
    performed_by_name: str,
    reason: str,
) -> LedgerResult:
    """Manually move a project's used hours by a signed amount."""
    if not reason.strip():
        return _failure(PreconditionFailedError("Adjustment reason is required"))

    return await record_transaction(
        uow,
        HourTransactionParams(
            project_id=project_id,
            transaction_type=HourTransactionType.ADJUSTMENT,
            hours=hours,
            performed_by_id=performed_by_id,
            performed_by_name=performed_by_name,
            notes=reason,
        ),
    )


async def finalize_request_hours(
    uow: UnitOfWork,
    project_id: uuid.UUID,
    request_id: uuid.UUID,
    allocated_hours: int,
    actual_hours: int,
    performed_by_id: uuid.UUID | None,
    performed_by_name: str,
) -> LedgerResult:
    """Settle a completed request against what was allocated for it.

    Unused hours go back to the project; overruns are charged to it. When the
    two match nothing is written and the result carries no transaction id.
    """
    difference = allocated_hours - actual_hours
    if difference == 0:
        return LedgerResult(success=True)

    settled = "Returned" if difference > 0 else "Additional"
    return await record_transaction(
        uow,
        HourTransactionParams(
            project_id=project_id,
            request_id=request_id,
            transaction_type=HourTransactionType.COMPLETION,
            hours=-difference,
            performed_by_id=performed_by_id,
            performed_by_name=performed_by_name,
            notes=(
                f"Request completed. Allocated: {allocated_hours}h, Actual: {actual_hours}h, "
                f"{settled}: {abs(difference)}h"
            ),
        ),
    )


async def extend_project_hours(
    uow: UnitOfWork,
    project_id: uuid.UUID,
    additional_hours: int,
    performed_by_id: uuid.UUID | None,
    performed_by_name: str,
    reason: str,
) -> LedgerResult:
    """Grow a project's total budget.

    Extensions raise ``total_hours`` rather than consume it, so they bypass the
    budget checks. The ledger row records the event with
    ``balance_before == balance_after`` since usage does not change.
    """
    if additional_hours <= 0:
        return _failure(
            PreconditionFailedError("Additional hours must be positive", requested_hours=additional_hours)
        )

    try:
        async with uow.begin() as session:
            project = await _lock_project(session, project_id)
            project.total_hours += additional_hours
            project.updated_at = now_utc()

            entry = ProjectHourTransaction(
                project_id=project_id,
                transaction_type=HourTransactionType.EXTENSION.value,
                hours=additional_hours,
                balance_before=project.used_hours,
                balance_after=project.used_hours,
                performed_by=performed_by_id,
                performed_by_name=performed_by_name,
                notes=f"Project budget extended by {additional_hours}h. Reason: {reason}",
            )
            session.add(entry)
            await session.flush()

            used_hours = project.used_hours
            new_total = project.total_hours
            transaction_id = entry.id
    except LedgerError as exc:
        return _failure(exc)
    except Exception:
        logger.exception("Error extending hours for project %s", project_id)
        return _failure(UnexpectedLedgerError("Failed to extend project hours"))

    logger.info("Project %s extended by %dh. New total: %dh", project_id, additional_hours, new_total)
    return LedgerResult(
        success=True,
        balance_before=used_hours,
        balance_after=used_hours,
        transaction_id=transaction_id,
        available_hours=new_total - used_hours,
    )


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_hour_history(
    session: AsyncSession,
    project_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> HourHistoryResponse:
    """Get paginated ledger rows for a project, newest first.

    Raises ``UnexpectedLedgerError`` if the rows cannot be read.
    """
    try:
        count_result = await session.execute(
            select(func.count())
            .select_from(ProjectHourTransaction)
            .where(col(ProjectHourTransaction.project_id) == project_id)
        )
        total = count_result.scalar_one()

        rows_result = await session.execute(
            select(ProjectHourTransaction, col(SimulationRequest.title))
            .outerjoin(SimulationRequest, col(SimulationRequest.id) == col(ProjectHourTransaction.request_id))
            .where(col(ProjectHourTransaction.project_id) == project_id)
            .order_by(col(ProjectHourTransaction.created_at).desc())
            .offset(offset)
            .limit(limit)
        )
        rows = rows_result.all()
    except Exception:
        logger.exception("Error fetching hour history for project %s", project_id)
        await session.rollback()
        raise UnexpectedLedgerError("Failed to fetch hour history") from None

    return HourHistoryResponse(
        transactions=[_build_transaction_response(entry, title) for entry, title in rows],
        total=total,
    )


async def get_request_allocated_hours(
    session: AsyncSession,
    project_id: uuid.UUID,
    request_id: uuid.UUID,
) -> int:
    """Sum the hours currently tied up by one request on a project.

    Returns 0 if the sum cannot be read.
    """
    try:
        result = await session.execute(
            select(func.coalesce(func.sum(col(ProjectHourTransaction.hours)), 0)).where(
                col(ProjectHourTransaction.project_id) == project_id,
                col(ProjectHourTransaction.request_id) == request_id,
                col(ProjectHourTransaction.transaction_type) != HourTransactionType.EXTENSION.value,
            )
        )
        return int(result.scalar_one())
    except Exception:
        logger.exception("Error fetching allocated hours for request %s on project %s", request_id, project_id)
        await session.rollback()
        return 0


async def check_hour_availability(
    session: AsyncSession,
    project_id: uuid.UUID,
    requested_hours: int,
) -> AvailabilityResponse:
    """Preview whether ``requested_hours`` could be allocated right now.

    This takes no lock and reserves nothing. A later ``allocate_hours`` call
    can still fail if another writer gets there first, so callers must handle
    its result regardless of what this returned.
    """
    try:
        result = await session.execute(
            select(Project).where(col(Project.id) == project_id).execution_options(populate_existing=True)
        )
        project = result.scalar_one_or_none()
    except Exception:
        logger.exception("Error checking hour availability for project %s", project_id)
        await session.rollback()
        project = None

    if project is None:
        return AvailabilityResponse(available=False, current_available=0, total_hours=0, used_hours=0)

    current_available = project.total_hours - project.used_hours
    return AvailabilityResponse(
        available=current_available >= requested_hours and can_allocate_to(project.status),
        current_available=current_available,
        total_hours=project.total_hours,
        used_hours=project.used_hours,
    )

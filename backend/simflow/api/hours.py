# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from simflow.api.deps import AuthDep, ManagerDep, UnitOfWorkDep
from simflow.config import get_settings
from simflow.db import SessionDep
from simflow.exceptions import LEDGER_ERRORS, UnexpectedLedgerError
from simflow.schemas.hours import (
    AdjustHoursRequest,
    AllocateHoursRequest,
    AvailabilityResponse,
    CompleteRequestHoursRequest,
    DeallocateHoursRequest,
    ExtendHoursRequest,
    HourHistoryResponse,
    LedgerResult,
    RequestAllocationResponse,
)
from simflow.services import hours as hours_service
from simflow.services.project import get_project

hours_router = APIRouter(prefix="/projects/{project_id}/hours", tags=["hours"])


def _raise_for_failure(result: LedgerResult) -> LedgerResult:
    """Turn a rejected ledger result into the matching HTTP error."""
    if result.success:
        return result
    error_cls = LEDGER_ERRORS[result.error_code] if result.error_code else UnexpectedLedgerError
    raise error_cls(
        result.error or "Ledger operation failed",
        available_hours=result.available_hours,
        requested_hours=result.requested_hours,
        used_hours=result.used_hours,
    )


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


@hours_router.get("/history", response_model=HourHistoryResponse)
async def get_history(
    project_id: uuid.UUID,
    session: SessionDep,
    _auth: AuthDep,
    offset: int = Query(default=0, ge=0),
    limit: int | None = Query(default=None, ge=1, le=100),
) -> HourHistoryResponse:
    """Get paginated hour transactions for a project, newest first."""
    await get_project(session, project_id)
    page_size = limit if limit is not None else get_settings().history_page_size
    return await hours_service.get_hour_history(session, project_id, page_size, offset)


@hours_router.get("/availability", response_model=AvailabilityResponse)
async def check_availability(
    project_id: uuid.UUID,
    session: SessionDep,
    _auth: AuthDep,
    hours: int = Query(ge=0),
) -> AvailabilityResponse:
    """Preview whether hours could be allocated now. This does not reserve them."""
    return await hours_service.check_hour_availability(session, project_id, hours)


@hours_router.get("/requests/{request_id}", response_model=RequestAllocationResponse)
async def get_request_allocation(
    project_id: uuid.UUID,
    request_id: uuid.UUID,
    session: SessionDep,
    _auth: AuthDep,
) -> RequestAllocationResponse:
    """Get the hours currently allocated to one request."""
    allocated = await hours_service.get_request_allocated_hours(session, project_id, request_id)
    return RequestAllocationResponse(project_id=project_id, request_id=request_id, allocated_hours=allocated)


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


@hours_router.post("/allocations", response_model=LedgerResult, status_code=status.HTTP_201_CREATED)
async def allocate(
    project_id: uuid.UUID,
    payload: AllocateHoursRequest,
    uow: UnitOfWorkDep,
    auth: ManagerDep,
) -> LedgerResult:
    """Allocate project hours to a request."""
    result = await hours_service.allocate_hours(
        uow, project_id, payload.request_id, payload.hours, auth.user_id, auth.user_name
    )
    return _raise_for_failure(result)


@hours_router.post("/deallocations", response_model=LedgerResult, status_code=status.HTTP_201_CREATED)
async def deallocate(
    project_id: uuid.UUID,
    payload: DeallocateHoursRequest,
    uow: UnitOfWorkDep,
    auth: ManagerDep,
) -> LedgerResult:
    """Return a request's hours to the project."""
    result = await hours_service.deallocate_hours(
        uow, project_id, payload.request_id, payload.hours, auth.user_id, auth.user_name, payload.reason
    )
    return _raise_for_failure(result)


@hours_router.post("/adjustments", response_model=LedgerResult, status_code=status.HTTP_201_CREATED)
async def adjust(
    project_id: uuid.UUID,
    payload: AdjustHoursRequest,
    uow: UnitOfWorkDep,
    auth: ManagerDep,
) -> LedgerResult:
    """Manually adjust a project's used hours."""
    result = await hours_service.adjust_hours(
        uow, project_id, payload.hours, auth.user_id, auth.user_name, payload.reason
    )
    return _raise_for_failure(result)


@hours_router.post("/completions", response_model=LedgerResult, status_code=status.HTTP_201_CREATED)
async def complete(
    project_id: uuid.UUID,
    payload: CompleteRequestHoursRequest,
    uow: UnitOfWorkDep,
    auth: ManagerDep,
) -> LedgerResult:
    """Settle a completed request's hours against its allocation."""
    result = await hours_service.finalize_request_hours(
        uow,
        project_id,
        payload.request_id,
        payload.allocated_hours,
        payload.actual_hours,
        auth.user_id,
        auth.user_name,
    )
    return _raise_for_failure(result)


@hours_router.post("/extensions", response_model=LedgerResult, status_code=status.HTTP_201_CREATED)
async def extend(
    project_id: uuid.UUID,
    payload: ExtendHoursRequest,
    uow: UnitOfWorkDep,
    auth: ManagerDep,
) -> LedgerResult:
    """Grow a project's total hour budget."""
    result = await hours_service.extend_project_hours(
        uow, project_id, payload.additional_hours, auth.user_id, auth.user_name, payload.reason
    )
    return _raise_for_failure(result)

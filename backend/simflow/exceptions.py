import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from simflow.models.enums import LedgerErrorCode

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class LedgerError(AppError):
    """A project-hours ledger operation was rejected.

    Raised inside a unit of work so the transaction rolls back, then turned
    into a ``LedgerResult`` at the ledger boundary. The numeric fields carry
    the figures a caller needs to explain the rejection to a user.
    """

    code: LedgerErrorCode = LedgerErrorCode.UNEXPECTED
    http_status: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        *,
        available_hours: int | None = None,
        requested_hours: int | None = None,
        used_hours: int | None = None,
    ) -> None:
        super().__init__(message, status_code=self.http_status)
        self.available_hours = available_hours
        self.requested_hours = requested_hours
        self.used_hours = used_hours


class ProjectNotFoundError(LedgerError):
    code = LedgerErrorCode.NOT_FOUND
    http_status = status.HTTP_404_NOT_FOUND


class InsufficientHoursError(LedgerError):
    code = LedgerErrorCode.INSUFFICIENT_BUDGET


class NegativeBalanceError(LedgerError):
    code = LedgerErrorCode.NEGATIVE_BALANCE


class InvalidProjectStateError(LedgerError):
    code = LedgerErrorCode.INVALID_PROJECT_STATE


class PreconditionFailedError(LedgerError):
    code = LedgerErrorCode.PRECONDITION_FAILED


class UnexpectedLedgerError(LedgerError):
    code = LedgerErrorCode.UNEXPECTED
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR


LEDGER_ERRORS: dict[LedgerErrorCode, type[LedgerError]] = {
    cls.code: cls
    for cls in (
        ProjectNotFoundError,
        InsufficientHoursError,
        NegativeBalanceError,
        InvalidProjectStateError,
        PreconditionFailedError,
        UnexpectedLedgerError,
    )
}


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]

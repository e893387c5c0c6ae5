from sqlmodel import SQLModel

from simflow.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from simflow.models.enums import (
    HourTransactionType,
    LedgerErrorCode,
    ProjectStatus,
    UserRole,
)
from simflow.models.hour_transaction import ProjectHourTransaction
from simflow.models.project import Project
from simflow.models.request import SimulationRequest
from simflow.models.status_history import ProjectStatusHistory

__all__ = [
    "HourTransactionType",
    "LedgerErrorCode",
    "Project",
    "ProjectHourTransaction",
    "ProjectStatus",
    "ProjectStatusHistory",
    "SQLModel",
    "SimulationRequest",
    "TimestampMixin",
    "UUIDBase",
    "UpdatedAtMixin",
    "UserRole",
]

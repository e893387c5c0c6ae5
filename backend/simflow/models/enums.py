from __future__ import annotations

import enum


class ProjectStatus(enum.StrEnum):
    """Lifecycle state of a project."""

    PENDING = "Pending"
    ACTIVE = "Active"
    APPROVED = "Approved"  # legacy; treated like ACTIVE
    ON_HOLD = "On Hold"
    SUSPENDED = "Suspended"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    EXPIRED = "Expired"
    ARCHIVED = "Archived"


class HourTransactionType(enum.StrEnum):
    """Kind of change recorded in the project hours ledger."""

    ALLOCATION = "allocation"
    DEALLOCATION = "deallocation"
    ADJUSTMENT = "adjustment"
    COMPLETION = "completion"
    EXTENSION = "extension"


class LedgerErrorCode(enum.StrEnum):
    """Reason a ledger operation was rejected."""

    NOT_FOUND = "NOT_FOUND"
    INSUFFICIENT_BUDGET = "INSUFFICIENT_BUDGET"
    NEGATIVE_BALANCE = "NEGATIVE_BALANCE"
    INVALID_PROJECT_STATE = "INVALID_PROJECT_STATE"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    UNEXPECTED = "UNEXPECTED"


class UserRole(enum.StrEnum):
    """Role of the acting user."""

    USER = "User"
    ENGINEER = "Engineer"
    MANAGER = "Manager"
    ADMIN = "Admin"

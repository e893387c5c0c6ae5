# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

from simflow.models.enums import UserRole


class AuthContext(BaseModel):
    """Dev auth context extracted from request headers."""

    user_id: uuid.UUID
    user_name: str
    role: UserRole = UserRole.USER

    @property
    def can_manage_hours(self) -> bool:
        return self.role in (UserRole.MANAGER, UserRole.ADMIN)

# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header, status

from simflow.db import SessionDep
from simflow.exceptions import AppError
from simflow.models.enums import UserRole
from simflow.schemas.auth import AuthContext
from simflow.services.unit_of_work import UnitOfWork


async def get_auth_context(
    x_user_id: uuid.UUID = Header(),
    x_user_name: str = Header(),
    x_role: UserRole = Header(default=UserRole.USER),
) -> AuthContext:
    """Extract dev auth context from request headers."""
    return AuthContext(user_id=x_user_id, user_name=x_user_name, role=x_role)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_manager(
    auth: AuthDep,
) -> AuthContext:
    """Require the Manager or Admin role for the request."""
    if not auth.can_manage_hours:
        raise AppError("Manager or Admin access required", status_code=status.HTTP_403_FORBIDDEN)
    return auth


ManagerDep = Annotated[AuthContext, Depends(require_manager)]


async def get_unit_of_work(session: SessionDep) -> UnitOfWork:
    """A unit of work that owns the request's transaction."""
    return UnitOfWork.owned(session)


UnitOfWorkDep = Annotated[UnitOfWork, Depends(get_unit_of_work)]

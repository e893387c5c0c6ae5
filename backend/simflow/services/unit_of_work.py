"""Transactional context for ledger writes.

A write either owns its transaction (commit on success, rollback on error) or
joins one the caller already holds, in which case it runs inside a SAVEPOINT
and leaves the commit to the caller. Callers that need "assign the engineer
and allocate the hours" to land together pass ``UnitOfWork.joined(session)``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession


class UnitOfWork:
    """A session plus the knowledge of who commits it."""

    def __init__(self, session: AsyncSession, *, owns_transaction: bool) -> None:
        self.session = session
        self.owns_transaction = owns_transaction

    @classmethod
    def owned(cls, session: AsyncSession) -> UnitOfWork:
        """Run in a transaction this unit of work commits or rolls back itself.

        Anything already pending on the session is committed along with it.
        """
        return cls(session, owns_transaction=True)

    @classmethod
    def joined(cls, session: AsyncSession) -> UnitOfWork:
        """Run inside the caller's transaction; the caller commits."""
        return cls(session, owns_transaction=False)

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[AsyncSession]:
        """Scope one atomic ledger write.

        Any exception raised in the block undoes the block's writes before it
        propagates: the whole transaction when owned, the savepoint when joined.
        """
        if not self.owns_transaction:
            async with self.session.begin_nested():
                yield self.session
            return

        try:
            yield self.session
            await self.session.commit()
        except BaseException:
            await self.session.rollback()
            raise

    def __repr__(self) -> str:
        mode = "owned" if self.owns_transaction else "joined"
        return f"UnitOfWork({mode})"

"""Worker process that expires projects once their deadline has passed.

Runs ``python -m simflow.worker`` next to the API; one pass a day.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from simflow.config import get_settings
from simflow.db import get_session_factory
from simflow.services.project import expire_overdue_projects
from simflow.services.unit_of_work import UnitOfWork

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from simflow.schemas.project import ExpiryRunResponse

logger = logging.getLogger(__name__)

EXPIRY_INTERVAL_SECONDS = 86400  # 24 hours


async def run_expiry_pass(
    session_factory: async_sessionmaker[AsyncSession], today: date
) -> ExpiryRunResponse | None:
    """Run one expiry pass in its own session. Returns None if the pass failed."""
    try:
        async with session_factory() as session:
            result = await expire_overdue_projects(UnitOfWork.owned(session), today)
    except Exception:
        logger.exception("Project expiry run failed for %s", today)
        return None

    logger.info("Project expiry run for %s: expired=%d", today, result.expired)
    return result


async def run_expiry_loop() -> None:
    """Main worker loop."""
    logger.info("Project expiry worker started")
    session_factory = get_session_factory()

    while True:
        await run_expiry_pass(session_factory, datetime.now(UTC).date())
        await asyncio.sleep(EXPIRY_INTERVAL_SECONDS)


def main() -> None:
    """Entry point for the worker process."""
    logging.basicConfig(
        level=get_settings().log_level, format="%(asctime)s %(name)s %(levelname)s %(message)s"
    )
    asyncio.run(run_expiry_loop())


if __name__ == "__main__":
    main()

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Callable

from aiohttp import web

from capped_cache.application.service import CacheManager

logger = logging.getLogger(__name__)


async def run_periodic_cleanup(
    manager: CacheManager, interval: float, max_age_minutes: float
) -> None:
    """Remove stale items every ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            removed = await asyncio.to_thread(manager.cleanup_old_entries, max_age_minutes)
        except Exception:
            logger.exception("Error in periodic cleanup")
            continue
        if removed:
            logger.info("Periodic cleanup removed %s items", removed)


def periodic_cleanup_context(
    manager: CacheManager, interval: float, max_age_minutes: float
) -> Callable[[web.Application], AsyncIterator[None]]:
    async def _context(app: web.Application) -> AsyncIterator[None]:
        task = asyncio.create_task(run_periodic_cleanup(manager, interval, max_age_minutes))
        logger.info(
            "Periodic cleanup every %ss for items older than %s minutes", interval, max_age_minutes
        )
        yield
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    return _context

from __future__ import annotations

import asyncio
import logging
import os
import signal

from aiohttp import web

from capped_cache.application.service import CacheManager
from capped_cache.infrastructure.config import Settings, load_settings
from capped_cache.infrastructure.logging import configure_logging
from capped_cache.infrastructure.sql_store import SqlItemStore
from capped_cache.infrastructure.tls import server_ssl_context
from capped_cache.transport.http.app import create_app

logger = logging.getLogger(__name__)


async def serve(settings: Settings | None = None) -> None:
    settings = settings or load_settings()
    ssl_context = server_ssl_context(settings)

    store = SqlItemStore(settings.database_url)
    manager = CacheManager(store, max_size=settings.max_size)
    app = create_app(
        manager,
        cleanup_interval=settings.cleanup_interval,
        cleanup_max_age_minutes=settings.cleanup_max_age_minutes,
    )

    access_log = logger if settings.log_level == "DEBUG" else None
    runner = web.AppRunner(app, access_log=access_log)
    await runner.setup()
    site = web.TCPSite(runner, settings.host, settings.port, ssl_context=ssl_context)
    await site.start()

    transport = "TLS" if ssl_context is not None else "plain HTTP"
    logger.info(
        "Cache service listening on %s:%s (%s, max_size=%s)",
        settings.host,
        settings.port,
        transport,
        settings.max_size,
    )

    stop_event = asyncio.Event()

    def _begin_shutdown() -> None:
        logger.info("Received shutdown signal, stopping cache service...")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _begin_shutdown)

    try:
        await stop_event.wait()
    finally:
        await runner.cleanup()
        store.close()


def main() -> None:
    configure_logging(
        os.getenv("CACHE_LOG_LEVEL", "INFO").upper(),
        os.getenv("CACHE_LOG_FORMAT", "text"),
    )
    try:
        settings = load_settings()
        asyncio.run(serve(settings))
    except Exception:
        logger.exception("Failed to start cache service")
        raise


if __name__ == "__main__":
    main()

import pytest_asyncio
from aiohttp import web

from capped_cache.application.service import CacheManager
from capped_cache.infrastructure.sql_store import SqlItemStore
from capped_cache.transport.http.app import create_app


async def start_app(app: web.Application) -> tuple[web.AppRunner, int]:
    runner = web.AppRunner(app, access_log=None)
    await runner.setup()

    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()

    if site._server is None or not site._server.sockets:
        await runner.cleanup()
        raise RuntimeError("cache server did not start")

    port = site._server.sockets[0].getsockname()[1]
    return runner, port


@pytest_asyncio.fixture
async def cache_server(tmp_path):
    store = SqlItemStore(f"sqlite:///{tmp_path / 'cache.sqlite'}")
    manager = CacheManager(store, max_size=3)
    runner, port = await start_app(create_app(manager))
    try:
        yield f"http://127.0.0.1:{port}", manager
    finally:
        await runner.cleanup()
        store.close()


@pytest_asyncio.fixture
async def serve_app():
    runners: list[web.AppRunner] = []

    async def _serve(app: web.Application) -> str:
        runner, port = await start_app(app)
        runners.append(runner)
        return f"http://127.0.0.1:{port}"

    try:
        yield _serve
    finally:
        for runner in runners:
            await runner.cleanup()

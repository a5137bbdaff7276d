import aiohttp
import pytest

from capped_cache.application.service import CacheManager
from capped_cache.transport.http.app import create_app

pytestmark = [pytest.mark.integration, pytest.mark.asyncio]


async def test_health_endpoints_ok(cache_server):
    base_url, manager = cache_server
    manager.set("k", 1)

    async with aiohttp.ClientSession() as session:
        async with session.get(f"{base_url}/health") as resp:
            assert resp.status == 200
            assert resp.headers.get("Content-Type", "").startswith("application/json")
            assert resp.headers.get("x-request-id")
            payload = await resp.json()

        assert payload["status"] == "healthy"
        assert isinstance(payload["uptime_seconds"], (int, float))
        assert payload["cache_size"] == 1
        assert payload["max_size"] == 3
        assert isinstance(payload["timestamp"], (int, float))

        async with session.get(f"{base_url}/ready") as resp:
            assert resp.status == 200
            assert (await resp.json())["status"] == "healthy"

        async with session.get(f"{base_url}/live") as resp:
            assert resp.status == 200
            payload = await resp.json()
            assert payload["status"] == "alive"

        async with session.get(
            f"{base_url}/live",
            headers={"x-request-id": "test-request-id"},
        ) as resp:
            assert resp.headers.get("x-request-id") == "test-request-id"

        async with session.get(f"{base_url}/") as resp:
            assert resp.status == 200
            payload = await resp.json()
            assert payload["service"] == "capped-cache"
            assert "/cache" in payload["endpoints"]
            assert "/health" in payload["endpoints"]
            assert payload["max_size"] == 3


async def test_health_endpoints_error_when_store_is_down(serve_app):
    class BrokenStore:
        def ping(self) -> None:
            raise RuntimeError("boom")

    base_url = await serve_app(create_app(CacheManager(BrokenStore(), max_size=3)))  # type: ignore[arg-type]

    async with aiohttp.ClientSession() as session:
        async with session.get(f"{base_url}/health") as resp:
            assert resp.status == 503
            assert resp.headers.get("x-request-id")
            payload = await resp.json()
            assert payload["status"] == "error"

        async with session.get(f"{base_url}/live") as resp:
            assert resp.status == 200

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from typing import Any, Optional

from aiohttp import web

from capped_cache.application.request_context import request_id_var
from capped_cache.application.service import CacheManager
from capped_cache.domain.constraints import DEFAULT_MAX_AGE_MINUTES
from capped_cache.domain.errors import CapacityExceededError, ValidationError
from capped_cache.domain.models import MISSING

from .cleanup import periodic_cleanup_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"

CACHE_MANAGER = web.AppKey("cache_manager", CacheManager)


def _error(status: int, error: str, message: str) -> web.Response:
    return web.json_response({"error": error, "message": message}, status=status)


@web.middleware
async def request_id_middleware(request: web.Request, handler):
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    token = request_id_var.set(request_id)
    try:
        response = await handler(request)
    finally:
        request_id_var.reset(token)

    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except ValidationError as exc:
        return _error(400, "Validation Error", str(exc))
    except CapacityExceededError as exc:
        return _error(507, "Storage Error", str(exc))
    except Exception:
        logger.exception("Error handling %s %s", request.method, request.path)
        return _error(
            500,
            "Internal Server Error",
            f"Internal server error (request_id={request_id_var.get()})",
        )


async def _read_json_object(request: web.Request, *, allow_empty: bool = False) -> dict[str, Any]:
    if allow_empty and not request.body_exists:
        return {}
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError("Request body must be valid JSON") from exc
    if body is None and allow_empty:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _manager(request: web.Request) -> CacheManager:
    return request.app[CACHE_MANAGER]


class CacheHandler:
    async def set_item(self, request: web.Request) -> web.Response:
        body = await _read_json_object(request)
        key = body.get("key")
        await asyncio.to_thread(_manager(request).set, key, body.get("value", MISSING))
        return web.json_response(
            {"status": "success", "message": "Stored successfully", "data": {"key": key}},
            status=201,
        )

    async def get_item(self, request: web.Request) -> web.Response:
        key = request.match_info["key"]
        value = await asyncio.to_thread(_manager(request).get, key)
        if value is MISSING:
            return _error(404, "Not Found", "Key not found")
        return web.json_response({"status": "success", "data": {"key": key, "value": value}})

    async def has_item(self, request: web.Request) -> web.Response:
        found = await asyncio.to_thread(_manager(request).has, request.match_info["key"])
        return web.Response(status=200 if found else 404)

    async def delete_item(self, request: web.Request) -> web.Response:
        key = request.match_info["key"]
        deleted = await asyncio.to_thread(_manager(request).delete, key)
        if not deleted:
            return _error(404, "Not Found", "Key not found")
        return web.json_response(
            {"status": "success", "message": "Deleted successfully", "data": {"key": key}}
        )

    async def clear(self, request: web.Request) -> web.Response:
        await asyncio.to_thread(_manager(request).clear)
        return web.json_response({"status": "success", "message": "Cache cleared successfully"})

    async def stats(self, request: web.Request) -> web.Response:
        stats = await asyncio.to_thread(_manager(request).get_stats)
        return web.json_response({"status": "success", "data": stats.to_dict()})

    async def cleanup(self, request: web.Request) -> web.Response:
        body = await _read_json_object(request, allow_empty=True)
        max_age_minutes = body.get("maxAgeMinutes", DEFAULT_MAX_AGE_MINUTES)
        deleted = await asyncio.to_thread(_manager(request).cleanup_old_entries, max_age_minutes)
        return web.json_response(
            {"status": "success", "message": "Cleanup completed", "data": {"deletedCount": deleted}}
        )


class HealthCheckHandler:
    def __init__(self) -> None:
        self._start_time = time.monotonic()

    @staticmethod
    def _check_store(manager: CacheManager) -> int:
        ping = getattr(manager.store, "ping", None)
        if ping is not None:
            ping()
        return manager.size()

    async def health_check(self, request: web.Request) -> web.Response:
        manager = _manager(request)
        try:
            size = await asyncio.to_thread(self._check_store, manager)
        except Exception as exc:
            logger.exception("Health check error")
            return web.json_response({"status": "error", "message": str(exc)}, status=503)

        return web.json_response(
            {
                "status": "healthy",
                "uptime_seconds": round(time.monotonic() - self._start_time, 2),
                "cache_size": size,
                "max_size": manager.max_size,
                "timestamp": time.time(),
            }
        )

    async def readiness_check(self, request: web.Request) -> web.Response:
        return await self.health_check(request)

    async def liveness_check(self, request: web.Request) -> web.Response:
        return web.json_response(
            {
                "status": "alive",
                "uptime_seconds": round(time.monotonic() - self._start_time, 2),
                "timestamp": time.time(),
            }
        )


def create_app(
    manager: CacheManager,
    *,
    cleanup_interval: int = 0,
    cleanup_max_age_minutes: float = DEFAULT_MAX_AGE_MINUTES,
    middlewares: Optional[list] = None,
) -> web.Application:
    app = web.Application(
        middlewares=[request_id_middleware, error_middleware, *(middlewares or [])]
    )
    app[CACHE_MANAGER] = manager

    cache = CacheHandler()
    health = HealthCheckHandler()

    # Fixed paths first so they win over /cache/{key}; HEAD on any of them means has().
    app.router.add_post("/cache", cache.set_item)
    app.router.add_delete("/cache", cache.clear)
    app.router.add_get("/cache/stats", cache.stats, allow_head=False)
    app.router.add_post("/cache/cleanup", cache.cleanup)
    app.router.add_get("/cache/{key:.+}", cache.get_item, allow_head=False)
    app.router.add_head("/cache/{key:.+}", cache.has_item)
    app.router.add_delete("/cache/{key:.+}", cache.delete_item)

    app.router.add_get("/health", health.health_check)
    app.router.add_get("/ready", health.readiness_check)
    app.router.add_get("/live", health.liveness_check)

    async def root_handler(request: web.Request) -> web.Response:
        return web.json_response(
            {
                "service": "capped-cache",
                "endpoints": ["/cache", "/cache/stats", "/cache/cleanup", "/health", "/ready", "/live"],
                "max_size": _manager(request).max_size,
            }
        )

    app.router.add_get("/", root_handler)

    if cleanup_interval > 0:
        app.cleanup_ctx.append(
            periodic_cleanup_context(manager, cleanup_interval, cleanup_max_age_minutes)
        )
    return app

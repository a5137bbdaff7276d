import json

import pytest

from capped_cache.cli import run

pytestmark = [pytest.mark.integration, pytest.mark.asyncio]


async def test_cli_set_get_has_delete_roundtrip(cache_server, capsys):
    base_url, _ = cache_server

    assert await run(["--url", base_url, "set", "k1", '{"a": [1, 2]}']) == 0
    assert capsys.readouterr().out.strip() == "OK"

    assert await run(["--url", base_url, "get", "k1"]) == 0
    assert json.loads(capsys.readouterr().out) == {"a": [1, 2]}

    assert await run(["--url", base_url, "set", "k2", "hello", "--raw"]) == 0
    capsys.readouterr()
    assert await run(["--url", base_url, "get", "k2"]) == 0
    assert json.loads(capsys.readouterr().out) == "hello"

    assert await run(["--url", base_url, "has", "k1"]) == 0
    assert capsys.readouterr().out.strip() == "true"

    assert await run(["--url", base_url, "stats"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["totalItems"] == 2
    assert payload["maxSize"] == 3

    assert await run(["--url", base_url, "delete", "k1"]) == 0
    assert capsys.readouterr().out.strip() == "OK"

    assert await run(["--url", base_url, "get", "k1"]) == 1
    assert await run(["--url", base_url, "has", "k1"]) == 1
    assert capsys.readouterr().out.strip() == "false"
    assert await run(["--url", base_url, "delete", "k1"]) == 1


async def test_cli_clear_and_cleanup(cache_server, capsys):
    base_url, manager = cache_server
    manager.set("a", 1)

    assert await run(["--url", base_url, "cleanup", "--max-age-minutes", "60"]) == 0
    assert capsys.readouterr().out.strip() == "0"

    assert await run(["--url", base_url, "clear"]) == 0
    assert capsys.readouterr().out.strip() == "OK"
    assert manager.size() == 0

    assert await run(["--url", base_url, "cleanup", "--max-age-minutes", "0"]) == 2
    assert "400: Max age must be positive" in capsys.readouterr().err


async def test_cli_reports_full_cache(cache_server, capsys):
    base_url, manager = cache_server
    for key in ("a", "b", "c"):
        manager.set(key, key)

    assert await run(["--url", base_url, "set", "d", "1"]) == 2
    assert "507: Cache is full" in capsys.readouterr().err


async def test_cli_rejects_invalid_json_value(cache_server, capsys):
    base_url, manager = cache_server

    assert await run(["--url", base_url, "set", "k", "{oops"]) == 2
    assert "use --raw" in capsys.readouterr().err
    assert manager.size() == 0


async def test_cli_show_request_id_prints_response_request_id(cache_server, capsys):
    base_url, _ = cache_server

    assert (
        await run(
            [
                "--url",
                base_url,
                "--request-id",
                "rid-123",
                "--show-request-id",
                "stats",
            ]
        )
        == 0
    )
    stderr = capsys.readouterr().err
    assert "x-request-id=rid-123" in stderr

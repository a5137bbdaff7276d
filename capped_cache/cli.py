from __future__ import annotations

import argparse
import asyncio
import json
import ssl
import sys
import uuid
from typing import Any, Optional, Sequence
from urllib.parse import quote

import aiohttp

REQUEST_ID_HEADER = "x-request-id"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="capped-cache")
    parser.add_argument(
        "--url",
        default="http://127.0.0.1:3000",
        help="base URL of the cache service",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=5.0,
        help="per-request timeout in seconds",
    )
    parser.add_argument(
        "--request-id",
        default=None,
        help="override request id sent as x-request-id",
    )
    parser.add_argument(
        "--show-request-id",
        action="store_true",
        help="print the server x-request-id response header to stderr",
    )
    parser.add_argument(
        "--tls-ca",
        default=None,
        help="path to PEM-encoded CA bundle for https URLs (optional)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    get_parser = subparsers.add_parser("get", help="get a value (printed as JSON)")
    get_parser.add_argument("key")

    set_parser = subparsers.add_parser("set", help="set a value")
    set_parser.add_argument("key")
    set_parser.add_argument("value", help="value as JSON")
    set_parser.add_argument(
        "--raw",
        action="store_true",
        help="store the value as a plain string instead of parsing JSON",
    )

    has_parser = subparsers.add_parser("has", help="check whether a key exists")
    has_parser.add_argument("key")

    delete_parser = subparsers.add_parser("delete", help="delete a key")
    delete_parser.add_argument("key")

    subparsers.add_parser("clear", help="delete every key")
    subparsers.add_parser("stats", help="print cache statistics as json")

    cleanup_parser = subparsers.add_parser("cleanup", help="remove old entries")
    cleanup_parser.add_argument(
        "--max-age-minutes",
        type=float,
        default=None,
        help="remove items older than this (server default: 60)",
    )

    return parser


def _parse_set_value(args: argparse.Namespace) -> Any:
    if args.raw:
        return args.value
    try:
        return json.loads(args.value)
    except json.JSONDecodeError as exc:
        raise ValueError(f"value is not valid JSON (use --raw for plain strings): {exc}") from exc


def _key_url(base_url: str, key: str) -> str:
    return f"{base_url}/cache/{quote(key, safe='')}"


def _ssl_context(args: argparse.Namespace) -> ssl.SSLContext | bool:
    if not args.tls_ca:
        return True
    return ssl.create_default_context(cafile=args.tls_ca)


class CommandFailed(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(f"{status}: {message}")
        self.status = status


async def _request(
    session: aiohttp.ClientSession,
    args: argparse.Namespace,
    method: str,
    url: str,
    *,
    payload: Any = None,
    ok_statuses: tuple[int, ...] = (200, 201),
) -> tuple[int, Optional[dict[str, Any]]]:
    kwargs: dict[str, Any] = {}
    if payload is not None:
        kwargs["json"] = payload

    async with session.request(method, url, **kwargs) as response:
        response_request_id = response.headers.get(REQUEST_ID_HEADER)
        if args.show_request_id and response_request_id:
            print(f"{REQUEST_ID_HEADER}={response_request_id}", file=sys.stderr)

        body = None
        if method != "HEAD" and response.content_type == "application/json":
            body = await response.json()

        if response.status not in ok_statuses:
            message = (body or {}).get("message", response.reason or "")
            raise CommandFailed(response.status, message)
        return response.status, body


async def run(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    base_url = args.url.rstrip("/")
    request_id = args.request_id or uuid.uuid4().hex

    try:
        value = _parse_set_value(args) if args.command == "set" else None
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    timeout = aiohttp.ClientTimeout(total=args.timeout)
    connector = aiohttp.TCPConnector(ssl=_ssl_context(args))
    async with aiohttp.ClientSession(
        timeout=timeout,
        connector=connector,
        headers={REQUEST_ID_HEADER: request_id},
    ) as session:
        try:
            if args.command == "get":
                status, body = await _request(
                    session, args, "GET", _key_url(base_url, args.key), ok_statuses=(200, 404)
                )
                if status == 404:
                    return 1
                print(json.dumps(body["data"]["value"]))
                return 0

            if args.command == "set":
                await _request(
                    session, args, "POST", f"{base_url}/cache", payload={"key": args.key, "value": value}
                )
                print("OK")
                return 0

            if args.command == "has":
                status, _ = await _request(
                    session, args, "HEAD", _key_url(base_url, args.key), ok_statuses=(200, 404)
                )
                print("true" if status == 200 else "false")
                return 0 if status == 200 else 1

            if args.command == "delete":
                status, _ = await _request(
                    session, args, "DELETE", _key_url(base_url, args.key), ok_statuses=(200, 404)
                )
                if status == 404:
                    print("NOT FOUND", file=sys.stderr)
                    return 1
                print("OK")
                return 0

            if args.command == "clear":
                await _request(session, args, "DELETE", f"{base_url}/cache")
                print("OK")
                return 0

            if args.command == "stats":
                _, body = await _request(session, args, "GET", f"{base_url}/cache/stats")
                print(json.dumps(body["data"]))
                return 0

            if args.command == "cleanup":
                payload = {}
                if args.max_age_minutes is not None:
                    payload["maxAgeMinutes"] = args.max_age_minutes
                _, body = await _request(
                    session, args, "POST", f"{base_url}/cache/cleanup", payload=payload
                )
                print(body["data"]["deletedCount"])
                return 0

            parser.error(f"unknown command: {args.command}")
            return 2
        except CommandFailed as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 2
        except aiohttp.ClientError as exc:
            print(f"request failed: {exc}", file=sys.stderr)
            return 2
        except asyncio.TimeoutError:
            print("request failed: timed out", file=sys.stderr)
            return 2


def main() -> None:
    raise SystemExit(asyncio.run(run()))


if __name__ == "__main__":
    main()

from __future__ import annotations

import os
from typing import Callable, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from capped_cache.domain.constraints import DEFAULT_MAX_AGE_MINUTES, DEFAULT_MAX_SIZE

from .sql_store import DEFAULT_DATABASE_URL

T = TypeVar("T")

_TRUTHY = frozenset({"1", "true", "yes", "y", "on"})
_FALSY = frozenset({"0", "false", "no", "n", "off"})

LOG_FORMATS = ("text", "json")


def _read_env(env_name: str, default_value: T, parse: Callable[[str], T], expected: str) -> T:
    """Parse ``env_name`` with ``parse``; unset means ``default_value``."""
    raw_value = os.getenv(env_name)
    if raw_value is None:
        return default_value
    try:
        return parse(raw_value)
    except ValueError as exc:
        raise ValueError(f"{env_name} must be {expected}, got {raw_value!r}") from exc


def _parse_bool(raw_value: str) -> bool:
    normalized = raw_value.strip().lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    raise ValueError(raw_value)


def get_env_int(
    env_name: str,
    default_value: int,
    *,
    min_value: Optional[int] = None,
    max_value: Optional[int] = None,
) -> int:
    value = _read_env(env_name, default_value, int, "an integer")
    if min_value is not None and value < min_value:
        raise ValueError(f"{env_name} must be >= {min_value}, got {value}")
    if max_value is not None and value > max_value:
        raise ValueError(f"{env_name} must be <= {max_value}, got {value}")
    return value


def get_env_float(env_name: str, default_value: float, *, positive: bool = False) -> float:
    value = _read_env(env_name, default_value, float, "a number")
    # "not >" so NaN is rejected too
    if positive and not value > 0:
        raise ValueError(f"{env_name} must be > 0, got {value}")
    return value


def get_env_bool(env_name: str, default_value: bool) -> bool:
    return _read_env(env_name, default_value, _parse_bool, "a boolean")


def get_env_choice(env_name: str, default_value: str, choices: tuple[str, ...]) -> str:
    value = _read_env(env_name, default_value, lambda raw: raw.strip().lower(), "a string")
    if value not in choices:
        raise ValueError(f"{env_name} must be one of {', '.join(choices)}, got {value!r}")
    return value


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_size: int = Field(ge=1)
    database_url: str
    host: str
    port: int = Field(ge=1, le=65535)
    cleanup_interval: int = Field(ge=0)
    cleanup_max_age_minutes: float = Field(gt=0)
    log_level: str
    log_format: str
    tls_enabled: bool
    tls_cert_path: str | None
    tls_key_path: str | None
    tls_require_client_auth: bool
    tls_client_ca_path: str | None


def load_settings() -> Settings:
    # MAX_CACHE_SIZE is the older name of the capacity setting.
    max_size_env = "CACHE_MAX_SIZE" if os.getenv("CACHE_MAX_SIZE") is not None else "MAX_CACHE_SIZE"

    return Settings(
        max_size=get_env_int(max_size_env, DEFAULT_MAX_SIZE, min_value=1),
        database_url=os.getenv("CACHE_DATABASE_URL", DEFAULT_DATABASE_URL),
        host=os.getenv("CACHE_HOST", "0.0.0.0"),
        port=get_env_int("CACHE_PORT", 3000, min_value=1, max_value=65535),
        cleanup_interval=get_env_int("CACHE_CLEANUP_INTERVAL", 0, min_value=0),
        cleanup_max_age_minutes=get_env_float(
            "CACHE_CLEANUP_MAX_AGE_MINUTES", DEFAULT_MAX_AGE_MINUTES, positive=True
        ),
        log_level=os.getenv("CACHE_LOG_LEVEL", "INFO").upper(),
        log_format=get_env_choice("CACHE_LOG_FORMAT", "text", LOG_FORMATS),
        tls_enabled=get_env_bool("CACHE_TLS_ENABLED", False),
        tls_cert_path=os.getenv("CACHE_TLS_CERT_PATH"),
        tls_key_path=os.getenv("CACHE_TLS_KEY_PATH"),
        tls_require_client_auth=get_env_bool("CACHE_TLS_REQUIRE_CLIENT_AUTH", False),
        tls_client_ca_path=os.getenv("CACHE_TLS_CLIENT_CA_PATH"),
    )

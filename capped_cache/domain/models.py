from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


# Marks "no value at all"; distinct from a stored JSON null (None).
MISSING: Any = _Missing()


def to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


@dataclass(frozen=True)
class CacheItem:
    key: str
    value: Any
    timestamp: float


@dataclass(frozen=True)
class ItemStamp:
    """Key and write time of a record, without its value."""

    key: str
    timestamp: float


@dataclass(frozen=True)
class CacheStats:
    total_items: int
    oldest_item_timestamp: Optional[datetime]
    newest_item_timestamp: Optional[datetime]
    max_size: int
    remaining_space: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalItems": self.total_items,
            "oldestItemTimestamp": _isoformat(self.oldest_item_timestamp),
            "newestItemTimestamp": _isoformat(self.newest_item_timestamp),
            "maxSize": self.max_size,
            "remainingSpace": self.remaining_space,
        }


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None

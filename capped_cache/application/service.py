from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from capped_cache.domain.constraints import DEFAULT_MAX_AGE_MINUTES, DEFAULT_MAX_SIZE
from capped_cache.domain.errors import CacheError, CapacityExceededError, OperationError
from capped_cache.domain.models import MISSING, CacheStats, to_datetime
from capped_cache.domain.validation import validate_key, validate_max_age, validate_value

from .ports import ItemStorePort

logger = logging.getLogger(__name__)


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except CacheError:
        raise
    except Exception as exc:
        raise OperationError(f"Failed to {action}: {exc}") from exc


class CacheManager:
    """
    Size-bounded key/value cache on top of a durable item store.

    The store is the only source of truth; the manager keeps nothing but the
    configured capacity. Capacity is an admission gate for new keys, nothing
    is evicted to make room. Updates to an existing key always succeed.

    ``set`` holds a lock across its existence check, count and write so that
    concurrent writers in one process cannot admit more than ``max_size`` keys.
    Several processes sharing one database can still overshoot transiently.
    """

    def __init__(
        self,
        store: ItemStorePort,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Optional[Callable[[], float]] = None,
    ):
        if isinstance(max_size, bool) or not isinstance(max_size, int) or max_size < 1:
            raise ValueError(f"max_size must be an integer >= 1, got {max_size!r}")

        self.store = store
        self.max_size = max_size
        self._clock = clock or time.time
        self._admission_lock = threading.Lock()

    def set(self, key: str, value: Any = MISSING) -> bool:
        validate_key(key)
        validate_value(value)

        with self._admission_lock, _store_errors("set cache value"):
            if not self.store.exists(key):
                current = self.store.count()
                if current >= self.max_size:
                    logger.warning(
                        "Rejected key=%r: cache is full (%s/%s)",
                        key,
                        current,
                        self.max_size,
                        extra={"cache_key": key, "max_size": self.max_size},
                    )
                    raise CapacityExceededError(self.max_size)
            self.store.upsert(key, value, self._clock())

        logger.debug("SET key=%r", key)
        return True

    def get(self, key: str) -> Any:
        """Return the stored value, or ``MISSING`` when the key is absent."""
        validate_key(key)
        with _store_errors("get cache value"):
            item = self.store.find_by_key(key)

        logger.debug("GET key=%r result=%s", key, "HIT" if item is not None else "MISS")
        return item.value if item is not None else MISSING

    def delete(self, key: str) -> bool:
        validate_key(key)
        with _store_errors("delete cache value"):
            deleted = self.store.delete_by_key(key)

        logger.debug("DELETE key=%r deleted=%s", key, deleted)
        return deleted > 0

    def has(self, key: str) -> bool:
        validate_key(key)
        with _store_errors("check key existence"):
            return self.store.exists(key)

    def size(self) -> int:
        with _store_errors("get cache size"):
            return self.store.count()

    def clear(self) -> None:
        with _store_errors("clear cache"):
            removed = self.store.delete_all()
        logger.info("Cleared cache (%s items removed)", removed)

    def cleanup_old_entries(self, max_age_minutes: float = DEFAULT_MAX_AGE_MINUTES) -> int:
        """Remove every item written strictly before ``now - max_age_minutes``."""
        validate_max_age(max_age_minutes)

        cutoff = self._clock() - max_age_minutes * 60
        with _store_errors("cleanup old entries"):
            removed = self.store.delete_older_than(cutoff)

        logger.info(
            "Cleanup removed %s items older than %s minutes",
            removed,
            max_age_minutes,
            extra={"deleted_count": removed},
        )
        return removed

    def get_stats(self) -> CacheStats:
        # Three independent reads; under concurrent writes they may disagree slightly.
        with _store_errors("get cache stats"):
            total = self.store.count()
            oldest = self.store.find_extreme(newest=False)
            newest = self.store.find_extreme(newest=True)

        return CacheStats(
            total_items=total,
            oldest_item_timestamp=to_datetime(oldest.timestamp) if oldest else None,
            newest_item_timestamp=to_datetime(newest.timestamp) if newest else None,
            max_size=self.max_size,
            remaining_space=max(0, self.max_size - total),
        )

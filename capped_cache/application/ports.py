from __future__ import annotations

from typing import Any, Optional, Protocol

from capped_cache.domain.models import CacheItem, ItemStamp


class ItemStorePort(Protocol):
    def count(self) -> int: ...

    def find_by_key(self, key: str) -> Optional[CacheItem]: ...

    def exists(self, key: str) -> bool: ...

    def upsert(self, key: str, value: Any, timestamp: float) -> None: ...

    def delete_by_key(self, key: str) -> int: ...

    def delete_all(self) -> int: ...

    def delete_older_than(self, cutoff: float) -> int: ...

    def find_extreme(self, *, newest: bool) -> Optional[ItemStamp]: ...

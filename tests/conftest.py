import pytest

from capped_cache.application.service import CacheManager
from capped_cache.infrastructure.sql_store import SqlItemStore


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    item_store = SqlItemStore(f"sqlite:///{tmp_path / 'cache.sqlite'}")
    try:
        yield item_store
    finally:
        item_store.close()


@pytest.fixture
def manager(store, clock):
    return CacheManager(store, max_size=10, clock=clock)

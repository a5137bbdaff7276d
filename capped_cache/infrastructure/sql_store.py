from __future__ import annotations

import json
import logging
import time
from typing import Any, Optional

from sqlalchemy import Float, Index, String, Text, create_engine, delete, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from capped_cache.domain.models import CacheItem, ItemStamp

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///cache.sqlite"


class Base(DeclarativeBase):
    pass


class CacheItemRecord(Base):
    __tablename__ = "cache_items"
    __table_args__ = (Index("ix_cache_items_timestamp", "timestamp"),)

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[float] = mapped_column(Float, nullable=False)
    updated_at: Mapped[float] = mapped_column(Float, nullable=False)

    def to_item(self) -> CacheItem:
        return CacheItem(key=self.key, value=json.loads(self.value), timestamp=self.timestamp)


def _build_engine(url: str) -> Engine:
    if url == "sqlite://" or (url.startswith("sqlite") and ":memory:" in url):
        # One shared connection, otherwise every checkout sees an empty database.
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


class SqlItemStore:
    """Durable item store: one row per key, values kept as JSON text."""

    def __init__(self, url: str = DEFAULT_DATABASE_URL, *, create_schema: bool = True):
        self.url = url
        self.engine = _build_engine(url)
        self._sessions = sessionmaker(self.engine, expire_on_commit=False)
        if create_schema:
            self.create_schema()

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)
        logger.info("Database schema ready (%s)", self.engine.url.render_as_string(hide_password=True))

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def count(self) -> int:
        with self._sessions() as session:
            return session.scalar(select(func.count()).select_from(CacheItemRecord)) or 0

    def find_by_key(self, key: str) -> Optional[CacheItem]:
        with self._sessions() as session:
            record = session.get(CacheItemRecord, key)
            return record.to_item() if record is not None else None

    def exists(self, key: str) -> bool:
        stmt = select(func.count()).select_from(CacheItemRecord).where(CacheItemRecord.key == key)
        with self._sessions() as session:
            return bool(session.scalar(stmt))

    def upsert(self, key: str, value: Any, timestamp: float) -> None:
        payload = json.dumps(value)
        now = time.time()
        with self._sessions.begin() as session:
            record = session.get(CacheItemRecord, key)
            if record is None:
                session.add(
                    CacheItemRecord(
                        key=key,
                        value=payload,
                        timestamp=timestamp,
                        created_at=now,
                        updated_at=now,
                    )
                )
            else:
                record.value = payload
                record.timestamp = timestamp
                record.updated_at = now

    def delete_by_key(self, key: str) -> int:
        return self._delete(delete(CacheItemRecord).where(CacheItemRecord.key == key))

    def delete_all(self) -> int:
        return self._delete(delete(CacheItemRecord))

    def delete_older_than(self, cutoff: float) -> int:
        return self._delete(delete(CacheItemRecord).where(CacheItemRecord.timestamp < cutoff))

    def find_extreme(self, *, newest: bool) -> Optional[ItemStamp]:
        # key and timestamp only; the value column is never read
        order = CacheItemRecord.timestamp.desc() if newest else CacheItemRecord.timestamp.asc()
        stmt = select(CacheItemRecord.key, CacheItemRecord.timestamp).order_by(order).limit(1)
        with self._sessions() as session:
            row = session.execute(stmt).first()
        return ItemStamp(key=row.key, timestamp=row.timestamp) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()

    def _delete(self, stmt) -> int:
        with self._sessions.begin() as session:
            result = session.execute(stmt, execution_options={"synchronize_session": False})
            return result.rowcount or 0

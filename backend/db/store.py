"""
Key-value store adapters for the ledger.

The ledger only needs an opaque string -> string map with get / put / delete
and prefix listing. Two backends:

- SqlKeyValueStore: one row per key in the ``kv_entries`` table (async SQLAlchemy)
- MemoryKeyValueStore: a dict, for local runs and tests

Every call is independent (its own session and commit); nothing is atomic
across calls, the same as a hosted KV namespace.
"""

import logging
from typing import List, Optional, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import settings
from core.errors import StoreUnavailable
from db.database import async_session_maker
from db.kv_entry import KvEntry

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def put(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def list_keys(self, prefix: str = "") -> List[str]: ...


class SqlKeyValueStore:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def get(self, key: str) -> Optional[str]:
        try:
            async with self._session_maker() as db:
                res = await db.execute(select(KvEntry.value).where(KvEntry.key == key))
                return res.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise _unavailable("get", key, e) from e

    async def put(self, key: str, value: str) -> None:
        try:
            async with self._session_maker() as db:
                # merge() = insert or overwrite by primary key, on any dialect
                await db.merge(KvEntry(key=key, value=value))
                await db.commit()
        except SQLAlchemyError as e:
            raise _unavailable("put", key, e) from e

    async def delete(self, key: str) -> None:
        try:
            async with self._session_maker() as db:
                await db.execute(delete(KvEntry).where(KvEntry.key == key))
                await db.commit()
        except SQLAlchemyError as e:
            raise _unavailable("delete", key, e) from e

    async def list_keys(self, prefix: str = "") -> List[str]:
        stmt = select(KvEntry.key).order_by(KvEntry.key.asc())
        if prefix:
            stmt = stmt.where(KvEntry.key.startswith(prefix, autoescape=True))
        try:
            async with self._session_maker() as db:
                res = await db.execute(stmt)
                return [row[0] for row in res.fetchall()]
        except SQLAlchemyError as e:
            raise _unavailable("list", prefix, e) from e


class MemoryKeyValueStore:
    def __init__(self):
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def put(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list_keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


def _unavailable(op: str, key: str, err: Exception) -> StoreUnavailable:
    logger.error("Store %s failed for key %r: %s", op, key, err)
    return StoreUnavailable(f"store {op} failed: {err}")


_memory_store = MemoryKeyValueStore()


def get_store() -> KeyValueStore:
    """FastAPI dependency: the store selected by STORE_BACKEND."""
    if settings.store_backend == "memory":
        return _memory_store
    return SqlKeyValueStore(async_session_maker)

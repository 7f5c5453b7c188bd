"""
Record store: named collections of JSON records.

Every repository reads and writes through a store handle passed in
explicitly. A collection is a flat ordered list of records that is read
and replaced as a unit; there are no partial updates. Across processes
the later ``set`` of a collection wins and silently discards a concurrent
writer's changes (no locking is attempted).
"""

import itertools
import json
import logging
import secrets
from typing import Any, Dict, List, Optional, Protocol, Sequence, Type, TypeVar, runtime_checkable

from pydantic import BaseModel

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from teamforge.database.db import create_engine_and_sessionmaker, init_database
from teamforge.database.models import RecordCollection, StoreFlag

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


@runtime_checkable
class RecordStore(Protocol):
    """Interface shared by every store implementation."""

    async def get(self, name: str) -> Optional[List[Record]]:
        """Return the collection, or None if it was never written."""
        ...

    async def set(self, name: str, records: List[Record]) -> None:
        """Replace the whole collection in one write."""
        ...

    def new_id(self) -> str:
        ...

    async def get_flag(self, key: str) -> bool:
        ...

    async def set_flag(self, key: str, value: bool = True) -> None:
        ...

    async def clear_flag(self, key: str) -> None:
        ...

    async def collection_names(self) -> List[str]:
        ...


def _dump(records: List[Record]) -> str:
    return json.dumps(records, separators=(",", ":"), default=str)


def _copy(records: List[Record]) -> List[Record]:
    return json.loads(_dump(records))


class IdGenerator:
    """
    Opaque ids of the form ``<prefix>-<counter>``.

    The counter is strictly increasing within one instance; the random
    prefix separates instances.
    """

    def __init__(self, prefix: Optional[str] = None):
        self.prefix = prefix or secrets.token_hex(4)
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter):08d}"


async def read_collection(store: RecordStore, name: str) -> List[Record]:
    """Read a collection, treating an absent one as empty."""
    records = await store.get(name)
    return records if records is not None else []


class MemoryRecordStore:
    """Process-local store. Records are JSON-encoded on write like a browser profile."""

    def __init__(self, id_prefix: Optional[str] = None):
        self._collections: Dict[str, str] = {}
        self._flags: Dict[str, bool] = {}
        self._ids = IdGenerator(id_prefix)

    async def get(self, name: str) -> Optional[List[Record]]:
        payload = self._collections.get(name)
        if payload is None:
            return None
        return json.loads(payload)

    async def set(self, name: str, records: List[Record]) -> None:
        self._collections[name] = _dump(list(records))

    def new_id(self) -> str:
        return self._ids()

    async def get_flag(self, key: str) -> bool:
        return self._flags.get(key, False)

    async def set_flag(self, key: str, value: bool = True) -> None:
        self._flags[key] = value

    async def clear_flag(self, key: str) -> None:
        self._flags.pop(key, None)

    async def collection_names(self) -> List[str]:
        return sorted(self._collections)


class SqlRecordStore:
    """
    Store backed by SQLAlchemy: one ``record_collections`` row per collection.

    Each ``set`` runs in its own transaction, so a collection is either
    fully replaced or left as it was.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        engine: Optional[AsyncEngine] = None,
        id_prefix: Optional[str] = None,
    ):
        self._session_factory = session_factory
        self._engine = engine
        self._ids = IdGenerator(id_prefix)

    async def get(self, name: str) -> Optional[List[Record]]:
        async with self._session_factory() as session:
            row = await session.get(RecordCollection, name)
            if row is None:
                return None
            return _copy(row.records or [])

    async def set(self, name: str, records: List[Record]) -> None:
        payload = _copy(list(records))
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(RecordCollection, name)
                if row is None:
                    session.add(RecordCollection(name=name, records=payload))
                else:
                    row.records = payload

    def new_id(self) -> str:
        return self._ids()

    async def get_flag(self, key: str) -> bool:
        async with self._session_factory() as session:
            flag = await session.get(StoreFlag, key)
            return bool(flag.value) if flag else False

    async def set_flag(self, key: str, value: bool = True) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                flag = await session.get(StoreFlag, key)
                if flag is None:
                    session.add(StoreFlag(key=key, value=value))
                else:
                    flag.value = value

    async def clear_flag(self, key: str) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                flag = await session.get(StoreFlag, key)
                if flag is not None:
                    await session.delete(flag)

    async def collection_names(self) -> List[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(RecordCollection.name).order_by(RecordCollection.name)
            )
            return list(result.scalars().all())

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()


async def open_sql_store(database_url: Optional[str] = None) -> SqlRecordStore:
    """Create the engine, ensure tables exist and return a SqlRecordStore."""
    engine, session_factory = create_engine_and_sessionmaker(database_url)
    await init_database(engine)
    return SqlRecordStore(session_factory, engine=engine)


class SyncedRecordStore:
    """
    Cache-aside decorator over a local store and an optional remote store.

    Reads prefer the remote while online and refresh the local copy; any
    remote failure falls back to local. Writes always land locally first
    and are pushed to the remote when online; a failed push is logged and
    left for the next reconnect. On reconnect every non-empty local
    collection is pushed, overwriting the remote (local is the source of
    truth). Flags and ids never leave the local store.
    """

    def __init__(self, local: RecordStore, remote: Optional[RecordStore] = None):
        self.local = local
        self.remote = remote
        self._online = remote is not None

    @property
    def is_online(self) -> bool:
        return self.remote is not None and self._online

    def go_offline(self) -> None:
        logger.info("Offline mode - using local store only")
        self._online = False

    async def reconnect(self) -> int:
        """Mark the store online and re-push local state. Returns collections pushed."""
        if self.remote is None:
            return 0
        self._online = True
        logger.info("Back online - syncing local collections to remote")
        return await self.sync_local_to_remote()

    async def sync_local_to_remote(self) -> int:
        if not self.is_online:
            return 0
        pushed = 0
        for name in await self.local.collection_names():
            records = await self.local.get(name)
            if not records:
                continue
            try:
                await self.remote.set(name, records)
                pushed += 1
            except Exception as e:
                logger.error(f"Failed to sync {name} to remote: {e}")
        logger.info(f"Full sync completed ({pushed} collections)")
        return pushed

    async def get(self, name: str) -> Optional[List[Record]]:
        if not self.is_online:
            return await self.local.get(name)
        try:
            records = await self.remote.get(name)
        except Exception as e:
            logger.warning(f"Remote read failed for {name}, using local store: {e}")
            return await self.local.get(name)
        if records is None:
            return await self.local.get(name)
        await self.local.set(name, records)
        return records

    async def set(self, name: str, records: List[Record]) -> None:
        await self.local.set(name, records)
        if not self.is_online:
            return
        try:
            await self.remote.set(name, records)
        except Exception as e:
            logger.error(f"Failed to sync {name} to remote: {e}")

    def new_id(self) -> str:
        return self.local.new_id()

    async def get_flag(self, key: str) -> bool:
        return await self.local.get_flag(key)

    async def set_flag(self, key: str, value: bool = True) -> None:
        await self.local.set_flag(key, value)

    async def clear_flag(self, key: str) -> None:
        await self.local.clear_flag(key)

    async def collection_names(self) -> List[str]:
        return await self.local.collection_names()


# ============================================================================
# Typed helpers used by the repositories
# ============================================================================

M = TypeVar("M", bound=BaseModel)


async def load_records(store: RecordStore, name: str, model: Type[M]) -> List[M]:
    """Read a collection and validate every record into ``model``."""
    return [model.model_validate(record) for record in await read_collection(store, name)]


async def save_records(store: RecordStore, name: str, records: Sequence[BaseModel]) -> None:
    """Write a whole collection of typed records in one ``set``."""
    await store.set(name, [record.to_record() for record in records])


def merge_record(record: M, updates: Dict[str, Any], protected: Sequence[str] = ("id", "created_at")) -> M:
    """
    Return ``record`` with ``updates`` applied and re-validated.

    Keys that are not fields of the model, and protected keys, are ignored.
    """
    fields = type(record).model_fields
    allowed = {k: v for k, v in updates.items() if k in fields and k not in protected}
    return type(record).model_validate({**record.model_dump(), **allowed})

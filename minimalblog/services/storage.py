"""Blog storage backends: the remote realtime store and the local fallback."""

import json
import logging
from typing import Any

from minimalblog.errors import PersistenceFailure
from minimalblog.services.local_storage import LocalKeyValueStore
from minimalblog.services.realtime_db import (
    OnChange,
    OnError,
    RealtimeDatabase,
    Subscription,
)

logger = logging.getLogger(__name__)

BLOGS_KEY = "minimalBlogs"


class BlogStorage:
    """Operations the repository needs from a backend.

    Records are raw stored values keyed by their storage key; normalization
    happens in the repository.
    """

    name = "storage"
    supports_atomic_increment = False

    async def read_all(self) -> dict[str, Any]:
        raise NotImplementedError

    async def read_one(self, key: str) -> Any | None:
        raise NotImplementedError

    async def write_one(self, key: str, record: dict[str, Any]) -> None:
        raise NotImplementedError

    async def update_field(self, key: str, field: str, value: Any) -> None:
        raise NotImplementedError

    async def increment_field(self, key: str, field: str, delta: int = 1) -> int | None:
        raise NotImplementedError(f"{self.name} storage has no atomic increment")

    def subscribe(self, on_change: OnChange, on_error: OnError) -> Subscription | None:
        """Open a change stream. Backends without one return None."""
        return None

    async def close(self) -> None:
        return None


class RemoteStore(BlogStorage):
    """Posts under one collection of the realtime database."""

    name = "remote"
    supports_atomic_increment = True

    def __init__(self, db: RealtimeDatabase, collection: str = "blogs") -> None:
        self._db = db
        self._collection = collection

    async def read_all(self) -> dict[str, Any]:
        return await self._db.read_all(self._collection)

    async def read_one(self, key: str) -> Any | None:
        return await self._db.read_one(self._collection, key)

    async def write_one(self, key: str, record: dict[str, Any]) -> None:
        await self._db.write_one(self._collection, key, record)

    async def update_field(self, key: str, field: str, value: Any) -> None:
        await self._db.update_field(self._collection, key, field, value)

    async def increment_field(self, key: str, field: str, delta: int = 1) -> int | None:
        return await self._db.increment_field(self._collection, key, field, delta)

    def subscribe(self, on_change: OnChange, on_error: OnError) -> Subscription:
        return self._db.subscribe(self._collection, on_change, on_error)

    async def close(self) -> None:
        await self._db.aclose()


class LocalStore(BlogStorage):
    """The whole post mapping as one JSON entry in local key-value storage.

    Every write rewrites the full mapping.
    """

    name = "local"

    def __init__(self, kv: LocalKeyValueStore, key: str = BLOGS_KEY) -> None:
        self._kv = kv
        self._key = key

    async def read_all(self) -> dict[str, Any]:
        raw = self._kv.get_item(self._key)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Local blog store is not valid JSON; starting empty")
            return {}
        return data if isinstance(data, dict) else {}

    async def read_one(self, key: str) -> Any | None:
        return (await self.read_all()).get(key)

    async def save_all(self, records: dict[str, Any]) -> None:
        try:
            self._kv.set_item(self._key, json.dumps(records))
        except OSError as e:
            raise PersistenceFailure(f"Could not write local blog store: {e}") from e

    async def write_one(self, key: str, record: dict[str, Any]) -> None:
        records = await self.read_all()
        records[key] = record
        await self.save_all(records)

    async def update_field(self, key: str, field: str, value: Any) -> None:
        records = await self.read_all()
        record = records.get(key)
        if not isinstance(record, dict):
            raise PersistenceFailure(f"No local record {key!r} to update")
        record[field] = value
        await self.save_all(records)

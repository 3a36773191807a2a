"""API key persistence — SQLite (aiosqlite) or in-memory."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol, runtime_checkable

import aiosqlite

from rapids.db.queries import api_keys as key_queries
from rapids.db.queries import rate_limits as rate_queries
from rapids.exceptions import DuplicateKeyError
from rapids.models.api_key import ApiKey


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MS = timedelta(milliseconds=1)


def to_ms(value: datetime) -> int:
    """Epoch milliseconds, truncated. Integer arithmetic, so round trips are exact."""
    return (value - EPOCH) // _MS


def from_ms(value: int) -> datetime:
    return EPOCH + value * _MS


@dataclass(frozen=True)
class KeyFilter:
    """Row filter for listing and counting keys.

    ``expired`` is tri-state: None ignores expiry, False keeps only keys
    that are unexpired at ``now``, True keeps only expired ones.
    """

    now: datetime
    is_active: bool | None = None
    prefix: str | None = None
    expired: bool | None = None

    def matches(self, record: ApiKey) -> bool:
        if self.is_active is not None and record.is_active != self.is_active:
            return False
        if self.prefix and record.prefix != self.prefix:
            return False
        if self.expired is not None and record.is_expired(self.now) != self.expired:
            return False
        return True


@runtime_checkable
class KeyStore(Protocol):
    """Interface for API key and rate-window persistence."""

    async def insert(self, record: ApiKey) -> None: ...

    async def get_by_hash(self, key_hash: str) -> ApiKey | None: ...

    async def get_by_id(self, key_id: str) -> ApiKey | None: ...

    async def update(self, key_id: str, fields: dict[str, Any]) -> bool: ...

    async def delete(self, key_id: str) -> bool: ...

    async def list(self, key_filter: KeyFilter, limit: int, offset: int) -> list[ApiKey]: ...

    async def count(self, key_filter: KeyFilter) -> int: ...

    async def increment_rate_window(self, key_id: str, window_start: int, limit: int) -> int | None: ...

    async def purge_rate_windows_before(self, threshold: int) -> int: ...


def _row_to_api_key(row: dict) -> ApiKey:
    return ApiKey(
        id=row["id"],
        key_hash=row["key_hash"],
        prefix=row["prefix"],
        suffix=row["suffix"],
        name=row["name"],
        created_at=from_ms(row["created_at"]),
        expires_at=from_ms(row["expires_at"]) if row["expires_at"] is not None else None,
        last_used_at=from_ms(row["last_used_at"]) if row["last_used_at"] is not None else None,
        is_active=row["is_active"] == 1,
        metadata=json.loads(row["metadata"]),
        scopes=json.loads(row["scopes"]),
        rate_limit=row["rate_limit"],
    )


def _to_column(name: str, value: Any) -> Any:
    if name in ("metadata", "scopes"):
        return json.dumps(value)
    if name == "is_active":
        return 1 if value else 0
    if isinstance(value, datetime):
        return to_ms(value)
    return value


class SqliteKeyStore:
    """Keys and rate windows in SQLite; JSON text columns for metadata and scopes."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def insert(self, record: ApiKey) -> None:
        row = {name: _to_column(name, value) for name, value in record.model_dump().items()}
        try:
            await key_queries.insert_key(self._db, row)
        except aiosqlite.IntegrityError as exc:
            await self._db.rollback()
            raise DuplicateKeyError() from exc

    async def get_by_hash(self, key_hash: str) -> ApiKey | None:
        row = await key_queries.get_key_by_hash(self._db, key_hash)
        return _row_to_api_key(row) if row else None

    async def get_by_id(self, key_id: str) -> ApiKey | None:
        row = await key_queries.get_key(self._db, key_id)
        return _row_to_api_key(row) if row else None

    async def update(self, key_id: str, fields: dict[str, Any]) -> bool:
        columns = {name: _to_column(name, value) for name, value in fields.items()}
        return await key_queries.update_key(self._db, key_id, columns)

    async def delete(self, key_id: str) -> bool:
        return await key_queries.delete_key(self._db, key_id)

    async def list(self, key_filter: KeyFilter, limit: int, offset: int) -> list[ApiKey]:
        rows = await key_queries.list_keys(
            self._db,
            to_ms(key_filter.now),
            is_active=key_filter.is_active,
            prefix=key_filter.prefix,
            expired=key_filter.expired,
            limit=limit,
            offset=offset,
        )
        return [_row_to_api_key(r) for r in rows]

    async def count(self, key_filter: KeyFilter) -> int:
        return await key_queries.count_keys(
            self._db,
            to_ms(key_filter.now),
            is_active=key_filter.is_active,
            prefix=key_filter.prefix,
            expired=key_filter.expired,
        )

    async def increment_rate_window(self, key_id: str, window_start: int, limit: int) -> int | None:
        return await rate_queries.increment_window(self._db, key_id, window_start, limit)

    async def purge_rate_windows_before(self, threshold: int) -> int:
        return await rate_queries.purge_windows_before(self._db, threshold)


class MemoryKeyStore:
    """In-process store (single event loop).

    Every method finishes without awaiting, so each call is atomic with
    respect to other tasks on the loop.
    """

    def __init__(self) -> None:
        self._keys: dict[str, ApiKey] = {}
        self._hash_index: dict[str, str] = {}
        self._windows: dict[tuple[str, int], int] = {}

    async def insert(self, record: ApiKey) -> None:
        if record.id in self._keys or record.key_hash in self._hash_index:
            raise DuplicateKeyError()
        self._keys[record.id] = record.model_copy(deep=True)
        self._hash_index[record.key_hash] = record.id

    async def get_by_hash(self, key_hash: str) -> ApiKey | None:
        key_id = self._hash_index.get(key_hash)
        return await self.get_by_id(key_id) if key_id else None

    async def get_by_id(self, key_id: str) -> ApiKey | None:
        record = self._keys.get(key_id)
        return record.model_copy(deep=True) if record else None

    async def update(self, key_id: str, fields: dict[str, Any]) -> bool:
        unknown = set(fields) - set(key_queries.UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update api_keys columns: {', '.join(sorted(unknown))}")
        record = self._keys.get(key_id)
        if record is None:
            return False
        self._keys[key_id] = record.model_copy(update=fields, deep=True)
        return True

    async def delete(self, key_id: str) -> bool:
        record = self._keys.pop(key_id, None)
        if record is None:
            return False
        del self._hash_index[record.key_hash]
        for window in [w for w in self._windows if w[0] == key_id]:
            del self._windows[window]
        return True

    async def list(self, key_filter: KeyFilter, limit: int, offset: int) -> list[ApiKey]:
        # dict order is insertion order, so reversing it breaks created_at ties newest first
        records = [r for r in reversed(self._keys.values()) if key_filter.matches(r)]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in records[offset:offset + limit]]

    async def count(self, key_filter: KeyFilter) -> int:
        return sum(1 for r in self._keys.values() if key_filter.matches(r))

    async def increment_rate_window(self, key_id: str, window_start: int, limit: int) -> int | None:
        count = self._windows.get((key_id, window_start), 0)
        if count >= limit:
            return None
        self._windows[(key_id, window_start)] = count + 1
        return count + 1

    async def purge_rate_windows_before(self, threshold: int) -> int:
        stale = [w for w in self._windows if w[1] < threshold]
        for window in stale:
            del self._windows[window]
        return len(stale)

"""Tests for the SQLite key store, migrations and rate-window queries."""

from __future__ import annotations

from datetime import timedelta

import aiosqlite
import pytest

from rapids.db.database import close_db, open_db, run_migrations
from rapids.db.queries import api_keys as key_queries
from rapids.db.queries import rate_limits as rate_queries
from rapids.exceptions import DuplicateKeyError
from rapids.models.api_key import ApiKey
from rapids.services.key_store import KeyFilter, KeyStore, MemoryKeyStore, SqliteKeyStore, from_ms, to_ms
from tests.conftest import START


def _record(key_id: str = "key-1", key_hash: str = "hash-1", **overrides) -> ApiKey:
    fields = dict(
        id=key_id,
        key_hash=key_hash,
        prefix="rapids_",
        suffix="wxyz",
        name="test-key",
        created_at=START,
        metadata={"team": "core", "limits": [1, 2]},
        scopes=["read"],
    )
    fields.update(overrides)
    return ApiKey(**fields)


async def _window_count(db, key_id: str, window_start: int) -> int:
    async with db.execute(
        "SELECT request_count FROM rate_limit_records WHERE key_id = ? AND window_start = ?",
        (key_id, window_start),
    ) as cursor:
        row = await cursor.fetchone()
    return row[0] if row else 0


@pytest.mark.asyncio
async def test_both_stores_satisfy_protocol(db):
    assert isinstance(MemoryKeyStore(), KeyStore)
    assert isinstance(SqliteKeyStore(db), KeyStore)


def test_ms_conversion_round_trip():
    assert from_ms(to_ms(START)) == START
    assert to_ms(from_ms(1_767_268_800_123)) == 1_767_268_800_123


@pytest.mark.asyncio
async def test_open_db_runs_migrations():
    db = await open_db(":memory:")
    try:
        async with db.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
        ) as cursor:
            tables = {row[0] for row in await cursor.fetchall()}
        assert {"api_keys", "rate_limit_records", "apps", "shared_secrets", "rues", "schema_version"} <= tables
        # Applying again is a no-op
        assert await run_migrations(db) == 1
    finally:
        await close_db(db)


@pytest.mark.asyncio
async def test_json_columns_stored_as_text(db):
    store = SqliteKeyStore(db)
    await store.insert(_record())

    row = await key_queries.get_key(db, "key-1")
    assert row["metadata"] == '{"team": "core", "limits": [1, 2]}'
    assert row["scopes"] == '["read"]'
    assert row["is_active"] == 1
    assert row["created_at"] == to_ms(START)

    record = await store.get_by_id("key-1")
    assert record.metadata == {"team": "core", "limits": [1, 2]}
    assert record.scopes == ["read"]


@pytest.mark.asyncio
async def test_duplicate_hash_or_id_rejected(db):
    store = SqliteKeyStore(db)
    await store.insert(_record())

    with pytest.raises(DuplicateKeyError):
        await store.insert(_record(key_id="key-2"))
    with pytest.raises(DuplicateKeyError):
        await store.insert(_record(key_hash="hash-2"))

    # Connection is still usable after the failed insert
    await store.insert(_record(key_id="key-3", key_hash="hash-3"))
    assert await store.count(KeyFilter(now=START)) == 2


@pytest.mark.asyncio
async def test_update_rejects_immutable_columns(db):
    store = SqliteKeyStore(db)
    await store.insert(_record())
    with pytest.raises(ValueError):
        await store.update("key-1", {"key_hash": "other"})
    with pytest.raises(ValueError):
        await MemoryKeyStore().update("key-1", {"rate_limit": 5})


@pytest.mark.asyncio
async def test_increment_window_is_capped(db):
    store = SqliteKeyStore(db)
    await store.insert(_record())
    window = to_ms(START)

    assert await store.increment_rate_window("key-1", window, 2) == 1
    assert await store.increment_rate_window("key-1", window, 2) == 2
    assert await store.increment_rate_window("key-1", window, 2) is None
    assert await _window_count(db, "key-1", window) == 2


@pytest.mark.asyncio
async def test_delete_cascades_to_rate_windows(db):
    store = SqliteKeyStore(db)
    await store.insert(_record())
    window = to_ms(START)
    await store.increment_rate_window("key-1", window, 10)

    assert await store.delete("key-1") is True
    assert await _window_count(db, "key-1", window) == 0


@pytest.mark.asyncio
async def test_rate_window_needs_existing_key(db):
    with pytest.raises(aiosqlite.IntegrityError):
        await rate_queries.increment_window(db, "missing", to_ms(START), 5)
    await db.rollback()


@pytest.mark.asyncio
async def test_count_and_list_share_filters(store):
    await store.insert(_record("a", "ha"))
    await store.insert(_record("b", "hb", is_active=False))
    await store.insert(_record("c", "hc", expires_at=START - timedelta(seconds=1)))
    await store.insert(_record("d", "hd", prefix="sk_", expires_at=START + timedelta(days=1)))

    cases = [
        (KeyFilter(now=START), {"a", "b", "c", "d"}),
        (KeyFilter(now=START, is_active=True), {"a", "c", "d"}),
        (KeyFilter(now=START, expired=True), {"c"}),
        (KeyFilter(now=START, expired=False), {"a", "b", "d"}),
        (KeyFilter(now=START, prefix="sk_"), {"d"}),
        (KeyFilter(now=START + timedelta(days=2), expired=True), {"c", "d"}),
    ]
    for key_filter, expected in cases:
        assert {k.id for k in await store.list(key_filter, limit=50, offset=0)} == expected
        assert await store.count(key_filter) == len(expected)

from __future__ import annotations

import aiosqlite

# Columns a caller may change after creation
UPDATABLE_COLUMNS = ("name", "metadata", "scopes", "is_active", "last_used_at")


async def insert_key(db: aiosqlite.Connection, row: dict) -> None:
    await db.execute(
        """INSERT INTO api_keys
           (id, key_hash, prefix, suffix, name, created_at, expires_at,
            last_used_at, is_active, metadata, scopes, rate_limit)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            row["id"], row["key_hash"], row["prefix"], row["suffix"], row["name"],
            row["created_at"], row["expires_at"], row["last_used_at"], row["is_active"],
            row["metadata"], row["scopes"], row["rate_limit"],
        ),
    )
    await db.commit()


async def get_key(db: aiosqlite.Connection, key_id: str) -> dict | None:
    async with db.execute("SELECT * FROM api_keys WHERE id = ?", (key_id,)) as cursor:
        row = await cursor.fetchone()
        return dict(row) if row else None


async def get_key_by_hash(db: aiosqlite.Connection, key_hash: str) -> dict | None:
    async with db.execute("SELECT * FROM api_keys WHERE key_hash = ?", (key_hash,)) as cursor:
        row = await cursor.fetchone()
        return dict(row) if row else None


async def update_key(db: aiosqlite.Connection, key_id: str, fields: dict) -> bool:
    updates = []
    params = []
    for column in UPDATABLE_COLUMNS:
        if column in fields:
            updates.append(f"{column} = ?")
            params.append(fields[column])
    unknown = set(fields) - set(UPDATABLE_COLUMNS)
    if unknown:
        raise ValueError(f"Cannot update api_keys columns: {', '.join(sorted(unknown))}")
    if not updates:
        return False
    params.append(key_id)
    result = await db.execute(f"UPDATE api_keys SET {', '.join(updates)} WHERE id = ?", params)
    await db.commit()
    return result.rowcount > 0


async def delete_key(db: aiosqlite.Connection, key_id: str) -> bool:
    result = await db.execute("DELETE FROM api_keys WHERE id = ?", (key_id,))
    await db.commit()
    return result.rowcount > 0


def _where(
    is_active: bool | None,
    prefix: str | None,
    expired: bool | None,
    now_ms: int,
) -> tuple[str, list]:
    conditions = []
    params: list = []
    if is_active is not None:
        conditions.append("is_active = ?")
        params.append(1 if is_active else 0)
    if prefix:
        conditions.append("prefix = ?")
        params.append(prefix)
    if expired is True:
        conditions.append("expires_at IS NOT NULL AND expires_at <= ?")
        params.append(now_ms)
    elif expired is False:
        conditions.append("(expires_at IS NULL OR expires_at > ?)")
        params.append(now_ms)
    clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    return clause, params


async def list_keys(
    db: aiosqlite.Connection,
    now_ms: int,
    is_active: bool | None = None,
    prefix: str | None = None,
    expired: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[dict]:
    clause, params = _where(is_active, prefix, expired, now_ms)
    # rowid breaks ties between keys created in the same millisecond
    async with db.execute(
        f"SELECT * FROM api_keys {clause} ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
        (*params, limit, offset),
    ) as cursor:
        rows = await cursor.fetchall()
        return [dict(r) for r in rows]


async def count_keys(
    db: aiosqlite.Connection,
    now_ms: int,
    is_active: bool | None = None,
    prefix: str | None = None,
    expired: bool | None = None,
) -> int:
    clause, params = _where(is_active, prefix, expired, now_ms)
    async with db.execute(f"SELECT COUNT(*) FROM api_keys {clause}", params) as cursor:
        row = await cursor.fetchone()
        return row[0] if row else 0

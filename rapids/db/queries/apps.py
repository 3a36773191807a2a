from __future__ import annotations

import time
import uuid

import aiosqlite


async def list_apps(db: aiosqlite.Connection) -> list[dict]:
    async with db.execute("SELECT * FROM apps ORDER BY created_at DESC") as cursor:
        rows = await cursor.fetchall()
        return [dict(r) for r in rows]


async def get_app(db: aiosqlite.Connection, app_id: str) -> dict | None:
    async with db.execute("SELECT * FROM apps WHERE app_id = ?", (app_id,)) as cursor:
        row = await cursor.fetchone()
        return dict(row) if row else None


async def create_app(
    db: aiosqlite.Connection,
    name: str,
    public_key: str,
    private_key_encrypted: str,
    app_id: str | None = None,
) -> str:
    app_id = app_id or str(uuid.uuid4())
    await db.execute(
        """INSERT INTO apps (app_id, name, public_key, private_key_encrypted, created_at)
           VALUES (?, ?, ?, ?, ?)""",
        (app_id, name, public_key, private_key_encrypted, int(time.time() * 1000)),
    )
    await db.commit()
    return app_id


async def update_app(
    db: aiosqlite.Connection,
    app_id: str,
    name: str | None = None,
    public_key: str | None = None,
    private_key_encrypted: str | None = None,
) -> None:
    updates = []
    params = []
    if name is not None:
        updates.append("name = ?")
        params.append(name)
    if public_key is not None:
        updates.append("public_key = ?")
        params.append(public_key)
    if private_key_encrypted is not None:
        updates.append("private_key_encrypted = ?")
        params.append(private_key_encrypted)
    if not updates:
        return
    params.append(app_id)
    await db.execute(f"UPDATE apps SET {', '.join(updates)} WHERE app_id = ?", params)
    await db.commit()


async def delete_app(db: aiosqlite.Connection, app_id: str) -> bool:
    result = await db.execute("DELETE FROM apps WHERE app_id = ?", (app_id,))
    await db.commit()
    return result.rowcount > 0

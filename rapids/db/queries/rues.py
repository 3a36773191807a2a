from __future__ import annotations

import time

import aiosqlite


async def upsert_rues(db: aiosqlite.Connection, app_id: str, public_key: str) -> dict:
    now = int(time.time() * 1000)
    await db.execute(
        """INSERT INTO rues (app_id, public_key, created_at)
           VALUES (?, ?, ?)
           ON CONFLICT (app_id) DO UPDATE SET public_key = excluded.public_key,
           created_at = excluded.created_at""",
        (app_id, public_key, now),
    )
    await db.commit()
    return {"app_id": app_id, "public_key": public_key, "created_at": now}


async def get_rues(db: aiosqlite.Connection, app_id: str) -> dict | None:
    async with db.execute("SELECT * FROM rues WHERE app_id = ?", (app_id,)) as cursor:
        row = await cursor.fetchone()
        return dict(row) if row else None


async def delete_rues(db: aiosqlite.Connection, app_id: str) -> bool:
    result = await db.execute("DELETE FROM rues WHERE app_id = ?", (app_id,))
    await db.commit()
    return result.rowcount > 0


async def list_rues(db: aiosqlite.Connection) -> list[dict]:
    async with db.execute("SELECT * FROM rues ORDER BY created_at DESC") as cursor:
        rows = await cursor.fetchall()
        return [dict(r) for r in rows]

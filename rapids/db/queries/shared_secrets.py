from __future__ import annotations

import time

import aiosqlite


async def upsert_shared_secret(db: aiosqlite.Connection, private_key: str, public_key: str) -> dict:
    now = int(time.time() * 1000)
    await db.execute(
        """INSERT INTO shared_secrets (private_key, public_key, created_at)
           VALUES (?, ?, ?)
           ON CONFLICT (private_key) DO UPDATE SET public_key = excluded.public_key,
           created_at = excluded.created_at""",
        (private_key, public_key, now),
    )
    await db.commit()
    return {"private_key": private_key, "public_key": public_key, "created_at": now}


async def get_shared_secret(db: aiosqlite.Connection, private_key: str) -> dict | None:
    async with db.execute(
        "SELECT * FROM shared_secrets WHERE private_key = ?", (private_key,)
    ) as cursor:
        row = await cursor.fetchone()
        return dict(row) if row else None


async def delete_shared_secret(db: aiosqlite.Connection, private_key: str) -> bool:
    result = await db.execute("DELETE FROM shared_secrets WHERE private_key = ?", (private_key,))
    await db.commit()
    return result.rowcount > 0


async def list_shared_secrets(db: aiosqlite.Connection) -> list[dict]:
    async with db.execute("SELECT * FROM shared_secrets ORDER BY created_at DESC") as cursor:
        rows = await cursor.fetchall()
        return [dict(r) for r in rows]

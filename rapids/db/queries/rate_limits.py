from __future__ import annotations

import aiosqlite


async def increment_window(
    db: aiosqlite.Connection, key_id: str, window_start: int, limit: int
) -> int | None:
    """Count one request in a window unless it already holds ``limit`` requests.

    Insert and increment happen in a single statement. Returns the count after
    incrementing, or None when the window was full and nothing changed.
    """
    async with db.execute(
        """INSERT INTO rate_limit_records (key_id, window_start, request_count)
           VALUES (?, ?, 1)
           ON CONFLICT (key_id, window_start)
           DO UPDATE SET request_count = request_count + 1
           WHERE request_count < ?
           RETURNING request_count""",
        (key_id, window_start, limit),
    ) as cursor:
        rows = await cursor.fetchall()
    await db.commit()
    return rows[0][0] if rows else None


async def purge_windows_before(db: aiosqlite.Connection, threshold: int) -> int:
    """Delete windows that started before ``threshold``. Returns count deleted."""
    result = await db.execute(
        "DELETE FROM rate_limit_records WHERE window_start < ?", (threshold,)
    )
    await db.commit()
    return result.rowcount

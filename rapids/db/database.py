import logging
from pathlib import Path

import aiosqlite
from fastapi import Request

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


async def open_db(database_path: str) -> aiosqlite.Connection:
    """Open the key database and bring its schema up to date."""
    if database_path != ":memory:":
        Path(database_path).parent.mkdir(parents=True, exist_ok=True)

    db = await aiosqlite.connect(database_path)
    db.row_factory = aiosqlite.Row

    if database_path != ":memory:":
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("PRAGMA busy_timeout=5000")

    # Rate-limit windows cascade on key deletion
    await db.execute("PRAGMA foreign_keys=ON")

    await run_migrations(db)
    logger.info("Database initialized at %s", database_path)
    return db


async def close_db(db: aiosqlite.Connection) -> None:
    await db.close()
    logger.info("Database connection closed")


async def run_migrations(db: aiosqlite.Connection) -> int:
    """Apply pending migrations in order. Returns the resulting schema version."""
    try:
        async with db.execute("SELECT MAX(version) FROM schema_version") as cursor:
            row = await cursor.fetchone()
            current_version = row[0] if row and row[0] else 0
    except aiosqlite.OperationalError:
        current_version = 0

    for mf in sorted(MIGRATIONS_DIR.glob("*.sql")):
        version = int(mf.stem.split("_")[0])
        if version > current_version:
            logger.info("Applying migration %s", mf.name)
            await db.executescript(mf.read_text())
            await db.commit()
            current_version = version

    logger.info("Migrations complete (at version %d)", current_version)
    return current_version


def get_db(request: Request) -> aiosqlite.Connection:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise RuntimeError("Database not initialized. Open it in the application lifespan first.")
    return db

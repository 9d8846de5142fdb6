# durable key/value storage on sqlite, internal to the storage package
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import aiosqlite

from utils.logger import get_logger

_logger = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS client_store (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

_initialized: set[str] = set()


@asynccontextmanager
async def connect(db_path: str) -> AsyncIterator[aiosqlite.Connection]:
    """Async context manager yielding a connection; creates the file and table on first use."""
    parent = os.path.dirname(db_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    conn = await aiosqlite.connect(db_path)
    try:
        if db_path not in _initialized:
            _logger.info(f"Initializing client store at {db_path}...")
            await conn.executescript(_SCHEMA)
            await conn.commit()
            _initialized.add(db_path)
        yield conn
    finally:
        await conn.close()


async def read_all(db_path: str) -> Dict[str, str]:
    async with connect(db_path) as conn:
        cur = await conn.execute("SELECT key, value FROM client_store;")
        rows = await cur.fetchall()
        await cur.close()
    return {row[0]: row[1] for row in rows}


async def read(db_path: str, key: str) -> Optional[str]:
    async with connect(db_path) as conn:
        cur = await conn.execute("SELECT value FROM client_store WHERE key = ?;", (key,))
        row = await cur.fetchone()
        await cur.close()
    return row[0] if row else None


async def write(db_path: str, key: str, value: str) -> None:
    async with connect(db_path) as conn:
        await conn.execute(
            "INSERT INTO client_store(key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value;",
            (key, value),
        )
        await conn.commit()


async def delete(db_path: str, *keys: str) -> None:
    if not keys:
        return
    async with connect(db_path) as conn:
        await conn.executemany("DELETE FROM client_store WHERE key = ?;", [(k,) for k in keys])
        await conn.commit()

# -*- coding: utf-8 -*-
"""SQLite schema and async data access for micro.log.

Two small tables:

* ``kv``       origin-scoped key/value pairs (the browser-storage backend)
* ``journals`` one encrypted record per account (the remote record store)
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiosqlite

PathLike = Union[str, Path]


# ---------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS kv (
    origin      TEXT NOT NULL,
    key         TEXT NOT NULL,
    value       TEXT NOT NULL,
    PRIMARY KEY (origin, key)
);

CREATE TABLE IF NOT EXISTS journals (
    account_id      TEXT PRIMARY KEY,
    encrypted_blob  TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);
"""


# ---------------------------------------------------------------------
# Connection / initialization
# ---------------------------------------------------------------------

async def init_db(db_path: PathLike) -> None:
    """Create tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(db_path) as db:
        await db.executescript(SCHEMA_SQL)
        await db.commit()


# ---------------------------------------------------------------------
# Key/value
# ---------------------------------------------------------------------

async def kv_get(db_path: PathLike, origin: str, key: str) -> Optional[str]:
    """Fetch a value; returns None when the key is unset."""
    async with aiosqlite.connect(db_path) as db:
        cur = await db.execute(
            "SELECT value FROM kv WHERE origin = ? AND key = ?",
            (origin, key),
        )
        row = await cur.fetchone()
        await cur.close()
        return row[0] if row else None


async def kv_set(db_path: PathLike, origin: str, key: str, value: str) -> None:
    async with aiosqlite.connect(db_path) as db:
        await db.execute(
            """
            INSERT INTO kv (origin, key, value) VALUES (?, ?, ?)
            ON CONFLICT(origin, key) DO UPDATE SET value = excluded.value
            """,
            (origin, key, value),
        )
        await db.commit()


async def kv_delete(db_path: PathLike, origin: str, key: str) -> None:
    async with aiosqlite.connect(db_path) as db:
        await db.execute("DELETE FROM kv WHERE origin = ? AND key = ?", (origin, key))
        await db.commit()


# ---------------------------------------------------------------------
# Journal records
# ---------------------------------------------------------------------

async def get_journal_record(db_path: PathLike, account_id: str) -> Optional[Dict[str, Any]]:
    """Return ``{"encrypted_blob", "updated_at"}`` for an account, or None."""
    async with aiosqlite.connect(db_path) as db:
        db.row_factory = aiosqlite.Row
        cur = await db.execute(
            "SELECT encrypted_blob, updated_at FROM journals WHERE account_id = ?",
            (account_id,),
        )
        row = await cur.fetchone()
        await cur.close()
        if row is None:
            return None
        return {"encrypted_blob": row["encrypted_blob"], "updated_at": row["updated_at"]}


async def put_journal_record(
    db_path: PathLike,
    account_id: str,
    encrypted_blob: str,
    updated_at: str,
) -> None:
    """Insert or replace the encrypted record for an account."""
    async with aiosqlite.connect(db_path) as db:
        await db.execute(
            """
            INSERT INTO journals (account_id, encrypted_blob, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(account_id) DO UPDATE
               SET encrypted_blob = excluded.encrypted_blob,
                   updated_at = excluded.updated_at
            """,
            (account_id, encrypted_blob, updated_at),
        )
        await db.commit()

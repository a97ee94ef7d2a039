"""Database schema migrations."""

from __future__ import annotations

import sqlite3

from core.logger import get_logger

from .connection import OptimizedSQLitePool

logger = get_logger(__name__)


SCHEMA_SQL: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS lotteries (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT,
        creator_id INTEGER NOT NULL,
        draw_mode TEXT NOT NULL CHECK(draw_mode IN ('timed', 'full', 'manual')),
        draw_time TEXT,
        max_entries INTEGER,
        status TEXT NOT NULL DEFAULT 'draft' CHECK(status IN ('draft', 'active', 'completed')),
        created_at TEXT NOT NULL,
        participants INTEGER NOT NULL DEFAULT 0,
        is_weights_disabled INTEGER NOT NULL DEFAULT 0
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS prizes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        lottery_id TEXT NOT NULL,
        name TEXT NOT NULL,
        quantity INTEGER NOT NULL DEFAULT 1 CHECK(quantity > 0),
        FOREIGN KEY (lottery_id) REFERENCES lotteries(id) ON DELETE CASCADE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS participants (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        lottery_id TEXT NOT NULL,
        user_id INTEGER NOT NULL,
        username TEXT,
        first_name TEXT,
        last_name TEXT,
        weight INTEGER NOT NULL DEFAULT 1 CHECK(weight >= 0),
        joined_at TEXT NOT NULL,
        FOREIGN KEY (lottery_id) REFERENCES lotteries(id) ON DELETE CASCADE,
        UNIQUE(lottery_id, user_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS edit_tokens (
        token TEXT PRIMARY KEY,
        lottery_id TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        FOREIGN KEY (lottery_id) REFERENCES lotteries(id) ON DELETE CASCADE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS winners (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        lottery_id TEXT NOT NULL,
        participant_id INTEGER NOT NULL,
        prize_id INTEGER NOT NULL,
        user_id INTEGER NOT NULL,
        username TEXT,
        prize_name TEXT NOT NULL,
        FOREIGN KEY (lottery_id) REFERENCES lotteries(id) ON DELETE CASCADE,
        FOREIGN KEY (participant_id) REFERENCES participants(id) ON DELETE CASCADE,
        FOREIGN KEY (prize_id) REFERENCES prizes(id) ON DELETE CASCADE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS prize_weights (
        lottery_id TEXT NOT NULL,
        user_id INTEGER NOT NULL,
        prize_id INTEGER NOT NULL,
        weight INTEGER NOT NULL CHECK(weight >= 0),
        PRIMARY KEY (lottery_id, user_id, prize_id),
        FOREIGN KEY (lottery_id) REFERENCES lotteries(id) ON DELETE CASCADE,
        FOREIGN KEY (prize_id) REFERENCES prizes(id) ON DELETE CASCADE
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_prizes_lottery ON prizes(lottery_id);",
    "CREATE INDEX IF NOT EXISTS idx_participants_lottery_joined ON participants(lottery_id, joined_at);",
    "CREATE INDEX IF NOT EXISTS idx_edit_tokens_lottery ON edit_tokens(lottery_id);",
    "CREATE INDEX IF NOT EXISTS idx_edit_tokens_expires ON edit_tokens(expires_at);",
    "CREATE INDEX IF NOT EXISTS idx_winners_lottery ON winners(lottery_id);",
    "CREATE INDEX IF NOT EXISTS idx_lotteries_timed_due ON lotteries(status, draw_mode, draw_time);",
    "CREATE INDEX IF NOT EXISTS idx_lotteries_draft_created ON lotteries(status, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_lotteries_creator_created ON lotteries(creator_id, created_at);",
)

# Columns added after the first release: (table, column definition)
ADDITIVE_COLUMNS: tuple[tuple[str, str], ...] = (
    ("lotteries", "participants INTEGER NOT NULL DEFAULT 0"),
    ("lotteries", "is_weights_disabled INTEGER NOT NULL DEFAULT 0"),
)


async def run_migrations(pool: OptimizedSQLitePool) -> None:
    async with pool.transaction() as conn:
        for statement in SCHEMA_SQL:
            await conn.execute(statement)

        for table, column in ADDITIVE_COLUMNS:
            try:
                await conn.execute(f"ALTER TABLE {table} ADD COLUMN {column}")
            except sqlite3.OperationalError:
                # Column already exists
                continue
            logger.info(f"Migration: added {table}.{column.split()[0]}")

    logger.info("Database schema is up to date")

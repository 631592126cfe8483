from __future__ import annotations

from typing import Sequence

import aiosqlite

from ..models import Creator, UserStats
from .base import BaseService


class UserStatsStore(BaseService[UserStats]):
    """Per-creator counters. Rows are never deleted and counters never go down.

    The counter updates are module-level coroutines that run on a caller's
    connection so they commit (or roll back) together with the event write that
    caused them.
    """

    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS user_stats (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL UNIQUE,
                display_name TEXT NULL,
                handle TEXT NULL,
                events_created INTEGER NOT NULL DEFAULT 0,
                events_approved INTEGER NOT NULL DEFAULT 0,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            )
            """
        )

    def _from_row(self, row: aiosqlite.Row) -> UserStats:
        return UserStats(
            user_id=int(row["user_id"]),
            display_name=row["display_name"],
            handle=row["handle"],
            events_created=int(row["events_created"]),
            events_approved=int(row["events_approved"]),
            created_at=int(row["created_at"]),
            seq=int(row["seq"]),
        )

    @property
    def _get_query(self) -> str:
        return "SELECT * FROM user_stats WHERE user_id = ?"

    async def with_approved(self) -> Sequence[UserStats]:
        """Every creator with at least one approved event, in insertion order."""
        async with self._connect() as db:
            async with db.execute(
                "SELECT * FROM user_stats WHERE events_approved > 0 ORDER BY seq ASC"
            ) as cur:
                rows = await cur.fetchall()
        return [self._from_row(r) for r in rows]


async def record_created(db: aiosqlite.Connection, creator: Creator, *, now_ts: int) -> None:
    """Upsert the creator's row and bump events_created. Does not commit."""
    now = int(now_ts)
    await db.execute(
        """
        INSERT INTO user_stats (user_id, display_name, handle, events_created, created_at, updated_at)
        VALUES (?, ?, ?, 1, ?, ?)
        ON CONFLICT(user_id) DO UPDATE SET
            display_name=COALESCE(excluded.display_name, user_stats.display_name),
            handle=COALESCE(excluded.handle, user_stats.handle),
            events_created=user_stats.events_created + 1,
            updated_at=excluded.updated_at
        """,
        (int(creator.user_id), creator.display_name, creator.handle, now, now),
    )


async def record_approved(db: aiosqlite.Connection, user_id: int, *, now_ts: int) -> None:
    """Bump events_approved. Does not commit."""
    now = int(now_ts)
    await db.execute(
        """
        INSERT INTO user_stats (user_id, events_approved, created_at, updated_at)
        VALUES (?, 1, ?, ?)
        ON CONFLICT(user_id) DO UPDATE SET
            events_approved=user_stats.events_approved + 1,
            updated_at=excluded.updated_at
        """,
        (int(user_id), now, now),
    )

from __future__ import annotations

from datetime import datetime, timezone

import aiosqlite

from convener.models import Address, Creator, EventDraft

NOW = datetime(2025, 8, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_draft(
    title: str = "Board games night",
    *,
    user_id: int = 42,
    starts_at: datetime | None = None,
    handle: str | None = "alice",
) -> EventDraft:
    return EventDraft(
        title=title,
        starts_at=starts_at or datetime(2025, 8, 15, 18, 30, tzinfo=timezone.utc),
        location=Address("Khreshchatyk 1, Kyiv"),
        creator=Creator(user_id, display_name=(handle or "").title() or None, handle=handle),
    )


async def fail_writes(db_path: str, table: str, column: str | None = None) -> None:
    """Install a trigger that aborts every UPDATE on ``table`` (or on one column of it)."""
    of = f" OF {column}" if column else ""
    async with aiosqlite.connect(db_path) as db:
        await db.execute(
            f"CREATE TRIGGER fail_{table}_update BEFORE UPDATE{of} ON {table} BEGIN SELECT RAISE(ABORT, 'boom'); END"
        )
        await db.commit()

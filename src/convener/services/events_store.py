from __future__ import annotations

from typing import Sequence

import aiosqlite

from ..errors import Conflict, NotFound
from ..models import (
    Address,
    Coordinates,
    Creator,
    Event,
    EventDraft,
    EventStatus,
    PublicationRef,
    from_epoch,
)
from .base import BaseService
from .users_store import record_approved, record_created


class EventsStore(BaseService[Event]):
    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS events (
                event_id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                description TEXT NULL,
                start_ts INTEGER NOT NULL,
                location_kind TEXT NOT NULL,
                address TEXT NULL,
                latitude REAL NULL,
                longitude REAL NULL,
                creator_id INTEGER NOT NULL,
                creator_name TEXT NULL,
                creator_handle TEXT NULL,
                status TEXT NOT NULL DEFAULT 'draft',
                publication_channel_id INTEGER NULL,
                publication_message_id INTEGER NULL,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                CHECK (
                    (location_kind = 'address' AND address IS NOT NULL AND latitude IS NULL AND longitude IS NULL)
                    OR (location_kind = 'coordinates' AND address IS NULL AND latitude IS NOT NULL AND longitude IS NOT NULL)
                )
            )
            """
        )
        await db.execute("CREATE INDEX IF NOT EXISTS idx_events_status_start ON events (status, start_ts)")

    def _from_row(self, row: aiosqlite.Row) -> Event:
        if row["location_kind"] == Coordinates.kind:
            location = Coordinates(float(row["latitude"]), float(row["longitude"]))
        else:
            location = Address(str(row["address"]))
        publication = None
        if row["publication_message_id"] is not None:
            publication = PublicationRef(int(row["publication_channel_id"]), int(row["publication_message_id"]))
        return Event(
            event_id=int(row["event_id"]),
            title=str(row["title"]),
            starts_at=from_epoch(row["start_ts"]),
            location=location,
            creator=Creator(int(row["creator_id"]), row["creator_name"], row["creator_handle"]),
            status=EventStatus(row["status"]),
            created_at=from_epoch(row["created_at"]),
            updated_at=from_epoch(row["updated_at"]),
            description=row["description"],
            publication=publication,
        )

    @property
    def _get_query(self) -> str:
        return "SELECT * FROM events WHERE event_id = ?"

    async def _fetch(self, db: aiosqlite.Connection, event_id: int) -> Event | None:
        async with db.execute(self._get_query, (int(event_id),)) as cur:
            row = await cur.fetchone()
        return self._from_row(row) if row is not None else None

    async def create_pending(self, draft: EventDraft, *, now_ts: int) -> Event:
        """Insert the draft and move it to pending approval in one transaction.

        The creator's events_created counter is bumped in the same transaction.
        """
        now = int(now_ts)
        loc = draft.location
        address = loc.text if isinstance(loc, Address) else None
        lat = loc.latitude if isinstance(loc, Coordinates) else None
        lon = loc.longitude if isinstance(loc, Coordinates) else None
        async with self._connect(immediate=True) as db:
            cur = await db.execute(
                """
                INSERT INTO events (
                    title, description, start_ts, location_kind, address, latitude, longitude,
                    creator_id, creator_name, creator_handle, status, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    draft.title,
                    draft.description,
                    int(draft.starts_at.timestamp()),
                    loc.kind,
                    address,
                    lat,
                    lon,
                    int(draft.creator.user_id),
                    draft.creator.display_name,
                    draft.creator.handle,
                    EventStatus.DRAFT.value,
                    now,
                    now,
                ),
            )
            event_id = int(cur.lastrowid)
            await db.execute(
                "UPDATE events SET status=? WHERE event_id=? AND status=?",
                (EventStatus.PENDING_APPROVAL.value, event_id, EventStatus.DRAFT.value),
            )
            await record_created(db, draft.creator, now_ts=now)
            await db.commit()
            event = await self._fetch(db, event_id)
        assert event is not None
        return event

    async def compare_and_set_status(
        self, event_id: int, expected: EventStatus, new: EventStatus, *, now_ts: int
    ) -> Event:
        """Move ``event_id`` from ``expected`` to ``new`` or fail.

        Raises NotFound for an unknown id and Conflict when the stored status is
        not ``expected``. Moving to approved also bumps the creator's
        events_approved in the same transaction.
        """
        async with self._connect(immediate=True) as db:
            current = await self._fetch(db, event_id)
            if current is None:
                raise NotFound(event_id)
            cur = await db.execute(
                "UPDATE events SET status=?, updated_at=? WHERE event_id=? AND status=?",
                (new.value, int(now_ts), int(event_id), expected.value),
            )
            if (cur.rowcount or 0) != 1:
                raise Conflict(event_id, current.status)
            if new is EventStatus.APPROVED:
                await record_approved(db, current.creator.user_id, now_ts=now_ts)
            await db.commit()
            updated = await self._fetch(db, event_id)
        assert updated is not None
        return updated

    async def set_publication(self, event_id: int, ref: PublicationRef, *, now_ts: int) -> Event:
        async with self._connect(immediate=True) as db:
            cur = await db.execute(
                """
                UPDATE events SET publication_channel_id=?, publication_message_id=?, updated_at=?
                WHERE event_id=? AND status=?
                """,
                (int(ref.channel_id), int(ref.message_id), int(now_ts), int(event_id), EventStatus.APPROVED.value),
            )
            if (cur.rowcount or 0) != 1:
                current = await self._fetch(db, event_id)
                if current is None:
                    raise NotFound(event_id)
                raise Conflict(event_id, current.status)
            await db.commit()
            updated = await self._fetch(db, event_id)
        assert updated is not None
        return updated

    async def list_approved(self, *, now_ts: int, upcoming: bool, limit: int | None = None) -> Sequence[Event]:
        """Approved events starting at/after ``now_ts`` (ascending) or before it (descending)."""
        if upcoming:
            query = "SELECT * FROM events WHERE status=? AND start_ts >= ? ORDER BY start_ts ASC, event_id ASC"
        else:
            query = "SELECT * FROM events WHERE status=? AND start_ts < ? ORDER BY start_ts DESC, event_id DESC"
        params: tuple = (EventStatus.APPROVED.value, int(now_ts))
        if limit is not None:
            query += " LIMIT ?"
            params += (max(1, int(limit)),)
        async with self._connect() as db:
            async with db.execute(query, params) as cur:
                rows = await cur.fetchall()
        return [self._from_row(r) for r in rows]

    async def count_by_status(self) -> dict[EventStatus, int]:
        async with self._connect() as db:
            async with db.execute("SELECT status, COUNT(1) FROM events GROUP BY status") as cur:
                rows = await cur.fetchall()
        counts = {s: 0 for s in EventStatus}
        for status, n in rows:
            counts[EventStatus(status)] = int(n)
        return counts

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from convener.errors import Conflict, NotFound, StoreError
from convener.models import Coordinates, Decision, EventDraft, EventStatus, PublicationRef
from convener.services.lifecycle import EventLifecycle

from .support import NOW, fail_writes, make_draft


class TestCreate:
    async def test_create_enters_pending_and_counts(self, lifecycle, user_stats_store):
        event = await lifecycle.create(make_draft())
        assert event.status is EventStatus.PENDING_APPROVAL
        assert event.event_id > 0
        assert event.title == "Board games night"
        assert event.creator.handle == "alice"

        stats = await user_stats_store.get(42)
        assert stats.events_created == 1
        assert stats.events_approved == 0

    async def test_ids_are_distinct(self, lifecycle, user_stats_store):
        first = await lifecycle.create(make_draft("One"))
        second = await lifecycle.create(make_draft("Two"))
        assert first.event_id != second.event_id
        assert (await user_stats_store.get(42)).events_created == 2

    async def test_coordinates_persist(self, lifecycle):
        draft = make_draft()
        draft = EventDraft(draft.title, draft.starts_at, Coordinates(50.4501, 30.5234), draft.creator)
        event = await lifecycle.create(draft)
        stored = await lifecycle.get(event.event_id)
        assert stored.location == Coordinates(50.4501, 30.5234)

    async def test_failed_counter_write_rolls_back_event(self, lifecycle, events_store, user_stats_store, db_path):
        await lifecycle.create(make_draft("First"))
        await fail_writes(db_path, "user_stats")

        with pytest.raises(StoreError):
            await lifecycle.create(make_draft("Second"))
        assert (await user_stats_store.get(42)).events_created == 1
        counts = await events_store.count_by_status()
        assert counts[EventStatus.PENDING_APPROVAL] == 1

    async def test_timestamps_follow_lifecycle_clock(self, lifecycle, user_stats_store):
        event = await lifecycle.create(make_draft())
        assert event.created_at == NOW
        assert event.updated_at == NOW
        assert (await user_stats_store.get(42)).created_at == int(NOW.timestamp())


class TestTransition:
    async def test_approve_bumps_approved_counter(self, lifecycle, user_stats_store):
        event = await lifecycle.create(make_draft())
        approved = await lifecycle.transition(event.event_id, Decision.APPROVE)
        assert approved.status is EventStatus.APPROVED
        stats = await user_stats_store.get(42)
        assert stats.events_approved == 1

    async def test_decline_leaves_approved_counter(self, lifecycle, user_stats_store):
        event = await lifecycle.create(make_draft())
        declined = await lifecycle.transition(event.event_id, Decision.DECLINE)
        assert declined.status is EventStatus.DECLINED
        assert (await user_stats_store.get(42)).events_approved == 0

    async def test_updated_at_follows_lifecycle_clock(self, events_store):
        times = iter([NOW, NOW + timedelta(hours=1)])
        lifecycle = EventLifecycle(events_store, clock=lambda: next(times))
        event = await lifecycle.create(make_draft())
        approved = await lifecycle.transition(event.event_id, Decision.APPROVE)
        assert approved.created_at == NOW
        assert approved.updated_at == NOW + timedelta(hours=1)

    async def test_unknown_event(self, lifecycle):
        with pytest.raises(NotFound):
            await lifecycle.transition(999, Decision.APPROVE)

    async def test_second_decision_conflicts(self, lifecycle, user_stats_store):
        event = await lifecycle.create(make_draft())
        await lifecycle.transition(event.event_id, Decision.APPROVE)
        with pytest.raises(Conflict) as exc:
            await lifecycle.transition(event.event_id, Decision.APPROVE)
        assert exc.value.status is EventStatus.APPROVED
        # Double tap does not double count.
        assert (await user_stats_store.get(42)).events_approved == 1

    async def test_concurrent_approve_and_decline(self, lifecycle, user_stats_store):
        event = await lifecycle.create(make_draft())
        results = await asyncio.gather(
            lifecycle.transition(event.event_id, Decision.APPROVE),
            lifecycle.transition(event.event_id, Decision.DECLINE),
            return_exceptions=True,
        )
        committed = [r for r in results if not isinstance(r, Exception)]
        conflicts = [r for r in results if isinstance(r, Conflict)]
        assert len(committed) == 1
        assert len(conflicts) == 1

        final = await lifecycle.get(event.event_id)
        assert final.status is committed[0].status
        expected = 1 if final.status is EventStatus.APPROVED else 0
        assert (await user_stats_store.get(42)).events_approved == expected

    async def test_get_missing(self, lifecycle):
        with pytest.raises(NotFound):
            await lifecycle.get(12345)


class TestPublication:
    async def test_recorded_on_approved_event(self, lifecycle):
        event = await lifecycle.create(make_draft())
        await lifecycle.transition(event.event_id, Decision.APPROVE)
        updated = await lifecycle.record_publication(event.event_id, PublicationRef(10, 20))
        assert updated.publication == PublicationRef(10, 20)

    async def test_rejected_on_pending_event(self, lifecycle):
        event = await lifecycle.create(make_draft())
        with pytest.raises(Conflict):
            await lifecycle.record_publication(event.event_id, PublicationRef(10, 20))


class TestListings:
    async def _approved(self, lifecycle, title, starts_at):
        event = await lifecycle.create(make_draft(title, starts_at=starts_at))
        return await lifecycle.transition(event.event_id, Decision.APPROVE)

    async def test_upcoming_and_past(self, lifecycle):
        await self._approved(lifecycle, "Later", NOW + timedelta(days=10))
        await self._approved(lifecycle, "Soon", NOW + timedelta(days=1))
        await self._approved(lifecycle, "Yesterday", NOW - timedelta(days=1))
        await self._approved(lifecycle, "Last month", NOW - timedelta(days=30))
        pending = await lifecycle.create(make_draft("Pending", starts_at=NOW + timedelta(days=2)))
        declined = await lifecycle.create(make_draft("Declined", starts_at=NOW + timedelta(days=3)))
        await lifecycle.transition(declined.event_id, Decision.DECLINE)

        upcoming = await lifecycle.list_upcoming()
        assert [e.title for e in upcoming] == ["Soon", "Later"]
        past = await lifecycle.list_past()
        assert [e.title for e in past] == ["Yesterday", "Last month"]
        assert pending.event_id not in {e.event_id for e in upcoming}

    async def test_limit(self, lifecycle):
        for i in range(3):
            await self._approved(lifecycle, f"E{i}", NOW + timedelta(days=i + 1))
        upcoming = await lifecycle.list_upcoming(limit=2)
        assert [e.title for e in upcoming] == ["E0", "E1"]

    async def test_empty(self, lifecycle):
        assert list(await lifecycle.list_upcoming()) == []
        assert list(await lifecycle.list_past()) == []

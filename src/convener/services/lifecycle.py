from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Sequence

from ..errors import NotFound
from ..models import Decision, Event, EventDraft, EventStatus, PublicationRef, utcnow
from .events_store import EventsStore

log = logging.getLogger("convener.lifecycle")


class EventLifecycle:
    """Owns event status changes and the counters that follow from them.

    Status only moves Draft -> PendingApproval -> Approved | Declined. Draft is
    never observable outside ``create``.
    """

    def __init__(self, store: EventsStore, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._store = store
        self._clock = clock

    async def create(self, draft: EventDraft) -> Event:
        event = await self._store.create_pending(draft, now_ts=self._now_ts())
        log.info(
            "Event submitted for approval (event_id=%s user_id=%s)",
            event.event_id,
            event.creator.user_id,
        )
        return event

    async def transition(self, event_id: int, decision: Decision) -> Event:
        event = await self._store.compare_and_set_status(
            event_id, EventStatus.PENDING_APPROVAL, decision.target_status, now_ts=self._now_ts()
        )
        log.info("Event %s (event_id=%s user_id=%s)", event.status.value, event.event_id, event.creator.user_id)
        return event

    async def record_publication(self, event_id: int, ref: PublicationRef) -> Event:
        return await self._store.set_publication(event_id, ref, now_ts=self._now_ts())

    async def get(self, event_id: int) -> Event:
        event = await self._store.get(event_id)
        if event is None:
            raise NotFound(event_id)
        return event

    async def list_upcoming(self, limit: int | None = None) -> Sequence[Event]:
        return await self._store.list_approved(now_ts=self._now_ts(), upcoming=True, limit=limit)

    async def list_past(self, limit: int | None = None) -> Sequence[Event]:
        return await self._store.list_approved(now_ts=self._now_ts(), upcoming=False, limit=limit)

    def _now_ts(self) -> int:
        return int(self._clock().timestamp())

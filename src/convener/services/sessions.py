"""Per-user conversation state for the guided event submission flow.

A session walks Title -> DateTime -> Location -> Confirm. Input for a step is
validated before anything is written, so a rejected input leaves the session
exactly as it was and the caller simply re-issues the prompt for ``exc.step``.

Sessions are held in memory only. Every mutation for one user runs under that
user's lock; different users never wait on each other.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone, tzinfo
from typing import AsyncIterator, Callable, Generic, Hashable, TypeVar

from ..errors import NoActiveSession, ValidationError
from ..models import (
    ConfirmChoice,
    Coordinates,
    Creator,
    EventDraft,
    Location,
    SessionStatus,
    Step,
)
from ..validation import clean_title, parse_confirm_choice, parse_event_datetime, parse_location

log = logging.getLogger("convener.sessions")

K = TypeVar("K", bound=Hashable)


class KeyedLock(Generic[K]):
    """One asyncio.Lock per key, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[K, asyncio.Lock] = {}
        self._users: dict[K, int] = {}

    @asynccontextmanager
    async def hold(self, key: K) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class Session:
    user_id: int
    touched_at: float
    token: int = 0
    step: Step = Step.TITLE
    status: SessionStatus = SessionStatus.ACTIVE
    title: str | None = None
    starts_at: datetime | None = None
    location: Location | None = None
    creator: Creator | None = None
    description: str | None = None

    def draft(self) -> EventDraft:
        assert self.title is not None and self.starts_at is not None
        assert self.location is not None and self.creator is not None
        return EventDraft(
            title=self.title,
            starts_at=self.starts_at,
            location=self.location,
            creator=self.creator,
            description=self.description,
        )


@dataclass(frozen=True)
class StepResult:
    """What the transport should do next: prompt ``step``, or hand off ``draft``.

    ``token`` identifies the session that produced the result; buttons rendered
    for it must send it back.
    """

    step: Step
    status: SessionStatus
    draft: EventDraft | None = None
    preview: EventDraft | None = field(default=None, compare=False)
    token: int = 0


class SessionEngine:
    def __init__(
        self,
        *,
        timezone_: tzinfo = timezone.utc,
        max_title_length: int = 120,
        idle_timeout_seconds: float = 1800,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._tz = timezone_
        self._max_title_length = max(1, int(max_title_length))
        self._idle_timeout = max(0.0, float(idle_timeout_seconds))
        self._clock = clock
        self._sessions: dict[int, Session] = {}
        self._locks: KeyedLock[int] = KeyedLock()
        self._tokens = itertools.count(1)

    def current(self, user_id: int) -> Session | None:
        return self._sessions.get(int(user_id))

    def active_count(self) -> int:
        return len(self._sessions)

    async def start(self, user_id: int, *, description: str | None = None) -> StepResult:
        user_id = int(user_id)
        async with self._locks.hold(user_id):
            old = self._sessions.pop(user_id, None)
            if old is not None:
                old.status = SessionStatus.CANCELLED
                log.info("Discarded session at step %s on restart (user_id=%s)", old.step.name, user_id)
            description = (description or "").strip() or None
            session = Session(user_id, self._clock(), token=next(self._tokens), description=description)
            self._sessions[user_id] = session
            log.debug("Session started (user_id=%s token=%s)", user_id, session.token)
            return StepResult(Step.TITLE, SessionStatus.ACTIVE, token=session.token)

    async def discard(self, user_id: int) -> bool:
        user_id = int(user_id)
        async with self._locks.hold(user_id):
            session = self._sessions.pop(user_id, None)
            if session is None:
                return False
            session.status = SessionStatus.CANCELLED
            log.info("Session discarded (user_id=%s)", user_id)
            return True

    async def submit_input(
        self,
        user_id: int,
        value: str | Coordinates | ConfirmChoice,
        *,
        creator: Creator | None = None,
        session_token: int | None = None,
    ) -> StepResult:
        """Apply one input to the user's active session.

        With ``session_token`` the input only applies to that exact session; a
        button left over from a discarded session raises NoActiveSession(stale=True).
        """
        user_id = int(user_id)
        async with self._locks.hold(user_id):
            session = self._sessions.get(user_id)
            if session is None or session.status is not SessionStatus.ACTIVE:
                raise NoActiveSession(user_id, stale=session_token is not None)
            if session_token is not None and session_token != session.token:
                log.info("Ignoring input for replaced session (user_id=%s token=%s)", user_id, session_token)
                raise NoActiveSession(user_id, stale=True)
            if self._is_expired(session):
                del self._sessions[user_id]
                session.status = SessionStatus.CANCELLED
                log.info("Session expired before input (user_id=%s)", user_id)
                raise NoActiveSession(user_id, expired=True)

            try:
                result = self._apply(session, value, creator)
            except ValidationError as e:
                log.debug("Rejected input at %s (user_id=%s): %s", e.step.name, user_id, e.reason)
                raise

            if result.status is SessionStatus.ACTIVE:
                session.touched_at = self._clock()
            else:
                del self._sessions[user_id]
                log.info("Session %s (user_id=%s)", result.status.value, user_id)
            return replace(result, token=session.token)

    def sweep_expired(self) -> int:
        """Drop idle sessions. Returns how many were removed."""
        if not self._idle_timeout:
            return 0
        stale = [uid for uid, s in self._sessions.items() if self._is_expired(s)]
        for uid in stale:
            session = self._sessions.pop(uid)
            session.status = SessionStatus.CANCELLED
        if stale:
            log.info("Expired %d idle session(s)", len(stale))
        return len(stale)

    def _is_expired(self, session: Session) -> bool:
        if not self._idle_timeout:
            return False
        return self._clock() - session.touched_at >= self._idle_timeout

    def _apply(
        self,
        session: Session,
        value: str | Coordinates | ConfirmChoice,
        creator: Creator | None,
    ) -> StepResult:
        # Everything is parsed before the session is touched.
        if session.step is Step.TITLE:
            if not isinstance(value, str):
                raise ValidationError(Step.TITLE, "Title must be text")
            session.title = clean_title(value, self._max_title_length)
            session.step = Step.DATETIME
        elif session.step is Step.DATETIME:
            if not isinstance(value, str):
                raise ValidationError(Step.DATETIME, "Date must be text")
            session.starts_at = parse_event_datetime(value, self._tz)
            session.step = Step.LOCATION
        elif session.step is Step.LOCATION:
            if isinstance(value, ConfirmChoice):
                raise ValidationError(Step.LOCATION, "Send an address or coordinates")
            session.location = parse_location(value)
            session.creator = creator or Creator(session.user_id)
            session.step = Step.CONFIRM
            return StepResult(Step.CONFIRM, SessionStatus.ACTIVE, preview=session.draft())
        else:
            choice = parse_confirm_choice(value if not isinstance(value, Coordinates) else "")
            if choice is ConfirmChoice.CANCEL:
                session.status = SessionStatus.CANCELLED
                return StepResult(Step.CONFIRM, SessionStatus.CANCELLED)
            session.status = SessionStatus.COMPLETED
            return StepResult(Step.CONFIRM, SessionStatus.COMPLETED, draft=session.draft())
        return StepResult(session.step, SessionStatus.ACTIVE)

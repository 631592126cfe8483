from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Union


class Step(IntEnum):
    """Fixed order of the event submission conversation."""

    TITLE = 0
    DATETIME = 1
    LOCATION = 2
    CONFIRM = 3


class SessionStatus(Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ConfirmChoice(Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"


class EventStatus(Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    DECLINED = "declined"

    @property
    def is_terminal(self) -> bool:
        return self in (EventStatus.APPROVED, EventStatus.DECLINED)


class Decision(Enum):
    APPROVE = "approve"
    DECLINE = "decline"

    @property
    def target_status(self) -> EventStatus:
        return EventStatus.APPROVED if self is Decision.APPROVE else EventStatus.DECLINED


@dataclass(frozen=True)
class Address:
    text: str

    kind = "address"


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    kind = "coordinates"

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError("latitude out of range")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError("longitude out of range")


Location = Union[Address, Coordinates]


@dataclass(frozen=True)
class Creator:
    user_id: int
    display_name: str | None = None
    handle: str | None = None

    @property
    def label(self) -> str:
        if self.handle:
            return f"@{self.handle}"
        return self.display_name or str(self.user_id)


@dataclass(frozen=True)
class EventDraft:
    """Fully collected event data produced by a completed session."""

    title: str
    starts_at: datetime
    location: Location
    creator: Creator
    description: str | None = None


@dataclass(frozen=True)
class PublicationRef:
    channel_id: int
    message_id: int


@dataclass(frozen=True)
class Event:
    event_id: int
    title: str
    starts_at: datetime
    location: Location
    creator: Creator
    status: EventStatus
    created_at: datetime
    updated_at: datetime
    description: str | None = None
    publication: PublicationRef | None = None

    @property
    def starts_ts(self) -> int:
        return int(self.starts_at.timestamp())


@dataclass(frozen=True)
class UserStats:
    user_id: int
    display_name: str | None
    handle: str | None
    events_created: int
    events_approved: int
    created_at: int
    seq: int

    @property
    def label(self) -> str:
        return Creator(self.user_id, self.display_name, self.handle).label


PODIUM_MEDALS = ("🥇", "🥈", "🥉")


@dataclass(frozen=True)
class LeaderboardEntry:
    position: int
    stats: UserStats

    @property
    def is_podium(self) -> bool:
        return self.position <= len(PODIUM_MEDALS)

    @property
    def medal(self) -> str | None:
        return PODIUM_MEDALS[self.position - 1] if self.is_podium else None


# Targets a NotificationChannel can deliver to.
@dataclass(frozen=True)
class DirectTarget:
    user_id: int


@dataclass(frozen=True)
class ChannelTarget:
    channel_id: int
    thread_id: int | None = None

    @property
    def destination_id(self) -> int:
        return self.thread_id or self.channel_id


Target = Union[DirectTarget, ChannelTarget]


MODERATION_ID_PREFIX = "convener:v1:moderate"
_MODERATION_ID_RE = re.compile(
    rf"^{re.escape(MODERATION_ID_PREFIX)}:(?P<decision>approve|decline):(?P<event_id>[0-9]+)$"
)


@dataclass(frozen=True)
class ModerationDecision:
    """A moderator's decision, parsed once from the interactive action that carried it."""

    event_id: int
    decision: Decision

    @property
    def custom_id(self) -> str:
        return f"{MODERATION_ID_PREFIX}:{self.decision.value}:{self.event_id}"

    @classmethod
    def parse(cls, custom_id: str) -> ModerationDecision:
        m = _MODERATION_ID_RE.match(custom_id or "")
        if m is None:
            raise ValueError(f"not a moderation action: {custom_id!r}")
        return cls(int(m.group("event_id")), Decision(m.group("decision")))

    @classmethod
    def pair(cls, event_id: int) -> tuple[ModerationDecision, ModerationDecision]:
        return cls(event_id, Decision.APPROVE), cls(event_id, Decision.DECLINE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def from_epoch(ts: int | float) -> datetime:
    return datetime.fromtimestamp(int(ts), tz=timezone.utc)

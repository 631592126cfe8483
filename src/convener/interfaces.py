"""
Interface contracts between the event core and its collaborators.

The core only talks to these protocols; the Discord adapters in
``convener.channels`` and the in-memory fakes in ``convener.testing.fakes``
both implement them.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

from .models import Event, EventDraft, ModerationDecision, PublicationRef, Target


@runtime_checkable
class NotificationChannel(Protocol):
    """Best-effort message delivery. Failures raise ExternalServiceError."""

    async def send_message(
        self,
        target: Target,
        text: str,
        *,
        actions: Sequence[ModerationDecision] = (),
    ) -> PublicationRef:
        """Send ``text``; ``actions`` are rendered as interactive decision buttons."""
        ...

    async def send_poll(self, target: Target, question: str, options: Sequence[str]) -> PublicationRef:
        """Post a poll with a fixed option set."""
        ...

    async def edit_message(self, ref: PublicationRef, text: str) -> None:
        """Replace the text of a previously sent message."""
        ...

    async def acknowledge(self, action: Any, text: str) -> None:
        """Answer the interactive action a moderator triggered."""
        ...


@runtime_checkable
class MembershipGate(Protocol):
    async def is_member(self, user_id: int) -> bool:
        """True when ``user_id`` belongs to the community."""
        ...


@runtime_checkable
class Renderer(Protocol):
    def __call__(self, event: Event | EventDraft, locale: str) -> str:
        ...


def validate_notification_channel(channel: object) -> NotificationChannel:
    """Validate and return NotificationChannel interface."""
    if not isinstance(channel, NotificationChannel):
        raise AttributeError(f"Object {channel} does not implement NotificationChannel interface")

    required_methods = ["send_message", "send_poll", "edit_message", "acknowledge"]
    for method in required_methods:
        if not callable(getattr(channel, method, None)):
            raise AttributeError(f"NotificationChannel method {method} is not callable")

    return channel


def validate_membership_gate(gate: object) -> MembershipGate:
    """Validate and return MembershipGate interface."""
    if not isinstance(gate, MembershipGate) or not callable(getattr(gate, "is_member", None)):
        raise AttributeError(f"Object {gate} does not implement MembershipGate interface")
    return gate

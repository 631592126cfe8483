"""Moderator review requests and the fan-out that follows a decision.

A decision is committed by ``EventLifecycle.transition`` before any message
goes out. Notifications are best-effort: a failed send is logged and recorded
on the outcome, the committed status stays as it is, and nothing is retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..errors import Conflict, ExternalServiceError, NotFound, StoreError
from ..interfaces import NotificationChannel, Renderer
from ..models import (
    ChannelTarget,
    Decision,
    DirectTarget,
    Event,
    EventStatus,
    ModerationDecision,
    PublicationRef,
)
from ..rendering import DEFAULT_LOCALE, render_event, t
from .lifecycle import EventLifecycle

log = logging.getLogger("convener.moderation")


@dataclass(frozen=True)
class ModerationPolicy:
    moderator_id: int = 0
    announce: ChannelTarget | None = None
    publish_poll: bool = True
    locale: str = DEFAULT_LOCALE


@dataclass
class ModerationOutcome:
    decision: ModerationDecision
    event: Event | None = None
    publication: PublicationRef | None = None
    poll: PublicationRef | None = None
    failures: list[str] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        return self.event is not None


class ModerationDispatcher:
    def __init__(
        self,
        lifecycle: EventLifecycle,
        channel: NotificationChannel,
        policy: ModerationPolicy,
        *,
        renderer: Renderer = render_event,
    ) -> None:
        self._lifecycle = lifecycle
        self._channel = channel
        self._policy = policy
        self._render = renderer

    @property
    def review_enabled(self) -> bool:
        return bool(self._policy.moderator_id)

    async def request_review(self, event: Event) -> bool:
        """Ask the moderator to decide on a pending event. False when nobody is configured."""
        if not self.review_enabled:
            log.warning("No moderator configured; event stays pending (event_id=%s)", event.event_id)
            return False
        locale = self._policy.locale
        text = t(locale, "review_request", card=self._render(event, locale))
        await self._channel.send_message(
            DirectTarget(self._policy.moderator_id),
            text,
            actions=ModerationDecision.pair(event.event_id),
        )
        log.info("Review requested (event_id=%s moderator_id=%s)", event.event_id, self._policy.moderator_id)
        return True

    async def dispatch(self, decision: ModerationDecision, action: Any) -> ModerationOutcome:
        outcome = ModerationOutcome(decision)
        locale = self._policy.locale
        try:
            event = await self._lifecycle.transition(decision.event_id, decision.decision)
        except (NotFound, Conflict) as e:
            log.info("Ignoring %s for event_id=%s: %s", decision.decision.value, decision.event_id, e)
            await self._best_effort(outcome, "acknowledge", self._channel.acknowledge(action, t(locale, "not_found_or_processed")))
            return outcome

        outcome.event = event
        if decision.decision is Decision.APPROVE:
            await self._after_approve(event, action, outcome)
        else:
            await self._after_decline(event, action, outcome)
        return outcome

    async def _after_approve(self, event: Event, action: Any, outcome: ModerationOutcome) -> None:
        locale = self._policy.locale
        card = self._render(event, locale)

        await self._best_effort(
            outcome,
            "notify_creator",
            self._channel.send_message(DirectTarget(event.creator.user_id), t(locale, "approved_creator", card=card)),
        )

        target = self._policy.announce
        if target is None:
            log.warning("No announcement channel configured (event_id=%s)", event.event_id)
            await self._best_effort(outcome, "acknowledge", self._channel.acknowledge(action, t(locale, "approved_unpublished", card=card)))
            return

        outcome.publication = await self._best_effort(outcome, "publish", self._channel.send_message(target, card))
        if outcome.publication is not None and self._policy.publish_poll:
            outcome.poll = await self._best_effort(
                outcome,
                "poll",
                self._channel.send_poll(
                    target,
                    t(locale, "poll_question", title=event.title),
                    [t(locale, "poll_yes"), t(locale, "poll_maybe")],
                ),
            )
        if outcome.publication is not None:
            try:
                outcome.event = await self._lifecycle.record_publication(event.event_id, outcome.publication)
            except (StoreError, NotFound, Conflict) as e:
                log.error("Failed to record publication (event_id=%s): %s", event.event_id, e)
                outcome.failures.append("record_publication")

        await self._best_effort(outcome, "acknowledge", self._channel.acknowledge(action, t(locale, "approved_moderator", card=card)))

    async def _after_decline(self, event: Event, action: Any, outcome: ModerationOutcome) -> None:
        assert event.status is EventStatus.DECLINED
        locale = self._policy.locale
        card = self._render(event, locale)
        await self._best_effort(
            outcome,
            "notify_creator",
            self._channel.send_message(DirectTarget(event.creator.user_id), t(locale, "declined_creator", card=card)),
        )
        await self._best_effort(outcome, "acknowledge", self._channel.acknowledge(action, t(locale, "declined_moderator", card=card)))

    async def _best_effort(self, outcome: ModerationOutcome, step: str, aw: Any) -> Any:
        try:
            return await aw
        except ExternalServiceError as e:
            log.warning(
                "Side effect %s failed (event_id=%s decision=%s): %s",
                step,
                outcome.decision.event_id,
                outcome.decision.decision.value,
                e,
            )
            outcome.failures.append(step)
            return None

from __future__ import annotations

import pytest

from convener.errors import StoreError
from convener.models import ChannelTarget, Decision, DirectTarget, EventStatus, ModerationDecision
from convener.rendering import t
from convener.services.moderation import ModerationDispatcher, ModerationPolicy
from convener.testing.fakes import FakeNotificationChannel

from .support import fail_writes, make_draft

MODERATOR = 7
ANNOUNCE = ChannelTarget(100, 200)
ACTION = object()


def dispatcher(lifecycle, channel, **policy) -> ModerationDispatcher:
    policy.setdefault("moderator_id", MODERATOR)
    policy.setdefault("announce", ANNOUNCE)
    return ModerationDispatcher(lifecycle, channel, ModerationPolicy(**policy))


@pytest.fixture
async def pending(lifecycle):
    return await lifecycle.create(make_draft())


class TestReviewRequest:
    async def test_moderator_gets_decision_actions(self, lifecycle, channel, pending):
        assert await dispatcher(lifecycle, channel).request_review(pending) is True
        [msg] = channel.messages
        assert msg.target == DirectTarget(MODERATOR)
        assert "Board games night" in msg.text
        assert msg.actions == ModerationDecision.pair(pending.event_id)

    async def test_no_moderator_leaves_event_pending(self, lifecycle, channel, pending):
        assert await dispatcher(lifecycle, channel, moderator_id=0).request_review(pending) is False
        assert channel.messages == []
        assert (await lifecycle.get(pending.event_id)).status is EventStatus.PENDING_APPROVAL


class TestApprove:
    async def test_fan_out_order(self, lifecycle, channel, pending):
        outcome = await dispatcher(lifecycle, channel).dispatch(
            ModerationDecision(pending.event_id, Decision.APPROVE), ACTION
        )
        assert outcome.applied
        assert outcome.failures == []
        assert [m.target for m in channel.messages] == [DirectTarget(42), ANNOUNCE]
        assert channel.messages[0].text.startswith("🎉 Your event was approved")
        [poll] = channel.polls
        assert poll.target == ANNOUNCE
        assert poll.question == "Will you attend Board games night?"
        assert len(poll.options) == 2
        [(action, text)] = channel.acks
        assert action is ACTION
        assert text.startswith("✅ Event approved and published!")

        stored = await lifecycle.get(pending.event_id)
        assert stored.status is EventStatus.APPROVED
        assert stored.publication == outcome.publication

    async def test_poll_can_be_disabled(self, lifecycle, channel, pending):
        outcome = await dispatcher(lifecycle, channel, publish_poll=False).dispatch(
            ModerationDecision(pending.event_id, Decision.APPROVE), ACTION
        )
        assert outcome.poll is None
        assert channel.polls == []
        assert outcome.publication is not None

    async def test_without_announce_channel(self, lifecycle, channel, pending):
        outcome = await dispatcher(lifecycle, channel, announce=None).dispatch(
            ModerationDecision(pending.event_id, Decision.APPROVE), ACTION
        )
        assert outcome.publication is None
        assert [m.target for m in channel.messages] == [DirectTarget(42)]
        assert "published" not in channel.messages[0].text
        assert channel.acks[0][1].startswith("✅ Event approved, but no announcement channel")
        assert (await lifecycle.get(pending.event_id)).status is EventStatus.APPROVED

    async def test_failed_publication_keeps_approval(self, lifecycle, pending, user_stats_store):
        channel = FakeNotificationChannel(fail={"send_message"})
        outcome = await dispatcher(lifecycle, channel).dispatch(
            ModerationDecision(pending.event_id, Decision.APPROVE), ACTION
        )
        assert outcome.applied
        assert outcome.failures == ["notify_creator", "publish"]
        # No publication, so no poll either.
        assert channel.polls == []
        assert len(channel.acks) == 1

        stored = await lifecycle.get(pending.event_id)
        assert stored.status is EventStatus.APPROVED
        assert stored.publication is None
        assert (await user_stats_store.get(42)).events_approved == 1

    async def test_failed_poll_still_records_publication(self, lifecycle, pending):
        channel = FakeNotificationChannel(fail={"send_poll"})
        outcome = await dispatcher(lifecycle, channel).dispatch(
            ModerationDecision(pending.event_id, Decision.APPROVE), ACTION
        )
        assert outcome.failures == ["poll"]
        assert (await lifecycle.get(pending.event_id)).publication == outcome.publication

    async def test_failed_publication_record_keeps_approval(self, lifecycle, channel, pending, db_path):
        await fail_writes(db_path, "events", "publication_message_id")
        outcome = await dispatcher(lifecycle, channel).dispatch(
            ModerationDecision(pending.event_id, Decision.APPROVE), ACTION
        )
        assert outcome.applied
        assert outcome.failures == ["record_publication"]
        assert outcome.publication is not None
        assert len(channel.polls) == 1
        assert len(channel.acks) == 1

        stored = await lifecycle.get(pending.event_id)
        assert stored.status is EventStatus.APPROVED
        assert stored.publication is None

    async def test_store_failure_on_transition_propagates(self, lifecycle, channel, pending, user_stats_store, db_path):
        await fail_writes(db_path, "events")
        with pytest.raises(StoreError):
            await dispatcher(lifecycle, channel).dispatch(
                ModerationDecision(pending.event_id, Decision.APPROVE), ACTION
            )
        assert channel.messages == []
        assert channel.acks == []
        assert (await lifecycle.get(pending.event_id)).status is EventStatus.PENDING_APPROVAL
        assert (await user_stats_store.get(42)).events_approved == 0


class TestDecline:
    async def test_creator_notified_nothing_published(self, lifecycle, channel, pending):
        outcome = await dispatcher(lifecycle, channel).dispatch(
            ModerationDecision(pending.event_id, Decision.DECLINE), ACTION
        )
        assert outcome.event.status is EventStatus.DECLINED
        assert [m.target for m in channel.messages] == [DirectTarget(42)]
        assert "not approved" in channel.messages[0].text
        assert channel.polls == []
        assert channel.acks[0][1].startswith("❌ Event declined")


class TestAlreadyProcessed:
    async def test_second_decision_is_acknowledged_only(self, lifecycle, channel, pending):
        moderation = dispatcher(lifecycle, channel)
        await moderation.dispatch(ModerationDecision(pending.event_id, Decision.APPROVE), ACTION)
        channel.messages.clear()
        channel.polls.clear()
        channel.acks.clear()

        outcome = await moderation.dispatch(ModerationDecision(pending.event_id, Decision.DECLINE), ACTION)
        assert not outcome.applied
        assert channel.messages == []
        assert channel.polls == []
        assert channel.acks == [(ACTION, t("en", "not_found_or_processed"))]
        assert (await lifecycle.get(pending.event_id)).status is EventStatus.APPROVED

    async def test_unknown_event(self, lifecycle, channel):
        outcome = await dispatcher(lifecycle, channel).dispatch(ModerationDecision(404, Decision.APPROVE), ACTION)
        assert not outcome.applied
        assert channel.acks == [(ACTION, t("en", "not_found_or_processed"))]

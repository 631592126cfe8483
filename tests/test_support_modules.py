from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from convener.config import load_settings
from convener.interfaces import (
    MembershipGate,
    NotificationChannel,
    validate_membership_gate,
    validate_notification_channel,
)
from convener.models import Coordinates, Creator, EventDraft, Step
from convener.rendering import maps_url, prompt_for, render_event, retry_for, t
from convener.services.cache import TTLCache
from convener.testing.fakes import FakeMembershipGate, FakeNotificationChannel

from .support import FakeClock


class TestTTLCache:
    def test_expiry(self):
        clock = FakeClock()
        cache: TTLCache[int, bool] = TTLCache(10, clock=clock)
        cache.set(1, True)
        assert cache.get(1) is True
        clock.advance(10)
        assert cache.get(1) is None
        assert len(cache) == 0

    async def test_get_or_load_caches(self):
        cache: TTLCache[int, bool] = TTLCache(60, clock=FakeClock())
        calls = []

        async def loader():
            calls.append(1)
            return False

        assert await cache.get_or_load(5, loader) is False
        assert await cache.get_or_load(5, loader) is False
        assert calls == [1]

    async def test_concurrent_misses_share_one_load(self):
        cache: TTLCache[int, bool] = TTLCache(60, clock=FakeClock())
        release = asyncio.Event()
        calls = []

        async def loader():
            calls.append(1)
            await release.wait()
            return True

        first = asyncio.ensure_future(cache.get_or_load(7, loader))
        second = asyncio.ensure_future(cache.get_or_load(7, loader))
        await asyncio.sleep(0)
        release.set()
        assert await asyncio.gather(first, second) == [True, True]
        assert calls == [1]

    async def test_failed_load_is_not_cached(self):
        cache: TTLCache[int, bool] = TTLCache(60, clock=FakeClock())

        async def boom():
            raise RuntimeError("down")

        with pytest.raises(RuntimeError):
            await cache.get_or_load(1, boom)
        assert cache.get(1) is None
        assert len(cache) == 0

    def test_prune(self):
        clock = FakeClock()
        cache: TTLCache[str, int] = TTLCache(5, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2, ttl_seconds=50)
        clock.advance(6)
        assert cache.prune() == 1
        assert cache.get("b") == 2


class TestSettings:
    def test_token_required(self, monkeypatch):
        monkeypatch.delenv("DISCORD_TOKEN", raising=False)
        with pytest.raises(RuntimeError):
            load_settings()

    def test_defaults_and_clamping(self, monkeypatch):
        monkeypatch.setenv("DISCORD_TOKEN", "x")
        monkeypatch.setenv("POLL_DURATION_HOURS", "0")
        monkeypatch.setenv("SESSION_IDLE_TIMEOUT_SECONDS", "-5")
        monkeypatch.setenv("PUBLISH_POLL", "no")
        monkeypatch.setenv("MODERATOR_USER_ID", "not-a-number")
        settings = load_settings()
        assert settings.poll_duration_hours == 1
        assert settings.session_idle_timeout_seconds == 0
        assert settings.publish_poll is False
        assert settings.moderator_user_id == 0
        assert settings.locale == "en"


class TestRendering:
    def _draft(self, **kw) -> EventDraft:
        base = dict(
            title="Picnic *in* the park",
            starts_at=datetime(2025, 8, 15, 18, 30, tzinfo=timezone.utc),
            location=Coordinates(50.45, 30.52),
            creator=Creator(1, "Alice", "alice"),
        )
        base.update(kw)
        return EventDraft(**base)

    def test_card(self):
        card = render_event(self._draft())
        assert card.splitlines()[0] == r"**Picnic \*in\* the park**"
        assert f"<t:{int(datetime(2025, 8, 15, 18, 30, tzinfo=timezone.utc).timestamp())}:F>" in card
        assert maps_url(Coordinates(50.45, 30.52)) in card
        assert "@alice" in card

    def test_description_appended(self):
        card = render_event(self._draft(description="Bring snacks"))
        assert card.endswith("Bring snacks")

    def test_locale_falls_back_to_english(self):
        assert t("uk", "dm_closed") == t("en", "dm_closed")
        assert t("xx", "poll_yes") == "Yes! ✅"
        assert t("uk", "poll_yes") == "Так! ✅"

    def test_prompts_cover_question_steps(self):
        assert "DD.MM.YYYY, HH:MM" in prompt_for(Step.DATETIME, "en")
        assert "7 characters" in retry_for(Step.TITLE, "en", max_title=7)
        assert "confirm" in retry_for(Step.CONFIRM, "en")


class TestFakesHonourInterfaces:
    def test_channel(self):
        channel = FakeNotificationChannel()
        assert isinstance(channel, NotificationChannel)
        assert validate_notification_channel(channel) is channel

    def test_gate(self):
        gate = FakeMembershipGate({1})
        assert isinstance(gate, MembershipGate)
        assert validate_membership_gate(gate) is gate

    def test_rejects_other_objects(self):
        with pytest.raises(AttributeError):
            validate_notification_channel(object())

    async def test_gate_answers(self):
        gate = FakeMembershipGate({1})
        assert await gate.is_member(1) is True
        assert await gate.is_member(2) is False
        assert gate.calls == [1, 2]

from __future__ import annotations

import asyncio
import logging
from datetime import timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import discord
from discord.ext import commands

from .channels import DiscordNotificationChannel, GuildMembershipGate
from .cogs.events import EventsCog
from .config import Settings
from .database import initialize_database
from .error_handlers import setup_error_handlers
from .errors import StoreError
from .interfaces import validate_membership_gate, validate_notification_channel
from .models import ChannelTarget
from .permissions import is_event_moderator
from .services.events_store import EventsStore
from .services.leaderboard import LeaderboardAggregator
from .services.lifecycle import EventLifecycle
from .services.moderation import ModerationDispatcher, ModerationPolicy
from .services.sessions import SessionEngine
from .services.users_store import UserStatsStore
from .ui.moderation import ModerationButton

log = logging.getLogger("convener.bot")


def resolve_timezone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning("Unknown EVENT_TIMEZONE %r; falling back to UTC", name)
        return timezone.utc


class _CommandSyncManager:
    def __init__(self, bot: ConvenerBot) -> None:
        self.bot = bot
        self._lock = asyncio.Lock()

    async def sync_startup(self) -> None:
        async with self._lock:
            guild_id = self.bot.settings.sync_guild_id
            if guild_id:
                guild = discord.Object(id=guild_id)
                self.bot.tree.copy_global_to(guild=guild)
                synced = await self.bot.tree.sync(guild=guild)
                log.info("Commands synced to guild %d (%d commands)", guild_id, len(synced))
            else:
                synced = await self.bot.tree.sync()
                log.info("Commands synced globally (%d commands)", len(synced))
            for c in synced:
                log.info(" - /%s", c.name)


class ConvenerBot(commands.Bot):
    def __init__(self, settings: Settings) -> None:
        intents = discord.Intents.default()
        log.info("INTENTS: guilds=%s dm_messages=%s members=%s", intents.guilds, intents.dm_messages, intents.members)

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            allowed_mentions=discord.AllowedMentions(everyone=False, roles=False, users=True),
            help_command=None,
        )

        self.settings = settings

        self.events_store = EventsStore(settings.sqlite_path)
        self.user_stats_store = UserStatsStore(settings.sqlite_path)

        self.sessions = SessionEngine(
            timezone_=resolve_timezone(settings.event_timezone),
            max_title_length=settings.max_title_length,
            idle_timeout_seconds=settings.session_idle_timeout_seconds,
        )
        self.lifecycle = EventLifecycle(self.events_store)
        self.channel = validate_notification_channel(
            DiscordNotificationChannel(self, poll_duration_hours=settings.poll_duration_hours, locale=settings.locale)
        )
        self.membership_gate = GuildMembershipGate(
            self, settings.community_guild_id, cache_ttl_seconds=settings.membership_cache_ttl_seconds
        )
        self.membership = validate_membership_gate(self.membership_gate)

        announce = None
        if settings.announce_channel_id:
            announce = ChannelTarget(settings.announce_channel_id, settings.announce_thread_id or None)
        self.moderation = ModerationDispatcher(
            self.lifecycle,
            self.channel,
            ModerationPolicy(
                moderator_id=settings.moderator_user_id,
                announce=announce,
                publish_poll=settings.publish_poll,
                locale=settings.locale,
            ),
        )
        self.leaderboard = LeaderboardAggregator(self.user_stats_store)
        self._sync_mgr = _CommandSyncManager(self)

    async def setup_hook(self) -> None:
        await initialize_database(self.settings.sqlite_path, [self.events_store, self.user_stats_store])

        # Approve/Decline buttons stay live across restarts.
        self.add_dynamic_items(ModerationButton)
        setup_error_handlers(self)

        await self.add_cog(EventsCog(self))
        log.info("Loaded cog: EventsCog")

        if not self.settings.moderator_user_id:
            log.warning("MODERATOR_USER_ID not configured; submissions will stay pending")
        if not self.settings.announce_channel_id:
            log.warning("ANNOUNCE_CHANNEL_ID not configured; approved events will not be published")
        if not self.settings.community_guild_id:
            log.warning("COMMUNITY_GUILD_ID not configured; membership gate allows everyone")

        await self._sync_mgr.sync_startup()
        log.info("Command sync complete")

    async def on_ready(self) -> None:
        log.info("Logged in as %s (id=%s)", self.user, self.user and self.user.id)
        try:
            counts = await self.events_store.count_by_status()
        except StoreError as e:
            log.error("Could not read event counts: %s", e)
            return
        log.info("Events: %s", " ".join(f"{s.value}={n}" for s, n in counts.items()))

    async def is_event_moderator(self, user: discord.abc.User) -> bool:
        return await is_event_moderator(self, user)

"""Discord implementations of the NotificationChannel and MembershipGate contracts."""

from __future__ import annotations

import datetime
import logging
from typing import Sequence

import discord

from .constants import MAX_MESSAGE_LENGTH, MAX_POLL_ANSWER, MAX_POLL_QUESTION
from .errors import ExternalServiceError
from .models import ChannelTarget, DirectTarget, ModerationDecision, PublicationRef, Target
from .services.cache import TTLCache
from .ui.moderation import moderation_view
from .utils import truncate_text

log = logging.getLogger("convener.channels")


class DiscordNotificationChannel:
    def __init__(self, bot: discord.Client, *, poll_duration_hours: int = 24, locale: str = "en") -> None:
        self.bot = bot
        self._poll_duration = datetime.timedelta(hours=max(1, int(poll_duration_hours)))
        self._locale = locale

    async def _resolve(self, target: Target) -> discord.abc.Messageable:
        try:
            if isinstance(target, DirectTarget):
                user = self.bot.get_user(target.user_id) or await self.bot.fetch_user(target.user_id)
                return user
            channel = self.bot.get_channel(target.destination_id) or await self.bot.fetch_channel(target.destination_id)
        except discord.HTTPException as e:
            raise ExternalServiceError(f"Cannot resolve {target}: {e}") from e
        if not isinstance(channel, discord.abc.Messageable):
            raise ExternalServiceError(f"{target} is not a messageable channel")
        return channel

    async def send_message(
        self,
        target: Target,
        text: str,
        *,
        actions: Sequence[ModerationDecision] = (),
    ) -> PublicationRef:
        dest = await self._resolve(target)
        kwargs = {}
        if actions:
            kwargs["view"] = moderation_view(actions, self._locale)
        try:
            msg = await dest.send(
                truncate_text(text, MAX_MESSAGE_LENGTH),
                allowed_mentions=discord.AllowedMentions.none(),
                **kwargs,
            )
        except discord.HTTPException as e:
            raise ExternalServiceError(f"Send to {target} failed: {e}") from e
        return PublicationRef(msg.channel.id, msg.id)

    async def send_poll(self, target: Target, question: str, options: Sequence[str]) -> PublicationRef:
        dest = await self._resolve(target)
        poll = discord.Poll(
            question=truncate_text(question, MAX_POLL_QUESTION),
            duration=self._poll_duration,
            multiple=False,
        )
        for option in options:
            poll.add_answer(text=truncate_text(option, MAX_POLL_ANSWER))
        try:
            msg = await dest.send(poll=poll)
        except discord.HTTPException as e:
            raise ExternalServiceError(f"Poll to {target} failed: {e}") from e
        return PublicationRef(msg.channel.id, msg.id)

    async def edit_message(self, ref: PublicationRef, text: str) -> None:
        channel = await self._resolve(ChannelTarget(ref.channel_id))
        try:
            await channel.get_partial_message(ref.message_id).edit(content=truncate_text(text, MAX_MESSAGE_LENGTH))  # type: ignore[attr-defined]
        except discord.HTTPException as e:
            raise ExternalServiceError(f"Edit of {ref} failed: {e}") from e

    async def acknowledge(self, action: discord.Interaction, text: str) -> None:
        content = truncate_text(text, MAX_MESSAGE_LENGTH)
        try:
            if action.response.is_done():
                await action.edit_original_response(content=content, view=None)
            else:
                await action.response.edit_message(content=content, view=None)
        except discord.HTTPException as e:
            raise ExternalServiceError(f"Acknowledge failed: {e}") from e


class GuildMembershipGate:
    """A user is a member when they are in the community guild."""

    def __init__(self, bot: discord.Client, guild_id: int, *, cache_ttl_seconds: int = 120) -> None:
        self.bot = bot
        self.guild_id = int(guild_id)
        self._cache: TTLCache[int, bool] = TTLCache(default_ttl_seconds=cache_ttl_seconds)

    async def is_member(self, user_id: int) -> bool:
        if not self.guild_id:
            return True
        return await self._cache.get_or_load(int(user_id), lambda: self._lookup(int(user_id)))

    async def _lookup(self, user_id: int) -> bool:
        guild = self.bot.get_guild(self.guild_id)
        if guild is not None and guild.get_member(user_id) is not None:
            return True
        try:
            if guild is None:
                guild = await self.bot.fetch_guild(self.guild_id)
            await guild.fetch_member(user_id)
            return True
        except discord.NotFound:
            return False
        except discord.HTTPException as e:
            log.error("Membership lookup failed (user_id=%s guild_id=%s): %s", user_id, self.guild_id, e)
            raise ExternalServiceError(f"Membership lookup failed: {e}") from e

    def prune(self) -> int:
        return self._cache.prune()

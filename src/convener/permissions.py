from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

from .errors import ExternalServiceError

log = logging.getLogger("convener.permissions")


class NotAMember(app_commands.CheckFailure):
    """The user is not part of the community guild."""


class MembershipUnavailable(app_commands.CheckFailure):
    """Membership could not be checked (Discord API failure)."""


def require_member():
    """Gate an app command on community membership."""

    async def predicate(interaction: discord.Interaction) -> bool:
        gate = interaction.client.membership  # type: ignore[attr-defined]
        try:
            ok = await gate.is_member(interaction.user.id)
        except ExternalServiceError as e:
            raise MembershipUnavailable(str(e)) from e
        if not ok:
            log.info("Membership denied (user_id=%s command=%s)", interaction.user.id, interaction.command and interaction.command.name)
            raise NotAMember()
        return True

    return app_commands.check(predicate)


async def is_event_moderator(bot: discord.Client, user: discord.abc.User) -> bool:
    """Configured moderator, bot owner, or holder of the moderator role in the community guild."""
    settings = bot.settings  # type: ignore[attr-defined]
    if settings.moderator_user_id and user.id == settings.moderator_user_id:
        return True
    if isinstance(bot, commands.Bot) and await bot.is_owner(user):
        return True
    if not settings.community_guild_id or not settings.moderator_role_name:
        return False
    guild = bot.get_guild(settings.community_guild_id)
    if guild is None:
        return False
    member = guild.get_member(user.id)
    if member is None:
        try:
            member = await guild.fetch_member(user.id)
        except discord.HTTPException:
            return False
    return any(r.name == settings.moderator_role_name for r in member.roles)

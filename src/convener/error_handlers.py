from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

from .errors import ConvenerError, NoActiveSession
from .permissions import MembershipUnavailable, NotAMember
from .rendering import t
from .utils import safe_response

log = logging.getLogger("convener.error_handlers")


async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
    """Map app command failures onto a single user-facing message each."""
    locale = interaction.client.settings.locale  # type: ignore[attr-defined]
    original = getattr(error, "original", error)

    if isinstance(error, NotAMember):
        key = "members_only"
    elif isinstance(error, MembershipUnavailable):
        log.warning("Membership check unavailable (user_id=%s): %s", interaction.user.id, error)
        key = "membership_check_failed"
    elif isinstance(original, NoActiveSession):
        key = "no_active_session"
    elif isinstance(original, ConvenerError):
        log.error(
            "Command %s failed (user_id=%s): %s",
            interaction.command and interaction.command.qualified_name,
            interaction.user.id,
            original,
        )
        key = "generic_error"
    else:
        log.exception(
            "Unexpected error in app command %s (user_id=%s)",
            interaction.command and interaction.command.qualified_name,
            interaction.user.id,
            exc_info=original,
        )
        key = "generic_error"

    await safe_response(interaction, t(locale, key), ephemeral=True)


def setup_error_handlers(bot: commands.Bot) -> None:
    """Install the app command error handler on the bot's command tree."""
    bot.tree.error(on_app_command_error)

from __future__ import annotations

import logging
from typing import Any

import discord

from .constants import MAX_MESSAGE_LENGTH

log = logging.getLogger("convener.utils")


def truncate_text(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> str:
    """Truncate text to maximum length with ellipsis."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 1] + "…"


async def safe_followup(
    interaction: discord.Interaction,
    content: str | None = None,
    ephemeral: bool = False,
    **kwargs: Any,
) -> discord.Message | None:
    """Follow up an interaction, logging instead of raising on HTTP errors."""
    try:
        return await interaction.followup.send(
            content=truncate_text(content) if content else content, ephemeral=ephemeral, **kwargs
        )
    except discord.HTTPException as e:
        log.error("Failed to send followup (user_id=%s): %s", interaction.user.id, e)
        return None


async def safe_response(
    interaction: discord.Interaction,
    content: str | None = None,
    ephemeral: bool = False,
    **kwargs: Any,
) -> bool:
    """Respond to an interaction whether or not it was already answered or deferred."""
    if interaction.response.is_done():
        return await safe_followup(interaction, content, ephemeral, **kwargs) is not None
    try:
        await interaction.response.send_message(
            content=truncate_text(content) if content else content, ephemeral=ephemeral, **kwargs
        )
        return True
    except discord.HTTPException as e:
        log.error("Failed to send response (user_id=%s): %s", interaction.user.id, e)
        return False


async def safe_send(destination: discord.abc.Messageable, content: str, **kwargs: Any) -> discord.Message | None:
    try:
        return await destination.send(truncate_text(content), **kwargs)
    except discord.HTTPException as e:
        log.error("Failed to send message to %s: %s", destination, e)
        return None

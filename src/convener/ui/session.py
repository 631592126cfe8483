from __future__ import annotations

from typing import Awaitable, Callable

import discord

from ..models import ConfirmChoice
from ..rendering import t

ChoiceHandler = Callable[[discord.Interaction, ConfirmChoice, int], Awaitable[None]]


class ConfirmView(discord.ui.View):
    """Confirm/Cancel buttons under a draft preview.

    The view remembers which session rendered the preview, so a press on an
    old preview cannot confirm a newer draft.
    """

    def __init__(
        self,
        user_id: int,
        session_token: int,
        on_choice: ChoiceHandler,
        *,
        locale: str,
        timeout: float | None,
    ) -> None:
        super().__init__(timeout=timeout)
        self.user_id = int(user_id)
        self.session_token = int(session_token)
        self._on_choice = on_choice
        self.confirm.label = t(locale, "button_confirm")
        self.cancel.label = t(locale, "button_cancel")

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        return interaction.user.id == self.user_id

    @discord.ui.button(emoji="✅", style=discord.ButtonStyle.success)
    async def confirm(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._choose(interaction, ConfirmChoice.CONFIRM)

    @discord.ui.button(emoji="❌", style=discord.ButtonStyle.danger)
    async def cancel(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._choose(interaction, ConfirmChoice.CANCEL)

    async def _choose(self, interaction: discord.Interaction, choice: ConfirmChoice) -> None:
        # One press per preview; the buttons go away either way.
        self.stop()
        await interaction.response.edit_message(view=None)
        await self._on_choice(interaction, choice, self.session_token)

"""Approve/Decline buttons on review requests.

The buttons are DynamicItems, so they keep working after a restart without any
per-message re-registration: discord.py matches the custom id against the
template and rebuilds the typed decision from it.
"""

from __future__ import annotations

import logging
import re
from typing import Sequence

import discord

from ..constants import MAX_BUTTON_LABEL
from ..errors import ConvenerError
from ..models import MODERATION_ID_PREFIX, Decision, ModerationDecision
from ..rendering import t
from ..utils import truncate_text

log = logging.getLogger("convener.ui.moderation")


class ModerationButton(
    discord.ui.DynamicItem[discord.ui.Button],
    template=re.escape(MODERATION_ID_PREFIX) + r":(?P<decision>approve|decline):(?P<event_id>[0-9]+)",
):
    def __init__(self, decision: ModerationDecision, *, label: str | None = None) -> None:
        approve = decision.decision is Decision.APPROVE
        super().__init__(
            discord.ui.Button(
                label=label or decision.decision.value.title(),
                style=discord.ButtonStyle.success if approve else discord.ButtonStyle.danger,
                emoji="✅" if approve else "❌",
                custom_id=decision.custom_id,
            )
        )
        self.decision = decision

    @classmethod
    async def from_custom_id(
        cls, interaction: discord.Interaction, item: discord.ui.Button, match: re.Match[str]
    ) -> ModerationButton:
        return cls(ModerationDecision.parse(item.custom_id or ""), label=item.label)

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        bot = interaction.client
        if await bot.is_event_moderator(interaction.user):  # type: ignore[attr-defined]
            return True
        await interaction.response.send_message(t(bot.settings.locale, "moderators_only"), ephemeral=True)  # type: ignore[attr-defined]
        return False

    async def callback(self, interaction: discord.Interaction) -> None:
        bot = interaction.client
        locale = bot.settings.locale  # type: ignore[attr-defined]
        await interaction.response.defer()
        try:
            outcome = await bot.moderation.dispatch(self.decision, interaction)  # type: ignore[attr-defined]
        except ConvenerError as e:
            log.error(
                "Moderation %s failed (event_id=%s moderator_id=%s): %s",
                self.decision.decision.value,
                self.decision.event_id,
                interaction.user.id,
                e,
            )
            try:
                await interaction.followup.send(t(locale, "generic_error"), ephemeral=True)
            except discord.HTTPException:
                log.warning("Could not report moderation failure to moderator_id=%s", interaction.user.id)
            return
        if outcome.failures:
            log.warning(
                "Moderation %s applied with failed side effects %s (event_id=%s)",
                self.decision.decision.value,
                ",".join(outcome.failures),
                self.decision.event_id,
            )


def moderation_view(actions: Sequence[ModerationDecision], locale: str) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    for action in actions:
        label = truncate_text(t(locale, f"button_{action.decision.value}"), MAX_BUTTON_LABEL)
        view.add_item(ModerationButton(action, label=label))
    return view

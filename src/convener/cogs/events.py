from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Sequence

import discord
from discord import app_commands
from discord.ext import commands

from ..constants import LISTING_SEND_DELAY_SECONDS
from ..errors import ExternalServiceError, NoActiveSession, StoreError, ValidationError
from ..models import ConfirmChoice, Coordinates, Creator, Event, EventDraft, SessionStatus, Step
from ..permissions import require_member
from ..rendering import prompt_for, render_event, render_leaderboard, retry_for, t
from ..ui.session import ConfirmView
from ..utils import safe_followup, safe_response, safe_send

if TYPE_CHECKING:
    from ..bot import ConvenerBot

log = logging.getLogger("convener.cogs.events")


def creator_of(user: discord.abc.User) -> Creator:
    return Creator(user.id, display_name=user.display_name, handle=user.name)


class EventsCog(commands.Cog):
    """Event submission conversation (in DMs), listings and the leaderboard."""

    event = app_commands.Group(name="event", description="Community events.")

    def __init__(self, bot: ConvenerBot) -> None:
        self.bot = bot
        self._sweeper: asyncio.Task | None = None

    @property
    def locale(self) -> str:
        return self.bot.settings.locale

    async def cog_load(self) -> None:
        if self._sweeper is None:
            self._sweeper = asyncio.create_task(self._sweep_loop(), name="convener-session-sweep")

    async def cog_unload(self) -> None:
        if self._sweeper:
            self._sweeper.cancel()

    async def _sweep_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.bot.settings.session_sweep_seconds)
                self.bot.sessions.sweep_expired()
                self.bot.membership_gate.prune()
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Session sweep iteration failed")

    # Conversation

    @event.command(name="create", description="Propose a new community event.")
    @app_commands.describe(description="Optional longer description shown on the event card.")
    @require_member()
    async def create(self, interaction: discord.Interaction, description: str | None = None) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.bot.sessions.start(interaction.user.id, description=description)
        prompt = prompt_for(result.step, self.locale)

        if interaction.guild is None:
            await safe_followup(interaction, prompt)
            return
        if await safe_send(interaction.user, prompt) is None:
            await self.bot.sessions.discard(interaction.user.id)
            await safe_followup(interaction, t(self.locale, "dm_closed"), ephemeral=True)
            return
        await safe_followup(interaction, t(self.locale, "check_dms"), ephemeral=True)

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or message.guild is not None:
            return
        await self._advance(message.channel, message.author, message.content)

    async def _on_confirm_choice(self, interaction: discord.Interaction, choice: ConfirmChoice, token: int) -> None:
        channel = interaction.channel
        assert channel is not None
        await self._advance(channel, interaction.user, choice, session_token=token)  # type: ignore[arg-type]

    async def _advance(
        self,
        dest: discord.abc.Messageable,
        user: discord.abc.User,
        value: str | Coordinates | ConfirmChoice,
        *,
        session_token: int | None = None,
    ) -> None:
        sessions = self.bot.sessions
        try:
            result = await sessions.submit_input(
                user.id, value, creator=creator_of(user), session_token=session_token
            )
        except ValidationError as e:
            retry = retry_for(e.step, self.locale, max_title=self.bot.settings.max_title_length)
            session = sessions.current(user.id)
            if e.step is Step.CONFIRM and session is not None:
                await safe_send(dest, retry, view=self._confirm_view(user.id, session.token))
            else:
                await safe_send(dest, retry)
            return
        except NoActiveSession as e:
            if e.stale:
                key = "stale_preview"
            elif e.expired:
                key = "session_expired"
            else:
                key = "no_active_session"
            await safe_send(dest, t(self.locale, key))
            return

        if result.status is SessionStatus.COMPLETED:
            assert result.draft is not None
            await self._submit(dest, result.draft)
        elif result.status is SessionStatus.CANCELLED:
            await safe_send(dest, t(self.locale, "session_cancelled"))
        elif result.step is Step.CONFIRM:
            assert result.preview is not None
            preview = render_event(result.preview, self.locale)
            await safe_send(
                dest,
                t(self.locale, "prompt_confirm", preview=preview),
                view=self._confirm_view(user.id, result.token),
                allowed_mentions=discord.AllowedMentions.none(),
            )
        else:
            await safe_send(dest, prompt_for(result.step, self.locale))

    def _confirm_view(self, user_id: int, token: int) -> ConfirmView:
        timeout = self.bot.settings.session_idle_timeout_seconds or None
        return ConfirmView(user_id, token, self._on_confirm_choice, locale=self.locale, timeout=timeout)

    async def _submit(self, dest: discord.abc.Messageable, draft: EventDraft) -> None:
        try:
            event = await self.bot.lifecycle.create(draft)
        except StoreError as e:
            log.error("Failed to store submitted event (user_id=%s): %s", draft.creator.user_id, e)
            await safe_send(dest, t(self.locale, "generic_error"))
            return

        try:
            requested = await self.bot.moderation.request_review(event)
        except ExternalServiceError as e:
            # The event is stored and pending; only the moderator ping was lost.
            log.error("Review request failed (event_id=%s): %s", event.event_id, e)
            requested = True
        await safe_send(dest, t(self.locale, "submitted" if requested else "submitted_no_moderator"))

    @app_commands.command(name="restart", description="Reset any event you are currently drafting.")
    async def restart(self, interaction: discord.Interaction) -> None:
        await self.bot.sessions.discard(interaction.user.id)
        await safe_response(
            interaction,
            t(self.locale, "restart_done", commands=t(self.locale, "commands")),
            ephemeral=True,
        )

    @app_commands.command(name="help", description="Show what this bot can do.")
    async def help(self, interaction: discord.Interaction) -> None:
        await safe_response(interaction, t(self.locale, "help", commands=t(self.locale, "commands")), ephemeral=True)

    # Listings

    @event.command(name="upcoming", description="List approved upcoming events.")
    @require_member()
    async def upcoming(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        events = await self.bot.lifecycle.list_upcoming(limit=self.bot.settings.listing_limit)
        await self._send_listing(interaction, events, "upcoming")

    @event.command(name="past", description="List approved past events.")
    @require_member()
    async def past(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        events = await self.bot.lifecycle.list_past(limit=self.bot.settings.listing_limit)
        await self._send_listing(interaction, events, "past")

    async def _send_listing(self, interaction: discord.Interaction, events: Sequence[Event], kind: str) -> None:
        if not events:
            await safe_followup(interaction, t(self.locale, f"{kind}_empty"), ephemeral=True)
            return
        await safe_followup(interaction, t(self.locale, f"{kind}_header", count=len(events)), ephemeral=True)
        for e in events:
            await safe_followup(
                interaction,
                render_event(e, self.locale),
                ephemeral=True,
                allowed_mentions=discord.AllowedMentions.none(),
            )
            await asyncio.sleep(LISTING_SEND_DELAY_SECONDS)

    @event.command(name="leaderboard", description="Top event organizers.")
    @require_member()
    async def leaderboard(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        entries = await self.bot.leaderboard.rank(self.bot.settings.leaderboard_limit)
        await safe_followup(
            interaction,
            render_leaderboard(entries, self.locale),
            ephemeral=True,
            allowed_mentions=discord.AllowedMentions.none(),
        )

"""Text for everything the bot says, plus the event card renderer.

Messages are looked up by key per locale and fall back to English.
"""

from __future__ import annotations

import logging
from typing import Any

from discord.utils import escape_markdown

from .models import Coordinates, Event, EventDraft, LeaderboardEntry, Step
from .validation import DATETIME_FORMAT_HINT

log = logging.getLogger("convener.rendering")

DEFAULT_LOCALE = "en"

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "prompt_title": "Let's create a new event! 🎉\n\nFirst, what is the event title?",
        "prompt_datetime": "Great! When is this event happening?\n\nUse the format {hint}, for example 15.08.2025, 18:30",
        "prompt_location": "Where is this event happening?\n\nType an address or coordinates (for example 50.4501, 30.5234).",
        "prompt_confirm": "Here's a preview of your event:\n\n{preview}\n\nDoes this look correct?",
        "retry_title": "Please send a text title for your event (up to {max_title} characters).",
        "retry_datetime": "Sorry, I couldn't understand that date.\nPlease use the format {hint} (e.g. 15.08.2025, 18:30).",
        "retry_location": "Please send an address or coordinates.",
        "retry_confirm": "Please use the buttons, or reply confirm or cancel.",
        "check_dms": "I've sent you a direct message to continue. 📬",
        "dm_closed": "I couldn't message you. Please allow direct messages from server members and try again.",
        "no_active_session": "There is no event in progress. Start one with /event create.",
        "session_cancelled": "Event creation cancelled.",
        "session_expired": "Your event draft expired. Start again with /event create.",
        "stale_preview": "That preview is out of date. Use the buttons under your latest preview, or start again with /event create.",
        "restart_done": "All active conversations were reset. What next?\n\n{commands}",
        "submitted": "Your event has been submitted for approval! 🎉\nYou'll be notified when it's reviewed.",
        "submitted_no_moderator": "Your event has been saved. 🎉\nNote: moderation is not configured yet, so it stays pending.",
        "review_request": "New event submission for approval:\n\n{card}\n\nDo you want to approve this event?",
        "not_found_or_processed": "Event not found or already processed.",
        "approved_creator": "🎉 Your event was approved!\n\n{card}",
        "approved_moderator": "✅ Event approved and published!\n\n{card}",
        "approved_unpublished": "✅ Event approved, but no announcement channel is configured.\n\n{card}",
        "declined_creator": "❌ Unfortunately, your event was not approved.\n\n{card}\n\nYou can submit a new one with /event create.",
        "declined_moderator": "❌ Event declined:\n\n{card}",
        "poll_question": "Will you attend {title}?",
        "poll_yes": "Yes! ✅",
        "poll_maybe": "Maybe 🤔",
        "generic_error": "Sorry, something went wrong. Please try again later.",
        "members_only": "You need to be a member of our community to use this bot.",
        "membership_check_failed": "I couldn't verify your membership right now. Please try again later.",
        "moderators_only": "Only event moderators can do that.",
        "upcoming_header": "Found {count} upcoming event(s):",
        "upcoming_empty": "No upcoming events. Create one with /event create!",
        "past_header": "Found {count} past event(s):",
        "past_empty": "No past events.",
        "leaderboard_header": "🏆 Top event organizers 🏆",
        "leaderboard_empty": "No approved events yet.",
        "leaderboard_line": "{medal}{position}. {name}: {created} events ({approved} approved)",
        "help": "Community events bot 🤖\n\nCommands:\n{commands}",
        "commands": (
            "/event create - Create a new event\n"
            "/event upcoming - Upcoming events\n"
            "/event past - Past events\n"
            "/event leaderboard - Top organizers\n"
            "/restart - Reset the conversation\n"
            "/help - Show this help"
        ),
        "button_confirm": "Confirm",
        "button_cancel": "Cancel",
        "button_approve": "Approve",
        "button_decline": "Decline",
        "card_when": "📆 When?",
        "card_where": "📍 Where?",
        "card_host": "👤 Host:",
        "card_coordinates": "Coordinates: {lat}, {lon} ([map]({url}))",
    },
    "uk": {
        "prompt_title": "Створимо нову подію! 🎉\n\nСпочатку: яка назва події?",
        "prompt_datetime": "Чудово! Коли відбудеться подія?\n\nФормат {hint}, наприклад 15.08.2025, 18:30",
        "prompt_location": "Де відбудеться подія?\n\nНапиши адресу або координати (наприклад 50.4501, 30.5234).",
        "prompt_confirm": "Ось як виглядає твоя подія:\n\n{preview}\n\nВсе правильно?",
        "retry_title": "Надішли назву події текстом (до {max_title} символів).",
        "retry_datetime": "Не вдалося розпізнати дату.\nВикористай формат {hint} (наприклад 15.08.2025, 18:30).",
        "retry_location": "Надішли адресу або координати.",
        "retry_confirm": "Скористайся кнопками або відповідай confirm чи cancel.",
        "check_dms": "Я написав тобі в особисті повідомлення. 📬",
        "no_active_session": "Немає активної події. Почни з /event create.",
        "session_cancelled": "Створення події скасовано.",
        "submitted": "Твою подію надіслано на підтвердження! 🎉\nТи отримаєш сповіщення після перевірки.",
        "not_found_or_processed": "Подію не знайдено або вже оброблено.",
        "approved_creator": "🎉 Твоя подія підтверджена!\n\n{card}",
        "approved_moderator": "✅ Подія підтверджена і опублікована в групі!\n\n{card}",
        "declined_creator": "❌ Нажаль, твоя подія не була підтверджена.\n\n{card}\n\nТи можеш створити нову подію знову, використовуючи команду /event create.",
        "poll_question": "Будеш на {title}?",
        "poll_yes": "Так! ✅",
        "poll_maybe": "Можливо 🤔",
        "generic_error": "Вибачте, сталася помилка. Спробуйте пізніше.",
        "members_only": "Щоб користуватися ботом, ти маєш бути учасником нашої спільноти.",
        "upcoming_header": "Знайдено {count} майбутніх подій:",
        "upcoming_empty": "Немає майбутніх подій. Створи нову з /event create!",
        "past_header": "Знайдено {count} минулих подій:",
        "past_empty": "Немає минулих подій.",
        "leaderboard_header": "🏆 Топ організаторів подій 🏆",
        "leaderboard_empty": "Ще не підтверджено жодної події.",
        "leaderboard_line": "{medal}{position}. {name}: {created} подій ({approved} підтверджено)",
        "card_when": "📆 Коли?",
        "card_where": "📍 Де?",
        "card_host": "👤 Хост:",
        "card_coordinates": "Координати: {lat}, {lon} ([тиць]({url}))",
    },
}


def t(locale: str, key: str, **fmt: Any) -> str:
    catalog = MESSAGES.get(locale) or MESSAGES[DEFAULT_LOCALE]
    template = catalog.get(key)
    if template is None:
        template = MESSAGES[DEFAULT_LOCALE][key]
    return template.format(**fmt) if fmt else template


def prompt_for(step: Step, locale: str) -> str:
    """Opening prompt for the steps that ask a question (not Confirm)."""
    key = {
        Step.TITLE: "prompt_title",
        Step.DATETIME: "prompt_datetime",
        Step.LOCATION: "prompt_location",
    }[step]
    return t(locale, key, hint=DATETIME_FORMAT_HINT)


def retry_for(step: Step, locale: str, *, max_title: int = 120) -> str:
    return t(locale, f"retry_{step.name.lower()}", hint=DATETIME_FORMAT_HINT, max_title=max_title)


def maps_url(coords: Coordinates) -> str:
    return f"https://maps.google.com/?q={coords.latitude},{coords.longitude}"


def render_location(event: Event | EventDraft, locale: str) -> str:
    loc = event.location
    if isinstance(loc, Coordinates):
        return t(locale, "card_coordinates", lat=loc.latitude, lon=loc.longitude, url=maps_url(loc))
    # Discord turns bare URLs in addresses into links on its own.
    return escape_markdown(loc.text)


def render_event(event: Event | EventDraft, locale: str = DEFAULT_LOCALE) -> str:
    """Event card as Discord markdown."""
    ts = int(event.starts_at.timestamp())
    lines = [
        f"**{escape_markdown(event.title)}**",
        "",
        f"**{t(locale, 'card_when')}** <t:{ts}:F>",
        f"**{t(locale, 'card_where')}** {render_location(event, locale)}",
        f"**{t(locale, 'card_host')}** {escape_markdown(event.creator.label)}",
    ]
    if event.description:
        lines += ["", escape_markdown(event.description)]
    return "\n".join(lines)


def render_leaderboard(entries: list[LeaderboardEntry], locale: str = DEFAULT_LOCALE) -> str:
    if not entries:
        return t(locale, "leaderboard_empty")
    lines = [t(locale, "leaderboard_header"), ""]
    for entry in entries:
        lines.append(
            t(
                locale,
                "leaderboard_line",
                medal=f"{entry.medal} " if entry.medal else "",
                position=entry.position,
                name=escape_markdown(entry.stats.label),
                created=entry.stats.events_created,
                approved=entry.stats.events_approved,
            )
        )
    return "\n".join(lines)

from __future__ import annotations

import os
from dataclasses import dataclass


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _get_str(name: str, default: str) -> str:
    return os.getenv(name, default).strip() or default


@dataclass(frozen=True)
class Settings:
    token: str
    sqlite_path: str = "convener.sqlite3"
    log_level: str = "INFO"
    sync_guild_id: int = 0
    # Membership gate; 0 lets everyone in.
    community_guild_id: int = 0
    # Review requests are DMed to this user; 0 leaves submissions pending.
    moderator_user_id: int = 0
    moderator_role_name: str = "Event Moderator"
    # Where approved events are announced; the thread is optional.
    announce_channel_id: int = 0
    announce_thread_id: int = 0
    publish_poll: bool = True
    poll_duration_hours: int = 24
    event_timezone: str = "UTC"
    locale: str = "en"
    session_idle_timeout_seconds: int = 1800
    session_sweep_seconds: int = 60
    membership_cache_ttl_seconds: int = 120
    leaderboard_limit: int = 10
    listing_limit: int = 10
    max_title_length: int = 120


def load_settings() -> Settings:
    token = os.getenv("DISCORD_TOKEN", "").strip()
    if not token:
        raise RuntimeError("DISCORD_TOKEN is required")
    return Settings(
        token=token,
        sqlite_path=_get_str("SQLITE_PATH", "convener.sqlite3"),
        log_level=_get_str("LOG_LEVEL", "INFO"),
        sync_guild_id=_get_int("SYNC_GUILD_ID", 0),
        community_guild_id=_get_int("COMMUNITY_GUILD_ID", 0),
        moderator_user_id=_get_int("MODERATOR_USER_ID", 0),
        moderator_role_name=_get_str("MODERATOR_ROLE_NAME", "Event Moderator"),
        announce_channel_id=_get_int("ANNOUNCE_CHANNEL_ID", 0),
        announce_thread_id=_get_int("ANNOUNCE_THREAD_ID", 0),
        publish_poll=_get_bool("PUBLISH_POLL", True),
        # Discord polls run between 1 hour and 32 days.
        poll_duration_hours=max(1, min(_get_int("POLL_DURATION_HOURS", 24), 768)),
        event_timezone=_get_str("EVENT_TIMEZONE", "UTC"),
        locale=_get_str("LOCALE", "en"),
        session_idle_timeout_seconds=max(0, _get_int("SESSION_IDLE_TIMEOUT_SECONDS", 1800)),
        session_sweep_seconds=max(5, _get_int("SESSION_SWEEP_SECONDS", 60)),
        membership_cache_ttl_seconds=max(1, _get_int("MEMBERSHIP_CACHE_TTL_SECONDS", 120)),
        leaderboard_limit=max(1, min(_get_int("LEADERBOARD_LIMIT", 10), 25)),
        listing_limit=max(1, min(_get_int("LISTING_LIMIT", 10), 25)),
        max_title_length=max(1, min(_get_int("MAX_TITLE_LENGTH", 120), 256)),
    )

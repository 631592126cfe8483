from __future__ import annotations

from typing import Iterable

from ..models import LeaderboardEntry, UserStats
from .users_store import UserStatsStore


def rank_key(stats: UserStats) -> tuple[int, int, int]:
    # approved desc, created desc, then whoever was recorded first
    return (-stats.events_approved, -stats.events_created, stats.seq)


def rank_stats(rows: Iterable[UserStats], limit: int) -> list[LeaderboardEntry]:
    qualifying = sorted((r for r in rows if r.events_approved > 0), key=rank_key)
    return [LeaderboardEntry(position=i, stats=s) for i, s in enumerate(qualifying[: max(0, int(limit))], start=1)]


class LeaderboardAggregator:
    def __init__(self, store: UserStatsStore) -> None:
        self._store = store

    async def rank(self, limit: int = 10) -> list[LeaderboardEntry]:
        return rank_stats(await self._store.with_approved(), limit)

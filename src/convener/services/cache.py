from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Generic, NamedTuple, Optional, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class _Cached(NamedTuple):
    value: object
    expires_at: float


class TTLCache(Generic[K, V]):
    """Expiring in-memory cache for answers fetched from Discord.

    ``get_or_load`` coalesces concurrent misses for the same key into a single
    loader call. ``None`` is never cached, and a loader that raises caches nothing.
    """

    def __init__(self, default_ttl_seconds: int = 120, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = float(max(1, int(default_ttl_seconds)))
        self._clock = clock
        self._items: dict[K, _Cached] = {}
        self._pending: dict[K, asyncio.Future] = {}

    def get(self, key: K) -> Optional[V]:
        hit = self._items.get(key)
        if hit is None:
            return None
        if self._clock() >= hit.expires_at:
            del self._items[key]
            return None
        return hit.value  # type: ignore[return-value]

    def set(self, key: K, value: V, ttl_seconds: Optional[int] = None) -> None:
        ttl = self._ttl if ttl_seconds is None else float(max(1, int(ttl_seconds)))
        self._items[key] = _Cached(value, self._clock() + ttl)

    async def get_or_load(self, key: K, loader: Callable[[], Awaitable[V]]) -> V:
        hit = self.get(key)
        if hit is not None:
            return hit
        inflight = self._pending.get(key)
        if inflight is not None:
            return await asyncio.shield(inflight)

        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[key] = fut
        try:
            value = await loader()
        except asyncio.CancelledError:
            fut.cancel()
            raise
        except Exception as e:
            fut.set_exception(e)
            # Waiters re-raise it; mark retrieved so an unwaited future stays quiet.
            fut.exception()
            raise
        else:
            if value is not None:
                self.set(key, value)
            fut.set_result(value)
            return value
        finally:
            del self._pending[key]

    def prune(self) -> int:
        now = self._clock()
        stale = [k for k, hit in self._items.items() if now >= hit.expires_at]
        for k in stale:
            del self._items[k]
        return len(stale)

    def __len__(self) -> int:
        return len(self._items)

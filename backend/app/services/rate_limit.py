from __future__ import annotations

from collections import deque
from collections.abc import Callable
import math
from threading import Lock
import time

from fastapi import Request

from app.core.exceptions import RateLimitError


class SlidingWindowLimiter:
    """Counts hits per key over a trailing window.

    Keys whose newest hit has left the window are swept out at most once per
    window, so a stream of one-off recipients does not accumulate.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = Lock()
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._hits)

    def hit(self, key: str, *, limit: int, window_seconds: int) -> int | None:
        """Record a hit for ``key``; returns the seconds to wait when the limit is already reached."""
        now = self._clock()
        cutoff = now - window_seconds
        with self._lock:
            self._sweep(now, cutoff, window_seconds)
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= max(1, limit):
                return max(1, math.ceil(hits[0] + window_seconds - now))
            hits.append(now)
        return None

    def _sweep(self, now: float, cutoff: float, window_seconds: int) -> None:
        if now - self._last_sweep < window_seconds:
            return
        self._last_sweep = now
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._hits[key]

    def clear(self) -> None:
        with self._lock:
            self._hits.clear()
            self._last_sweep = self._clock()


_limiter = SlidingWindowLimiter()


def client_address(request: Request, *, trust_forwarded: bool = False) -> str:
    # X-Forwarded-For is client-controlled unless a trusted proxy overwrites it.
    if trust_forwarded:
        forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if forwarded:
            return forwarded
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def enforce_rate_limit(
    *,
    request: Request,
    scope: str,
    limit: int,
    window_seconds: int,
    identity: str | None = None,
    trust_forwarded: bool = False,
) -> None:
    address = client_address(request, trust_forwarded=trust_forwarded)
    key = f"{scope}|{address}|{(identity or '').strip().lower()}"
    retry_after = _limiter.hit(key, limit=limit, window_seconds=window_seconds)
    if retry_after is None:
        return
    raise RateLimitError(
        f"Too many requests. Try again in {retry_after} second(s).",
        retry_after=retry_after,
    )


def clear_rate_limiter() -> None:
    _limiter.clear()

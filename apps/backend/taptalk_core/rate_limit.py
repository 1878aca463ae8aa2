"""Fixed-window request admission keyed by caller identity.

The store is process-local. Every serving instance keeps its own counters, so
a deployment with N instances admits up to N times the configured limit; a
shared store would be needed for a global limit.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from .logging import logger


@dataclass(frozen=True)
class RateLimitConfig:
    """Max requests per window and the window length in seconds."""

    limit: int
    window_seconds: int


RATE_LIMITS: dict[str, RateLimitConfig] = {
    # AI-heavy endpoints (chat, evaluate, debate)
    "ai": RateLimitConfig(limit=30, window_seconds=60),
    # speech-to-text / text-to-speech
    "audio": RateLimitConfig(limit=40, window_seconds=60),
    # topic generation, data reads
    "light": RateLimitConfig(limit=60, window_seconds=60),
}


@dataclass
class RateLimitEntry:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int | None = None


def rate_limit_id(email: str | None, forwarded_for: str | None) -> str:
    """Build the limiter key from the session e-mail or the client IP.

    Only the first `X-Forwarded-For` entry is used; it is the original client
    when the proxy chain appends.
    """
    if email:
        return f"user:{email}"
    ip = ""
    if forwarded_for:
        ip = forwarded_for.split(",")[0].strip()
    return f"ip:{ip or 'unknown'}"


class RateLimiter:
    """Thread-safe fixed-window limiter.

    - A window opens on the first request for a key and lasts
      ``window_seconds``; bursts at window boundaries are allowed.
    - Expired entries are swept at most once per ``cleanup_interval_seconds``.
    """

    def __init__(
        self,
        *,
        cleanup_interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._clock = clock
        self._cleanup_interval = max(0.0, float(cleanup_interval_seconds))
        self._store: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._store

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self._cleanup_interval:
            return
        self._last_cleanup = now
        expired = [key for key, entry in self._store.items() if entry.reset_at < now]
        for key in expired:
            self._store.pop(key, None)
        if expired:
            logger.debug("rate_limit_cleanup", purged=len(expired), remaining=len(self._store))

    def check(self, identifier: str, config: RateLimitConfig) -> RateLimitDecision:
        limit = max(0, int(config.limit))
        window = max(1, int(config.window_seconds))
        with self._lock:
            now = self._clock()
            self._cleanup(now)

            entry = self._store.get(identifier)
            if entry is None or now > entry.reset_at:
                entry = RateLimitEntry(count=1, reset_at=now + window)
                self._store[identifier] = entry
                return RateLimitDecision(
                    allowed=True,
                    limit=limit,
                    remaining=max(0, limit - 1),
                    reset_at=entry.reset_at,
                )

            entry.count += 1
            if entry.count > limit:
                retry_after = math.ceil(entry.reset_at - now)
                decision = RateLimitDecision(
                    allowed=False,
                    limit=limit,
                    remaining=0,
                    reset_at=entry.reset_at,
                    retry_after_seconds=retry_after,
                )
            else:
                decision = RateLimitDecision(
                    allowed=True,
                    limit=limit,
                    remaining=limit - entry.count,
                    reset_at=entry.reset_at,
                )

        if not decision.allowed:
            logger.info(
                "rate_limit_exceeded",
                identifier=identifier,
                limit=limit,
                retry_after=decision.retry_after_seconds,
            )
        return decision

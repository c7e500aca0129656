"""Fixed-window rate limiting.

Counters live behind a small ``RateLimitStore`` interface so the same limiter
runs against process memory (default) or Redis when several API instances
must share a budget. ``hit`` is the only read-modify-write and each store
makes it atomic. Expired windows are handled lazily on access; the sweep loop
only reclaims memory.

Usage:
    limiter = RateLimiter(MemoryRateLimitStore())
    result = await limiter.check(f"create:{ip}", policies.create_event)
    if not result.success:
        raise RateLimitedError(reset_in_ms=result.reset_in_ms)
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import redis.asyncio as redis

from datepoll.config import RateLimitSettings

logger = logging.getLogger("datepoll.ratelimit")


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests: int
    window_ms: int


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    remaining: int
    reset_in_ms: int


@dataclass
class RateLimitEntry:
    count: int
    reset_at_ms: int


@dataclass(frozen=True)
class RateLimitPolicies:
    """Independent budgets per operation class."""

    create_event: RateLimitConfig = RateLimitConfig(10, 60_000)
    submit_response: RateLimitConfig = RateLimitConfig(30, 60_000)
    verify_code: RateLimitConfig = RateLimitConfig(10, 60_000)

    @classmethod
    def from_settings(cls, settings: RateLimitSettings) -> "RateLimitPolicies":
        return cls(
            create_event=RateLimitConfig(settings.create_event_max, settings.create_event_window_ms),
            submit_response=RateLimitConfig(settings.submit_response_max, settings.submit_response_window_ms),
            verify_code=RateLimitConfig(settings.verify_code_max, settings.verify_code_window_ms),
        )


class RateLimitStore(Protocol):
    async def get(self, key: str) -> RateLimitEntry | None: ...

    async def set(self, key: str, entry: RateLimitEntry) -> None: ...

    async def sweep(self, now_ms: int) -> int: ...

    async def hit(self, key: str, config: RateLimitConfig, now_ms: int) -> RateLimitResult: ...


class MemoryRateLimitStore:
    """Process-local store. Counters reset on restart."""

    def __init__(self) -> None:
        self._entries: dict[str, RateLimitEntry] = {}

    async def get(self, key: str) -> RateLimitEntry | None:
        return self._entries.get(key)

    async def set(self, key: str, entry: RateLimitEntry) -> None:
        self._entries[key] = entry

    async def hit(self, key: str, config: RateLimitConfig, now_ms: int) -> RateLimitResult:
        # No await between the read and the write, so this is atomic on the event loop.
        entry = self._entries.get(key)
        if entry is None or now_ms > entry.reset_at_ms:
            self._entries[key] = RateLimitEntry(count=1, reset_at_ms=now_ms + config.window_ms)
            return RateLimitResult(True, config.max_requests - 1, config.window_ms)

        if entry.count >= config.max_requests:
            return RateLimitResult(False, 0, entry.reset_at_ms - now_ms)

        entry.count += 1
        return RateLimitResult(True, config.max_requests - entry.count, entry.reset_at_ms - now_ms)

    async def sweep(self, now_ms: int) -> int:
        expired = [k for k, e in self._entries.items() if now_ms > e.reset_at_ms]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


class RedisRateLimitStore:
    """Shared store; each key expires with its window so sweep has nothing to do."""

    def __init__(self, client: redis.Redis, prefix: str = "ratelimit:") -> None:
        self._client = client
        self._prefix = prefix

    async def get(self, key: str) -> RateLimitEntry | None:
        data = await self._client.hgetall(self._prefix + key)
        if not data:
            return None
        return RateLimitEntry(count=int(data["count"]), reset_at_ms=int(data["reset_at_ms"]))

    async def set(self, key: str, entry: RateLimitEntry) -> None:
        name = self._prefix + key
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.hset(name, mapping={"count": entry.count, "reset_at_ms": entry.reset_at_ms})
            pipe.pexpireat(name, entry.reset_at_ms + 1)
            await pipe.execute()

    async def hit(self, key: str, config: RateLimitConfig, now_ms: int) -> RateLimitResult:
        """Count one request in a single MULTI/EXEC.

        The window start is written only if the key is new, and the key expires
        with its window. A hit over the limit is rolled back so rejected
        requests leave the count at ``max_requests``.
        """
        name = self._prefix + key
        reset_at = now_ms + config.window_ms
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.hsetnx(name, "reset_at_ms", reset_at)
            pipe.pexpireat(name, reset_at + 1, nx=True)
            pipe.hincrby(name, "count", 1)
            pipe.hget(name, "reset_at_ms")
            _, _, count, stored_reset = await pipe.execute()

        reset_in = max(0, int(stored_reset) - now_ms)
        if count > config.max_requests:
            await self._client.hincrby(name, "count", -1)
            return RateLimitResult(False, 0, reset_in)
        return RateLimitResult(True, config.max_requests - count, reset_in)

    async def sweep(self, now_ms: int) -> int:
        return 0


class RateLimiter:
    def __init__(self, store: RateLimitStore, clock: Callable[[], int] = _now_ms) -> None:
        self.store = store
        self._clock = clock

    async def check(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        result = await self.store.hit(identifier, config, self._clock())
        if not result.success:
            logger.warning("Rate limit exceeded for %s (max=%d)", identifier, config.max_requests)
        return result

    async def sweep(self) -> int:
        removed = await self.store.sweep(self._clock())
        if removed:
            logger.debug("Swept %d expired rate limit entries", removed)
        return removed

    async def run_sweeper(self, stop_event: asyncio.Event, interval_sec: float) -> None:
        """Periodically drop expired entries until ``stop_event`` is set."""
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_sec)
            except asyncio.TimeoutError:
                pass
            try:
                await self.sweep()
            except Exception:
                logger.exception("Rate limit sweep failed")

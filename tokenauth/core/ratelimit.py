# tokenauth/core/ratelimit.py
"""
Fixed-window attempt limiter keyed by (action, origin).

The window starts at the first attempt and the counter disappears when its
TTL elapses. Being a fixed window, up to ``2 * max_attempts`` attempts can
land around a window boundary; callers that need a strict bound over any
interval need a sliding-window backend, which is not provided here.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol, Union

import redis

from tokenauth.core.errors import AuthErrorCode, Ok, Result, fail

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowState:
    count: int
    allowed: bool
    expires_in: int  # segundos restantes na janela


class CounterStore(Protocol):
    def hit(self, action: str, origin: str, limit: int, window_seconds: int) -> WindowState:
        """Atomically increment the counter unless it already reached ``limit``."""
        ...


# Lê, compara e incrementa num único passo no servidor Redis.
_HIT_SCRIPT = """
local current = tonumber(redis.call('GET', KEYS[1]) or '0')
if current >= tonumber(ARGV[1]) then
  return {current, redis.call('PTTL', KEYS[1]), 0}
end
current = redis.call('INCR', KEYS[1])
if current == 1 then
  redis.call('PEXPIRE', KEYS[1], ARGV[2])
end
return {current, redis.call('PTTL', KEYS[1]), 1}
"""


class RedisCounterStore:
    """Counter store on Redis. TTLs are measured by the Redis server clock."""

    def __init__(self, client: "redis.Redis", prefix: str = "ratelimit"):
        self._client = client
        self._prefix = prefix
        self._script = client.register_script(_HIT_SCRIPT)

    @classmethod
    def from_url(cls, url: str) -> "RedisCounterStore":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def close(self) -> None:
        self._client.close()

    def key(self, action: str, origin: str) -> str:
        return f"{self._prefix}:{action}:{origin}"

    def hit(self, action: str, origin: str, limit: int, window_seconds: int) -> WindowState:
        count, pttl, allowed = self._script(
            keys=[self.key(action, origin)], args=[int(limit), int(window_seconds) * 1000]
        )
        pttl = int(pttl)
        expires_in = math.ceil(pttl / 1000) if pttl > 0 else int(window_seconds)
        return WindowState(count=int(count), allowed=bool(int(allowed)), expires_in=expires_in)


def _seconds(window: Union[int, timedelta]) -> int:
    if isinstance(window, timedelta):
        return int(window.total_seconds())
    return int(window)


class RateLimiter:
    def __init__(self, store: CounterStore):
        self._store = store

    def check_and_increment(
        self, action: str, origin: str, max_attempts: int, window: Union[int, timedelta]
    ) -> Result[int]:
        """
        ``Ok(count)`` when the attempt is admitted (``count`` includes it);
        otherwise ``Err(RATE_LIMITED)`` carrying the seconds left in the window.
        """
        window_seconds = _seconds(window)
        if max_attempts <= 0 or window_seconds <= 0:
            raise ValueError("max_attempts and window must be positive")

        state = self._store.hit(action, origin or "unknown", max_attempts, window_seconds)
        if state.allowed:
            return Ok(state.count)

        logger.info("rate limit reached for action=%s", action)
        return fail(AuthErrorCode.RATE_LIMITED, retry_after=max(state.expires_in, 1))

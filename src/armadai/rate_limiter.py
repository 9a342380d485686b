from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

from .errors import RateLimitError
from .metrics import rate_limiter_wait_seconds

log = structlog.get_logger()

# Absorbs float drift so a wait of exactly deficit/rate is always enough.
_EPSILON = 1e-9

_UNIT_TO_PER_MINUTE: dict[str, Callable[[int], int]] = {
    "s": lambda n: n * 60,
    "sec": lambda n: n * 60,
    "second": lambda n: n * 60,
    "m": lambda n: n,
    "min": lambda n: n,
    "minute": lambda n: n,
    "h": lambda n: n // 60,
    "hr": lambda n: n // 60,
    "hour": lambda n: n // 60,
}


def parse_rate(rate: str) -> int | None:
    """Normalize "N/sec", "N/min" or "N/hour" to requests per minute.

    Returns None for anything unparsable, meaning "no limit configured".
    """
    count_str, sep, unit = rate.partition("/")
    if not sep:
        return None
    count_str = count_str.strip()
    if not count_str.isdigit():
        return None
    convert = _UNIT_TO_PER_MINUTE.get(unit.strip().lower())
    if convert is None:
        return None
    return convert(int(count_str))


class RateLimiter:
    """Token bucket allowing `per_minute` calls per minute, starting full."""

    def __init__(
        self,
        per_minute: int,
        *,
        clock: Callable[[], float] | None = None,
        sleeper: Callable[[float], Awaitable[None]] | None = None,
    ):
        if per_minute <= 0:
            raise RateLimitError(message=f"Rate limit of {per_minute}/min can never be satisfied.")
        self._clock: Callable[[], float] = clock or time.monotonic
        self._sleep: Callable[[float], Awaitable[None]] = sleeper or asyncio.sleep
        self.capacity = float(per_minute)
        self.refill_rate = per_minute / 60.0
        self.tokens = self.capacity
        self._last_refill = self._clock()

    def _try_take(self) -> float:
        """Refill, then take a token. Returns 0.0 on success or the seconds to wait."""
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self._last_refill = now
        if self.tokens >= 1.0 - _EPSILON:
            self.tokens = max(0.0, self.tokens - 1.0)
            return 0.0
        return (1.0 - self.tokens) / self.refill_rate

    async def acquire(self) -> None:
        # _try_take never awaits, so the bucket update is atomic on the event loop.
        while True:
            wait = self._try_take()
            if wait <= 0.0:
                return
            log.debug("rate_limit_wait", seconds=round(wait, 3))
            rate_limiter_wait_seconds.observe(wait)
            await self._sleep(wait)

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .store import CounterStore, CounterStoreError

logger = logging.getLogger(__name__)

# bucket shared by every caller we cannot identify
ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    amount: int
    remaining: int
    reset: int  # epoch ms when the current window rolls over

    def headers(self) -> dict:
        return {
            "X-RateLimit-Limit": str(self.amount),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }


class RateLimiter:
    """Fixed-window admission control over a CounterStore.

    Window boundaries are aligned to multiples of the window length, so
    `reset` is the same for every call inside one window.
    """

    def __init__(
        self,
        store: CounterStore,
        fail_open: bool = False,
        clock: Callable[[], float] = time.time,
        prefix: str = "ratelimit",
    ):
        self.store = store
        self.fail_open = fail_open
        self._clock = clock
        self._prefix = prefix

    async def check(self, identity: Optional[str], max_requests: int, window_ms: int) -> RateLimitDecision:
        now_ms = int(self._clock() * 1000)
        window_index = now_ms // window_ms
        reset = (window_index + 1) * window_ms
        key = f"{self._prefix}:{identity or ANONYMOUS}:{window_index}"

        try:
            count = await self.store.increment(key, ttl_ms=reset - now_ms)
        except CounterStoreError as e:
            logger.warning(
                "Rate limit store unavailable, failing %s: %s",
                "open" if self.fail_open else "closed", e,
            )
            return RateLimitDecision(
                allowed=self.fail_open,
                amount=max_requests,
                remaining=max_requests if self.fail_open else 0,
                reset=reset,
            )

        remaining = max(0, max_requests - count)
        return RateLimitDecision(
            allowed=count <= max_requests,
            amount=max_requests,
            remaining=remaining,
            reset=reset,
        )

"""
Keyed counter stores backing the rate limiter.

A store only has to do one thing atomically: bump a counter and return the
new value, arranging for the key to disappear once its window is over.
"""
from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)


class CounterStoreError(Exception):
    """The backing store could not be read or updated."""


class CounterStore(ABC):
    @abstractmethod
    async def increment(self, key: str, ttl_ms: int) -> int:
        """Atomically add one to `key` and return the new count.

        The first increment of a key starts its expiry of `ttl_ms`.
        """

    async def close(self) -> None:
        pass


class MemoryCounterStore(CounterStore):
    """Process-local store. Fine for a single worker."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._counters: Dict[str, Tuple[int, float]] = {}  # key -> (count, expires_at)

    async def increment(self, key: str, ttl_ms: int) -> int:
        now = self._clock()
        with self._lock:
            self._prune(now)
            count, expires_at = self._counters.get(key, (0, now + ttl_ms / 1000.0))
            count += 1
            self._counters[key] = (count, expires_at)
            return count

    def _prune(self, now: float) -> None:
        expired = [k for k, (_, exp) in self._counters.items() if exp <= now]
        for k in expired:
            del self._counters[k]

    def __len__(self) -> int:
        return len(self._counters)


class KVRestCounterStore(CounterStore):
    """Redis-over-REST store (Upstash / Vercel KV wire format).

    INCR and PEXPIRE run inside one MULTI/EXEC transaction, so concurrent
    workers never lose an increment.
    """

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._url = url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {"Authorization": f"Bearer {token}"}

    async def increment(self, key: str, ttl_ms: int) -> int:
        commands = [["INCR", key], ["PEXPIRE", key, str(ttl_ms), "NX"]]
        try:
            resp = await self._client.post(
                f"{self._url}/multi-exec",
                json=commands,
                headers=self._headers,
            )
            resp.raise_for_status()
            results = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CounterStoreError(f"KV request failed: {e}") from e

        if not isinstance(results, list) or not results:
            raise CounterStoreError(f"Unexpected KV response: {results!r}")
        first = results[0]
        if "error" in first:
            raise CounterStoreError(f"KV INCR failed: {first['error']}")
        try:
            return int(first["result"])
        except (KeyError, TypeError, ValueError) as e:
            raise CounterStoreError(f"Unexpected KV INCR result: {first!r}") from e

    async def close(self) -> None:
        await self._client.aclose()

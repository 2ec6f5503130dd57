# Admission control: fixed-window counters keyed by caller identity.

from .duration import parse_duration
from .limiter import ANONYMOUS, RateLimitDecision, RateLimiter
from .store import CounterStore, CounterStoreError, KVRestCounterStore, MemoryCounterStore

__all__ = [
    "parse_duration",
    "ANONYMOUS",
    "RateLimitDecision",
    "RateLimiter",
    "CounterStore",
    "CounterStoreError",
    "KVRestCounterStore",
    "MemoryCounterStore",
]

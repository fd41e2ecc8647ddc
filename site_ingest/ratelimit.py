"""
Per-client token-bucket admission control for URL submissions.

Refill is computed lazily on each call from the injected clock; there is no
background task. Buckets are created on first use and never evicted.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

UNKNOWN_CLIENT = "unknown"

Clock = Callable[[], float]


@dataclass(slots=True)
class RateBucket:
    tokens: float
    last_refill: float


class TokenBucketLimiter:
    """``capacity`` admits per ``window`` seconds for every client id."""

    def __init__(self, capacity: int = 6, window: float = 60.0, clock: Clock = time.monotonic) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if window <= 0:
            raise ValueError("window must be > 0")
        self.capacity = capacity
        self.window = window
        self._clock = clock
        self._buckets: Dict[str, RateBucket] = {}
        self._lock = threading.Lock()

    def admit(self, client_id: str) -> bool:
        """Consume one token for *client_id*; False when fewer than one is available."""
        with self._lock:
            now = self._clock()
            bucket = self._buckets.get(client_id)
            if bucket is None:
                bucket = self._buckets[client_id] = RateBucket(float(self.capacity), now)

            elapsed = max(0.0, now - bucket.last_refill)
            bucket.tokens = min(float(self.capacity), bucket.tokens + elapsed / self.window * self.capacity)
            bucket.last_refill = now

            if bucket.tokens < 1:
                return False
            bucket.tokens -= 1
            return True

    def bucket(self, client_id: str) -> Optional[RateBucket]:
        """Snapshot of the stored bucket (no refill applied)."""
        with self._lock:
            bucket = self._buckets.get(client_id)
            return None if bucket is None else RateBucket(bucket.tokens, bucket.last_refill)

    def __len__(self) -> int:
        return len(self._buckets)


def client_id_from(headers: Mapping[str, str], peer: Optional[str] = None) -> str:
    """
    Identify the caller: first ``X-Forwarded-For`` entry, then the peer address.

    Callers without either share the ``"unknown"`` bucket.
    """
    forwarded = ""
    for name, value in headers.items():
        if name.lower() == "x-forwarded-for":
            forwarded = value
            break
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    if peer:
        return peer
    return UNKNOWN_CLIENT


__all__ = ["RateBucket", "TokenBucketLimiter", "client_id_from", "UNKNOWN_CLIENT"]

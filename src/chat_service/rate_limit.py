"""
Per-key token bucket rate limiting.

A ``RateLimiter`` hands every API key its own ``TokenBucket``. Buckets are
created lazily by a ``BucketRegistry`` and each bucket carries its own lock,
so requests presenting different keys never wait on each other.
"""
from __future__ import annotations

import math
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Literal

RefillStrategy = Literal["interval", "greedy"]

Clock = Callable[[], float]


class TokenBucket:
    def __init__(
        self,
        capacity: int,
        refill_tokens: int | None = None,
        interval_seconds: float = 60.0,
        *,
        strategy: RefillStrategy = "interval",
        clock: Clock = time.monotonic,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if strategy not in ("interval", "greedy"):
            raise ValueError(f"unknown refill strategy: {strategy!r}")

        self._capacity = int(capacity)
        self._refill_tokens = float(refill_tokens if refill_tokens is not None else capacity)
        self._interval = float(interval_seconds)
        self._strategy = strategy
        self._clock = clock

        self._tokens = float(self._capacity)
        self._last_refill = clock()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def available_tokens(self) -> float:
        with self._lock:
            self._refill()
            return self._tokens

    def try_consume(self, tokens: int = 1) -> bool:
        if tokens <= 0:
            raise ValueError("tokens must be positive")

        with self._lock:
            self._refill()
            if self._tokens >= tokens:
                self._tokens -= tokens
                return True
            return False

    def seconds_until_available(self, tokens: int = 1) -> float:
        """Time until ``tokens`` could be consumed, 0.0 if they already can.

        Returns ``math.inf`` when the request exceeds the bucket capacity.
        """
        if tokens > self._capacity:
            return math.inf

        with self._lock:
            self._refill()
            missing = tokens - self._tokens
            if missing <= 0:
                return 0.0

            if self._strategy == "greedy":
                return missing * self._interval / self._refill_tokens

            intervals = math.ceil(missing / self._refill_tokens)
            next_refill = self._last_refill + intervals * self._interval
            return max(next_refill - self._clock(), 0.0)

    def _refill(self) -> None:
        # Caller holds self._lock.
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed <= 0:
            # Clock anomaly or same instant: nothing to add, keep the anchor.
            return

        if self._strategy == "greedy":
            self._tokens = min(self._capacity, self._tokens + elapsed * self._refill_tokens / self._interval)
            self._last_refill = now
            return

        intervals = int(elapsed // self._interval)
        if intervals == 0:
            return
        self._tokens = min(self._capacity, self._tokens + intervals * self._refill_tokens)
        # Advance by whole intervals so the partial remainder is not lost.
        self._last_refill += intervals * self._interval


BucketFactory = Callable[[], TokenBucket]


class BucketRegistry:
    """Maps keys to buckets, creating each bucket exactly once.

    With ``max_keys`` set, the least recently used key is dropped once the
    registry grows past that size. A dropped key starts over with a full
    bucket on its next request.
    """

    def __init__(self, factory: BucketFactory, *, max_keys: int | None = None) -> None:
        if max_keys is not None and max_keys <= 0:
            raise ValueError("max_keys must be positive")
        self._factory = factory
        self._max_keys = max_keys
        self._buckets: OrderedDict[str, TokenBucket] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._buckets)

    def __contains__(self, key: object) -> bool:
        return key in self._buckets

    def get_or_create(self, key: str) -> TokenBucket:
        if self._max_keys is None:
            bucket = self._buckets.get(key)
            if bucket is not None:
                return bucket

        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = self._factory()
                self._buckets[key] = bucket
                if self._max_keys is not None and len(self._buckets) > self._max_keys:
                    self._buckets.popitem(last=False)
            elif self._max_keys is not None:
                self._buckets.move_to_end(key)
            return bucket


class RateLimiter:
    def __init__(self, registry: BucketRegistry) -> None:
        self._registry = registry

    @classmethod
    def per_window(
        cls,
        capacity: int = 100,
        window_seconds: float = 60.0,
        *,
        strategy: RefillStrategy = "interval",
        max_keys: int | None = None,
        clock: Clock = time.monotonic,
    ) -> RateLimiter:
        """Allow ``capacity`` requests per ``window_seconds`` for every key."""

        def factory() -> TokenBucket:
            return TokenBucket(capacity, capacity, window_seconds, strategy=strategy, clock=clock)

        return cls(BucketRegistry(factory, max_keys=max_keys))

    @property
    def registry(self) -> BucketRegistry:
        return self._registry

    def allow(self, key: str) -> bool:
        return self._registry.get_or_create(key).try_consume(1)

    def retry_after(self, key: str) -> float:
        return self._registry.get_or_create(key).seconds_until_available(1)

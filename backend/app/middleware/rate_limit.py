"""
Per-client rate limiting for route groups.

Three tiers are provided as FastAPI dependencies:

* a sliding window limiter for search and read routes, tight on purpose
  because each call costs a Spotify request;
* a token bucket limiter for mutations, which allows short bursts;
* an optional fixed window limiter applied to every route, off unless
  RATE_LIMIT_GLOBAL_PER_MINUTE is set above zero.

Clients are partitioned by the JWT subject when a valid bearer token is
present, otherwise by remote address. State is kept in process memory, and
idle clients are dropped once per period so the tables stay bounded.
"""

import math
import os
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional, Tuple

from fastapi import Request, status
from fastapi.responses import JSONResponse

from app.core.security import verify_token

RATE_LIMIT_SEARCH_PER_MINUTE = int(os.getenv("RATE_LIMIT_SEARCH_PER_MINUTE", "30"))
RATE_LIMIT_MUTATIONS_PER_MINUTE = int(os.getenv("RATE_LIMIT_MUTATIONS_PER_MINUTE", "10"))
RATE_LIMIT_GLOBAL_PER_MINUTE = int(os.getenv("RATE_LIMIT_GLOBAL_PER_MINUTE", "0"))

Clock = Callable[[], float]


class RateLimitExceeded(Exception):
    """Raised by a limiter dependency when the client is over its quota."""

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded, retry after {retry_after}s")


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """429 with the wait time both in the body and in Retry-After."""
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "detail": "Rate limit exceeded. Please try again later.",
            "error": "rate_limit_exceeded",
            "retry_after_seconds": exc.retry_after,
        },
        headers={"Retry-After": str(exc.retry_after)},
    )


def get_partition_key(request: Request) -> str:
    """Identify the client: "user:<sub>" for authenticated calls, "ip:<addr>" otherwise."""
    authorization = request.headers.get("Authorization", "")
    if authorization.lower().startswith("bearer "):
        try:
            payload = verify_token(authorization[7:].strip())
            if payload.get("sub"):
                return f"user:{payload['sub']}"
        except ValueError:
            pass
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


class RateLimiter:
    """
    Base class: subclasses implement `_hit` returning (allowed, retry_after_seconds)
    and `_is_idle` telling whether a client's state can be forgotten.
    """

    def __init__(
        self,
        period_seconds: float = 60.0,
        clock: Clock = time.monotonic,
        enabled: Optional[bool] = None,
    ):
        self.period_seconds = period_seconds
        self._clock = clock
        self._enabled = enabled
        self._lock = threading.Lock()
        self._state: Dict[str, object] = {}
        self._last_sweep = clock()

    @property
    def enabled(self) -> bool:
        if self._enabled is not None:
            return self._enabled
        # Bypass in the test environment, like the other request guards
        return os.getenv("TESTING") != "True"

    @property
    def client_count(self) -> int:
        return len(self._state)

    def hit(self, key: str) -> Tuple[bool, int]:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.period_seconds:
                self._sweep(now)
            return self._hit(key, now)

    def _sweep(self, now: float) -> None:
        idle = [key for key, state in self._state.items() if self._is_idle(state, now)]
        for key in idle:
            del self._state[key]
        self._last_sweep = now

    def _hit(self, key: str, now: float) -> Tuple[bool, int]:
        raise NotImplementedError

    def _is_idle(self, state, now: float) -> bool:
        raise NotImplementedError

    async def __call__(self, request: Request) -> None:
        if not self.enabled:
            return

        allowed, retry_after = self.hit(get_partition_key(request))
        if not allowed:
            raise RateLimitExceeded(retry_after)


class SlidingWindowLimiter(RateLimiter):
    """Allow at most `limit` hits in any `period_seconds` long window."""

    def __init__(self, limit: int, period_seconds: float = 60.0, **kwargs):
        super().__init__(period_seconds=period_seconds, **kwargs)
        self.limit = max(1, limit)

    def _hit(self, key: str, now: float) -> Tuple[bool, int]:
        hits: Deque[float] = self._state.setdefault(key, deque())
        while hits and hits[0] <= now - self.period_seconds:
            hits.popleft()

        if len(hits) >= self.limit:
            retry_after = hits[0] + self.period_seconds - now
            return False, max(1, math.ceil(retry_after))

        hits.append(now)
        return True, 0

    def _is_idle(self, hits, now: float) -> bool:
        return not hits or hits[-1] <= now - self.period_seconds


class TokenBucketLimiter(RateLimiter):
    """Bucket of `capacity` tokens refilled at `capacity` per `period_seconds`."""

    def __init__(self, capacity: int, period_seconds: float = 60.0, **kwargs):
        super().__init__(period_seconds=period_seconds, **kwargs)
        self.capacity = max(1, capacity)

    def _refilled(self, bucket: Tuple[float, float], now: float) -> float:
        tokens, updated = bucket
        return min(
            self.capacity,
            tokens + (now - updated) * self.capacity / self.period_seconds,
        )

    def _hit(self, key: str, now: float) -> Tuple[bool, int]:
        tokens = self._refilled(self._state.get(key, (float(self.capacity), now)), now)

        if tokens < 1:
            self._state[key] = (tokens, now)
            wait = (1 - tokens) * self.period_seconds / self.capacity
            return False, max(1, math.ceil(wait))

        self._state[key] = (tokens - 1, now)
        return True, 0

    def _is_idle(self, bucket, now: float) -> bool:
        return self._refilled(bucket, now) >= self.capacity


class FixedWindowLimiter(RateLimiter):
    """At most `limit` hits per client in each `period_seconds` window; 0 disables it."""

    def __init__(self, limit: int, period_seconds: float = 60.0, **kwargs):
        super().__init__(period_seconds=period_seconds, **kwargs)
        self.limit = limit

    @property
    def enabled(self) -> bool:
        return self.limit > 0 and super().enabled

    def _hit(self, key: str, now: float) -> Tuple[bool, int]:
        started, count = self._state.get(key, (now, 0))
        if now - started >= self.period_seconds:
            started, count = now, 0

        if count >= self.limit:
            return False, max(1, math.ceil(started + self.period_seconds - now))

        self._state[key] = (started, count + 1)
        return True, 0

    def _is_idle(self, window, now: float) -> bool:
        return now - window[0] >= self.period_seconds


search_limiter = SlidingWindowLimiter(RATE_LIMIT_SEARCH_PER_MINUTE)
mutation_limiter = TokenBucketLimiter(RATE_LIMIT_MUTATIONS_PER_MINUTE)
global_limiter = FixedWindowLimiter(RATE_LIMIT_GLOBAL_PER_MINUTE)

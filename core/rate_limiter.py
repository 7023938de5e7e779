"""
Contact Form Rate Limiter - Fixed Window Counter

Tracks submissions per client identity inside a fixed time window. Every write
request consumes quota, whatever the downstream outcome. The table is bounded:
expired windows are swept when it fills up, then the least recently seen
client is evicted.
"""

import logging
import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request

logger = logging.getLogger(__name__)


@dataclass
class RateLimitState:
    """Per-client window bookkeeping."""
    window_start: float
    count: int = 0

    def is_expired(self, now: float, window_seconds: float) -> bool:
        return now > self.window_start + window_seconds


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single admission check."""
    allowed: bool
    count: int
    limit: int
    retry_after: int = 0

    @property
    def remaining(self) -> int:
        return max(self.limit - self.count, 0)


class FixedWindowRateLimiter:
    """Thread-safe fixed-window rate limiter keyed by client identity.

    Example:
        limiter = FixedWindowRateLimiter(window_seconds=86400, max_requests=1000)
        decision = limiter.admit("203.0.113.7")
        if not decision.allowed:
            ...
    """

    def __init__(
        self,
        window_seconds: float,
        max_requests: int,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize rate limiter.

        Args:
            window_seconds: Length of each counting window
            max_requests: Requests admitted per client per window
            max_entries: Upper bound on tracked client identities
            clock: Source of the current time in seconds
        """
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.max_entries = max_entries
        self._clock = clock

        self._entries: "OrderedDict[str, RateLimitState]" = OrderedDict()
        self._lock = threading.Lock()

    def admit(self, client_id: str, now: Optional[float] = None) -> RateLimitDecision:
        """
        Count a request from a client and decide whether it may proceed.

        Args:
            client_id: Client identity (network address)
            now: Current time; defaults to the limiter's clock

        Returns:
            RateLimitDecision for this request
        """
        if now is None:
            now = self._clock()

        with self._lock:
            state = self._entries.get(client_id)

            if state is None or state.is_expired(now, self.window_seconds):
                if state is None:
                    self._make_room(now)
                state = RateLimitState(window_start=now, count=1)
                self._entries[client_id] = state
            else:
                state.count += 1

            self._entries.move_to_end(client_id)
            count = state.count
            window_end = state.window_start + self.window_seconds

        if count > self.max_requests:
            retry_after = max(math.ceil(window_end - now), 1)
            logger.info(
                f"Rate limit exceeded for {client_id}: "
                f"{count}/{self.max_requests}, retry in {retry_after}s"
            )
            return RateLimitDecision(False, count, self.max_requests, retry_after)

        return RateLimitDecision(True, count, self.max_requests)

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop every client whose window has expired. Returns the number removed."""
        if now is None:
            now = self._clock()
        with self._lock:
            return self._sweep_locked(now)

    def reset(self) -> None:
        """Forget every tracked client."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _sweep_locked(self, now: float) -> int:
        expired = [
            key for key, state in self._entries.items()
            if state.is_expired(now, self.window_seconds)
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _make_room(self, now: float) -> None:
        if len(self._entries) < self.max_entries:
            return
        removed = self._sweep_locked(now)
        if removed:
            logger.debug(f"Swept {removed} expired rate limit windows")
        while len(self._entries) >= self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted rate limit entry for {evicted}")


def get_client_ip(request: Request, trusted_proxy_hops: int = 1) -> str:
    """
    Extract the client identity from a request.

    With ``trusted_proxy_hops`` proxies in front of the service, the address
    that many hops back in X-Forwarded-For is used; a spoofed header cannot
    reach further than the trusted proxies.
    """
    peer = request.client.host if request.client else "unknown"
    if trusted_proxy_hops <= 0:
        return peer

    forwarded = request.headers.get("X-Forwarded-For")
    if not forwarded:
        return peer

    chain = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    chain.append(peer)
    index = max(len(chain) - 1 - trusted_proxy_hops, 0)
    return chain[index]

"""Fixed-window, per-identifier request limiting.

The store is a plain mutable mapping owned by the caller. Check-and-increment
for one identifier runs under a lock.
"""

import math
import threading
import time
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from typing import Callable

DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_MAX_REQUESTS = 30
DEFAULT_MAX_ENTRIES = 10_000


@dataclass
class ClientRateState:
    reset_at: float
    count: int


@dataclass(frozen=True)
class Allowed:
    allowed = True


@dataclass(frozen=True)
class Denied:
    retry_after_seconds: int
    allowed = False


RateDecision = Allowed | Denied


class FixedWindowRateLimiter:
    def __init__(
        self,
        store: MutableMapping[str, ClientRateState] | None = None,
        *,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        max_entries: int | None = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store if store is not None else {}
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.max_entries = max_entries
        self.clock = clock
        self._lock = threading.Lock()

    def check(self, identifier: str) -> RateDecision:
        with self._lock:
            now = self.clock()
            state = self.store.get(identifier)

            if state is None or state.reset_at <= now:
                self.store[identifier] = ClientRateState(reset_at=now + self.window_seconds, count=1)
                self._enforce_capacity(now, keep=identifier)
                return Allowed()

            if state.count >= self.max_requests:
                retry_after = max(1, math.ceil(state.reset_at - now))
                return Denied(retry_after_seconds=retry_after)

            state.count += 1
            return Allowed()

    def sweep(self, now: float | None = None) -> int:
        """Drop every record whose window has ended. Returns how many were dropped."""
        with self._lock:
            return self._sweep(self.clock() if now is None else now)

    def _sweep(self, now: float) -> int:
        expired = [key for key, state in self.store.items() if state.reset_at <= now]
        for key in expired:
            del self.store[key]
        return len(expired)

    def _enforce_capacity(self, now: float, keep: str) -> None:
        if self.max_entries is None or len(self.store) <= self.max_entries:
            return
        self._sweep(now)
        while len(self.store) > self.max_entries:
            oldest = min(
                (key for key in self.store if key != keep),
                key=lambda key: self.store[key].reset_at,
            )
            del self.store[oldest]


def client_identifier(headers: Mapping[str, str], peer: str | None) -> str:
    forwarded = headers.get("x-forwarded-for", "") or ""
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    return peer or ""

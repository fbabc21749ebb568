"""Primary-quota bookkeeping shared by every in-flight GitHub request."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional


@dataclass
class RateLimitState:
    remaining: Optional[int] = None
    reset_at: Optional[float] = None
    limit: Optional[int] = None

    def exhausted(self, now: float) -> bool:
        return self.remaining == 0 and self.reset_at is not None and now < self.reset_at


def _header_int(headers: Mapping[str, str], name: str) -> Optional[int]:
    raw = headers.get(name)
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


class RateLimitGovernor:
    """Blocks requests that are known in advance to hit an exhausted quota.

    `before_request` and `after_response` share one lock, so only one caller can
    observe the last remaining slot and take it.
    """

    RESET_MARGIN_SEC = 1.0

    def __init__(self,
                 clock: Callable[[], float] = time.time,
                 sleep: Callable[[float], None] = time.sleep) -> None:
        self.state = RateLimitState()
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()

    def before_request(self) -> float:
        """Wait out an exhausted quota, then reserve one request; return seconds waited."""
        waited = 0.0
        with self._lock:
            now = self._clock()
            if self.state.exhausted(now):
                waited = self.state.reset_at - now + self.RESET_MARGIN_SEC
                print(f"[rate-limit] quota exhausted; sleeping {waited:.0f}s until reset")
                self._sleep(waited)
                print("  done sleeping, resuming retrieval run...")
                self.state.remaining = self.state.limit
                self.state.reset_at = None
            if self.state.remaining is not None and self.state.remaining > 0:
                self.state.remaining -= 1
        return waited

    def after_response(self, headers: Optional[Mapping[str, str]]) -> None:
        """Record quota headers from a response; absent or unparsable headers change nothing."""
        if not headers:
            return
        remaining = _header_int(headers, "X-RateLimit-Remaining")
        reset = _header_int(headers, "X-RateLimit-Reset")
        limit = _header_int(headers, "X-RateLimit-Limit")
        if remaining is None and reset is None and limit is None:
            return
        with self._lock:
            same_window = reset is not None and self.state.reset_at is not None and float(reset) == self.state.reset_at
            if remaining is not None:
                if same_window and self.state.remaining is not None:
                    self.state.remaining = min(self.state.remaining, max(0, remaining))
                else:
                    self.state.remaining = max(0, remaining)
            if reset is not None:
                self.state.reset_at = float(reset)
            if limit is not None:
                self.state.limit = limit

    def is_exhausted(self) -> bool:
        with self._lock:
            return self.state.exhausted(self._clock())

    def snapshot(self) -> RateLimitState:
        with self._lock:
            return RateLimitState(self.state.remaining, self.state.reset_at, self.state.limit)


__all__ = ["RateLimitState", "RateLimitGovernor"]

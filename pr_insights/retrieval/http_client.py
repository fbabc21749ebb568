"""REST fetcher with caching, quota gating, and retry/backoff for the retrieval workflow."""

from __future__ import annotations

import random
import threading
import time
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

import requests

from ..errors import FetchError, PermanentFetchError, QuotaExceededError, TransientFetchError
from .cache import CacheStore, make_cache_key
from .config import BACKOFF_BASE_SEC, MAX_BACKOFF_SEC, MAX_QUOTA_WAITS, MAX_RETRIES, REQUEST_TIMEOUT, USER_AGENT
from .rate_limit import RateLimitGovernor


@dataclass(frozen=True)
class ApiResponse:
    """The parts of a GitHub response the analysis needs, in cacheable form."""

    status_code: int
    payload: Any
    next_url: Optional[str] = None
    from_cache: bool = False

    def to_cache(self) -> Dict[str, Any]:
        return {"status_code": self.status_code, "payload": self.payload, "next_url": self.next_url}

    @classmethod
    def from_cached(cls, data: Mapping[str, Any]) -> "ApiResponse":
        return cls(
            status_code=int(data.get("status_code", 200)),
            payload=data.get("payload"),
            next_url=data.get("next_url"),
            from_cache=True,
        )


class FetchState(Enum):
    ATTEMPTING = "attempting"
    BACKOFF = "backoff"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def build_session(token: Optional[str]) -> requests.Session:
    """Create a session with GitHub's v3 media type and the token attached."""
    session = requests.Session()
    session.headers.update(
        {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": USER_AGENT,
        }
    )
    if token:
        session.headers["Authorization"] = f"token {token}"
    return session


def error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = {"text": (resp.text or "")[:300]}
    if not isinstance(body, dict):
        return str(body)[:300]
    return str(body.get("message") or body.get("error") or body.get("text") or "")


def log_http_error(resp: requests.Response, url: str) -> None:
    """Print a short, human-readable message when GitHub returns an error."""
    print(f"[error] HTTP {resp.status_code} for {url}\n  -> {error_message(resp)}")


def _retry_after_seconds(headers: Mapping[str, str]) -> Optional[float]:
    raw = headers.get("Retry-After")
    if raw is None or not str(raw).strip().isdigit():
        return None
    return float(raw)


def classify_response(resp: requests.Response, url: str) -> ApiResponse:
    """Turn an HTTP response into an ApiResponse or raise the matching FetchError."""
    status = resp.status_code
    headers = resp.headers or {}

    if 200 <= status < 300:
        payload = None
        if status != 204:
            try:
                payload = resp.json()
            except ValueError as exc:
                raise PermanentFetchError(f"malformed JSON payload: {exc}", url, status) from exc
        next_url = ((resp.links or {}).get("next") or {}).get("url")
        return ApiResponse(status_code=status, payload=payload, next_url=next_url)

    message = error_message(resp)
    if status in (403, 429):
        retry_after = _retry_after_seconds(headers)
        if str(headers.get("X-RateLimit-Remaining", "")).strip() == "0" and retry_after is None:
            raise QuotaExceededError(f"HTTP {status}: primary rate limit exhausted", url, status)
        if retry_after is not None or status == 429 or "secondary rate limit" in message.lower():
            raise TransientFetchError(f"HTTP {status}: {message or 'secondary rate limit'}", url, status, retry_after)

    if status >= 500:
        raise TransientFetchError(f"HTTP {status}: {message}", url, status)

    log_http_error(resp, url)
    raise PermanentFetchError(f"HTTP {status}: {message}", url, status)


class GitHubFetcher:
    """Fetch one GitHub REST resource: cache first, then quota gate, then retries.

    The cache, governor, sleep, and jitter source are injected so several
    fetchers (or tests) can share or fake them.
    """

    def __init__(self,
                 session: requests.Session,
                 cache: Optional[CacheStore] = None,
                 governor: Optional[RateLimitGovernor] = None,
                 *,
                 max_attempts: int = MAX_RETRIES,
                 backoff_base: float = BACKOFF_BASE_SEC,
                 max_backoff: float = MAX_BACKOFF_SEC,
                 max_quota_waits: int = MAX_QUOTA_WAITS,
                 timeout: float = REQUEST_TIMEOUT,
                 sleep: Callable[[float], None] = time.sleep,
                 jitter: Callable[[float], float] = lambda base: random.uniform(0, base)) -> None:
        self.session = session
        self.cache = cache if cache is not None else CacheStore()
        self.governor = governor if governor is not None else RateLimitGovernor()
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_base = backoff_base
        self.max_backoff = max_backoff
        self.max_quota_waits = max_quota_waits
        self.timeout = timeout
        self._sleep = sleep
        self._jitter = jitter
        self.stats: Counter = Counter()
        self._stats_lock = threading.Lock()

    def _count(self, name: str) -> None:
        with self._stats_lock:
            self.stats[name] += 1

    def backoff_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Seconds to wait before retry number `attempt + 1` (attempt counts from 0)."""
        if retry_after is not None:
            return min(float(retry_after), self.max_backoff)
        delay = self.backoff_base * (2 ** attempt) + self._jitter(self.backoff_base)
        return min(delay, self.max_backoff)

    def _attempt(self, url: str, params: Optional[Mapping[str, Any]]) -> ApiResponse:
        self.governor.before_request()
        self._count("network")
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransientFetchError(f"{type(exc).__name__}: {exc}", url) from exc
        self.governor.after_response(resp.headers)
        return classify_response(resp, url)

    def fetch(self, url: str, params: Optional[Mapping[str, Any]] = None) -> ApiResponse:
        key = make_cache_key(url, params)
        cached = self.cache.get(key)
        if cached is not None:
            self._count("cache_hits")
            return ApiResponse.from_cached(cached)

        state = FetchState.ATTEMPTING
        attempt = 0
        quota_waits = 0
        response: Optional[ApiResponse] = None
        last_error: Optional[TransientFetchError] = None

        while True:
            if state is FetchState.ATTEMPTING:
                try:
                    response = self._attempt(url, params)
                    state = FetchState.SUCCEEDED
                except QuotaExceededError as exc:
                    last_error = exc
                    # The next attempt blocks in the governor until the reset.
                    if self.governor.is_exhausted() and quota_waits < self.max_quota_waits:
                        quota_waits += 1
                        print(f"[rate-limit] {url} hit the primary quota; waiting for reset")
                    else:
                        state = FetchState.BACKOFF if attempt + 1 < self.max_attempts else FetchState.FAILED
                except TransientFetchError as exc:
                    last_error = exc
                    state = FetchState.BACKOFF if attempt + 1 < self.max_attempts else FetchState.FAILED

            elif state is FetchState.BACKOFF:
                delay = self.backoff_delay(attempt, last_error.retry_after if last_error else None)
                print(f"[retry {attempt + 1}/{self.max_attempts}] {last_error} -> sleep {delay:.1f}s")
                self._sleep(delay)
                print("  done sleeping, resuming retrieval run...")
                attempt += 1
                self._count("retries")
                state = FetchState.ATTEMPTING

            elif state is FetchState.SUCCEEDED:
                self.cache.set(key, response.to_cache())
                return response

            else:
                self._count("failures")
                raise TransientFetchError(
                    f"giving up on {url} after {self.max_attempts} attempts: {last_error}",
                    url,
                    last_error.status_code if last_error else None,
                ) from last_error

    def fetch_json(self, url: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return self.fetch(url, params).payload


__all__ = [
    "ApiResponse",
    "FetchState",
    "FetchError",
    "GitHubFetcher",
    "build_session",
    "classify_response",
    "error_message",
    "log_http_error",
]

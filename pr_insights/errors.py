"""Exception hierarchy shared by the retrieval and analysis workflows."""

from __future__ import annotations

from typing import Optional


class PRInsightsError(Exception):
    """Base class for every error raised by pr_insights."""


class ConfigurationError(PRInsightsError):
    """Configuration that prevents any API access (e.g. a missing token)."""


class ConfigParseError(PRInsightsError):
    """A malformed skip-configuration line."""

    def __init__(self, line: str, reason: str) -> None:
        super().__init__(f"{reason}: {line!r}")
        self.line = line
        self.reason = reason


class FetchError(PRInsightsError):
    """A GitHub API call that did not produce a usable response."""

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class TransientFetchError(FetchError):
    """Network errors, 5xx and secondary rate limits; retried before surfacing."""

    def __init__(self,
                 message: str,
                 url: str = "",
                 status_code: Optional[int] = None,
                 retry_after: Optional[float] = None) -> None:
        super().__init__(message, url, status_code)
        self.retry_after = retry_after


class QuotaExceededError(TransientFetchError):
    """The primary hourly quota is spent; the governor waits for the reset."""


class PermanentFetchError(FetchError):
    """4xx responses (other than rate limiting) and malformed payloads."""


__all__ = [
    "PRInsightsError",
    "ConfigurationError",
    "ConfigParseError",
    "FetchError",
    "TransientFetchError",
    "QuotaExceededError",
    "PermanentFetchError",
]

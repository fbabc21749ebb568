"""Central configuration constants for the GitHub retrieval layer."""

from __future__ import annotations

import os

USER_AGENT = "pr-insights/1.0"
BASE_URL = os.getenv("GITHUB_API_URL", "https://api.github.com")
PER_PAGE = 100
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "90"))
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "6"))
BACKOFF_BASE_SEC = float(os.getenv("BACKOFF_BASE_SEC", "2"))
MAX_BACKOFF_SEC = float(os.getenv("MAX_BACKOFF_SEC", "180"))
MAX_QUOTA_WAITS = int(os.getenv("MAX_QUOTA_WAITS", "3"))
CACHE_TTL_SEC = int(os.getenv("CACHE_TTL_SEC", str(20 * 60 * 60)))
CACHE_FILENAME = "http_cache.sqlite"
MAX_PAGES_PRS = int(os.getenv("MAX_PAGES_PRS", "0"))  # 0 = no cap

__all__ = [
    "USER_AGENT",
    "BASE_URL",
    "PER_PAGE",
    "REQUEST_TIMEOUT",
    "MAX_RETRIES",
    "BACKOFF_BASE_SEC",
    "MAX_BACKOFF_SEC",
    "MAX_QUOTA_WAITS",
    "CACHE_TTL_SEC",
    "CACHE_FILENAME",
    "MAX_PAGES_PRS",
]

"""GitHub REST retrieval: cache, quota governor, retrying fetcher, and paginator."""

from .cache import CacheStore, make_cache_key
from .http_client import ApiResponse, GitHubFetcher, build_session
from .paginator import Paginator
from .rate_limit import RateLimitGovernor

__all__ = [
    "ApiResponse",
    "CacheStore",
    "GitHubFetcher",
    "Paginator",
    "RateLimitGovernor",
    "build_session",
    "make_cache_key",
]

"""Lazy iteration over paged GitHub REST endpoints."""

from __future__ import annotations

from typing import Any, Dict, Iterator, Mapping, Optional

from ..errors import PermanentFetchError
from .config import PER_PAGE
from .http_client import GitHubFetcher


class Paginator:
    """Drive a fetcher page by page, following `rel="next"` links.

    Holds no per-query state, so one instance can serve any number of
    `fetch_all` calls, including interleaved ones.
    """

    def __init__(self, fetcher: GitHubFetcher, per_page: int = PER_PAGE) -> None:
        self.fetcher = fetcher
        self.per_page = per_page

    def fetch_all(self,
                  url: str,
                  params: Optional[Mapping[str, Any]] = None,
                  *,
                  items_key: Optional[str] = None,
                  max_pages: int = 0) -> Iterator[Dict[str, Any]]:
        """Yield every item of a paged endpoint in API order.

        Stops on an empty page, a missing next link, or after `max_pages`
        pages (0 = no cap). `items_key` unwraps envelope payloads such as
        `{"total_count": 3, "workflow_runs": [...]}`.
        """
        query: Dict[str, Any] = dict(params or {})
        query.setdefault("per_page", self.per_page)
        page_url: Optional[str] = url
        page_params: Optional[Dict[str, Any]] = query
        pages = 0

        while page_url:
            if max_pages and pages >= max_pages:
                break
            response = self.fetcher.fetch(page_url, page_params)
            pages += 1

            batch = response.payload
            if items_key is not None:
                batch = (batch or {}).get(items_key) if isinstance(batch, dict) else None
            if not isinstance(batch, list):
                raise PermanentFetchError(
                    f"expected a list page from {page_url}, got {type(batch).__name__}",
                    page_url,
                    response.status_code,
                )
            if not batch:
                break

            yield from batch

            # The next link already carries every query parameter.
            page_url = response.next_url
            page_params = None


__all__ = ["Paginator"]

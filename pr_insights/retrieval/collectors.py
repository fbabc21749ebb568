"""Data collection helpers for repositories, organizations, pull requests, and workflow runs."""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, Iterator, List, Optional

from .config import BASE_URL, MAX_PAGES_PRS
from .http_client import GitHubFetcher
from .paginator import Paginator


def parse_github_timestamp(raw: Optional[str]) -> Optional[dt.datetime]:
    """Parse GitHub's `2024-11-25T10:00:00Z` format into an aware UTC datetime."""
    if not raw:
        return None
    try:
        return dt.datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return None


def split_full_name(full_name: str) -> tuple[str, str]:
    owner, _, repo = full_name.partition("/")
    return owner, repo


def list_user_repositories(paginator: Paginator, owner: str) -> List[Dict[str, Any]]:
    """Return every repository owned by `owner`."""
    url = f"{BASE_URL}/users/{owner}/repos"
    return list(paginator.fetch_all(url, {"type": "all", "sort": "updated", "direction": "desc"}))


def list_user_organizations(paginator: Paginator) -> List[Dict[str, Any]]:
    """Return the organizations the authenticated user belongs to."""
    return list(paginator.fetch_all(f"{BASE_URL}/user/orgs"))


def list_organization_repositories(paginator: Paginator, org: str) -> List[Dict[str, Any]]:
    url = f"{BASE_URL}/orgs/{org}/repos"
    return list(paginator.fetch_all(url, {"type": "all", "sort": "updated", "direction": "desc"}))


def get_repository(fetcher: GitHubFetcher, full_name: str) -> Dict[str, Any]:
    payload = fetcher.fetch_json(f"{BASE_URL}/repos/{full_name}")
    return payload if isinstance(payload, dict) else {}


def iter_pull_requests(paginator: Paginator,
                       full_name: str,
                       since: dt.datetime,
                       *,
                       max_pages: int = MAX_PAGES_PRS) -> Iterator[Dict[str, Any]]:
    """Yield pull requests created at or after `since`, newest first.

    Pages are requested sorted by creation date, so iteration stops at the
    first older pull request instead of walking the whole history.
    """
    url = f"{BASE_URL}/repos/{full_name}/pulls"
    params = {"state": "all", "sort": "created", "direction": "desc"}
    for pr in paginator.fetch_all(url, params, max_pages=max_pages):
        created_at = parse_github_timestamp(pr.get("created_at"))
        if created_at is None:
            continue
        if created_at < since:
            break
        yield pr


def get_pull_request_detail(fetcher: GitHubFetcher, full_name: str, number: int) -> Dict[str, Any]:
    """Fetch the single-PR payload, which carries additions/deletions/changed_files."""
    payload = fetcher.fetch_json(f"{BASE_URL}/repos/{full_name}/pulls/{number}")
    return payload if isinstance(payload, dict) else {}


def list_pr_commits(paginator: Paginator, full_name: str, number: int) -> List[Dict[str, Any]]:
    url = f"{BASE_URL}/repos/{full_name}/pulls/{number}/commits"
    return list(paginator.fetch_all(url))


def list_pr_reviews(paginator: Paginator, full_name: str, number: int) -> List[Dict[str, Any]]:
    url = f"{BASE_URL}/repos/{full_name}/pulls/{number}/reviews"
    return list(paginator.fetch_all(url))


def list_workflow_runs(paginator: Paginator, full_name: str, since: dt.datetime) -> List[Dict[str, Any]]:
    """Return Actions workflow runs created on or after the day of `since`."""
    url = f"{BASE_URL}/repos/{full_name}/actions/runs"
    params = {"created": f">={since.date().isoformat()}"}
    return list(paginator.fetch_all(url, params, items_key="workflow_runs"))


__all__ = [
    "parse_github_timestamp",
    "split_full_name",
    "list_user_repositories",
    "list_user_organizations",
    "list_organization_repositories",
    "get_repository",
    "iter_pull_requests",
    "get_pull_request_detail",
    "list_pr_commits",
    "list_pr_reviews",
    "list_workflow_runs",
]

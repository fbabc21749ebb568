"""Run-level settings for the pull request analysis, resolved from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from ..errors import ConfigurationError
from ..secrets import github_token_from_secrets, load_local_secrets

DEFAULT_SKIPPED_ORGS_FILE = "skipped_orgs.txt"
DEFAULT_LOOKBACK_DAYS = 90
DEFAULT_MAX_CONCURRENT_REPOS = 4


@dataclass(frozen=True)
class AnalysisSettings:
    """Resolved runtime settings for one analysis run."""

    token: str
    owner: str
    repository: Optional[str]
    analyze_all: bool
    skipped_orgs_text: Optional[str]
    skipped_orgs_file: Optional[str]
    lookback_days: int
    max_concurrent_repos: int
    fetch_pr_details: bool
    cache_dir: Optional[str]
    clean_cache: bool

    @property
    def scope(self) -> str:
        if self.analyze_all:
            return "all_repositories_and_organizations"
        return f"{self.owner}/{self.repository}"


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _int(value: Optional[str], default: int, minimum: int = 1) -> int:
    try:
        return max(minimum, int(value)) if value not in (None, "") else default
    except ValueError:
        print(f"[warn] ignoring non-integer setting {value!r}; using {default}")
        return default


def resolve_settings(env: Optional[Mapping[str, str]] = None) -> AnalysisSettings:
    """Return immutable settings; a missing token is fatal before any API access.

    `GITHUB_REPOSITORY` (`owner/name`, as set by GitHub Actions) supplies the
    owner and, when not analyzing everything, the single repository.
    """
    env = os.environ if env is None else env

    token = env.get("GITHUB_TOKEN") or github_token_from_secrets(load_local_secrets())
    if not token:
        raise ConfigurationError("GITHUB_TOKEN is required (environment or local_secrets.json)")

    owner = env.get("GITHUB_REPOSITORY_OWNER", "")
    repository = env.get("GITHUB_REPOSITORY_NAME") or None
    full_repo = env.get("GITHUB_REPOSITORY", "")
    if "/" in full_repo:
        repo_owner, _, repo_name = full_repo.partition("/")
        owner = owner or repo_owner
        repository = repository or repo_name

    analyze_all = _flag(env.get("ANALYZE_ALL_REPOS"), True)
    if not owner:
        raise ConfigurationError("GITHUB_REPOSITORY_OWNER or GITHUB_REPOSITORY must name the owner")
    if not analyze_all and not repository:
        raise ConfigurationError("a repository name is required when ANALYZE_ALL_REPOS is false")

    return AnalysisSettings(
        token=token,
        owner=owner,
        repository=repository,
        analyze_all=analyze_all,
        skipped_orgs_text=env.get("SKIPPED_ORGS"),
        skipped_orgs_file=env.get("SKIPPED_ORGS_FILE", DEFAULT_SKIPPED_ORGS_FILE),
        lookback_days=_int(env.get("LOOKBACK_DAYS"), DEFAULT_LOOKBACK_DAYS),
        max_concurrent_repos=_int(env.get("MAX_CONCURRENT_REPOS"), DEFAULT_MAX_CONCURRENT_REPOS),
        fetch_pr_details=_flag(env.get("FETCH_PR_DETAILS"), True),
        cache_dir=env.get("CACHE_DIR") or None,
        clean_cache=_flag(env.get("CLEAN_CACHE"), False),
    )


__all__ = [
    "DEFAULT_SKIPPED_ORGS_FILE",
    "DEFAULT_LOOKBACK_DAYS",
    "DEFAULT_MAX_CONCURRENT_REPOS",
    "AnalysisSettings",
    "resolve_settings",
]

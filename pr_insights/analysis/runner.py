"""Entry points for running the pull request analysis across repositories."""

from __future__ import annotations

import datetime as dt
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..errors import ConfigurationError, FetchError
from ..retrieval.cache import clean_cache, open_cache
from ..retrieval.collectors import (
    get_pull_request_detail,
    iter_pull_requests,
    list_organization_repositories,
    list_pr_commits,
    list_pr_reviews,
    list_user_organizations,
    list_user_repositories,
    list_workflow_runs,
)
from ..retrieval.http_client import GitHubFetcher, build_session
from ..retrieval.paginator import Paginator
from ..retrieval.rate_limit import RateLimitGovernor
from .aggregator import fold, merge, usage_by_pull_request
from .classifier import build_record, pr_author
from .config import AnalysisSettings, resolve_settings
from .models import AnalysisResult, Category, RepositoryFailure
from .org_filter import SkipConfig, load_skip_config, should_skip, should_skip_organization


@dataclass(frozen=True)
class RepositoryTarget:
    full_name: str
    # Organization repositories only count PRs this user took part in.
    involved_user: Optional[str] = None


def involves_user(pr: Dict[str, Any], login: str) -> bool:
    """True when `login` authored, is assigned to, or was asked to review the PR."""
    if pr_author(pr) == login:
        return True
    people = (pr.get("assignees") or []) + (pr.get("requested_reviewers") or [])
    return any((person or {}).get("login") == login for person in people)


def _failure(name: str, exc: BaseException) -> RepositoryFailure:
    return RepositoryFailure(repository=name, error_type=type(exc).__name__, message=str(exc))


def discover_repositories(paginator: Paginator,
                          settings: AnalysisSettings,
                          skip_config: SkipConfig) -> Tuple[List[RepositoryTarget], List[RepositoryFailure]]:
    """List the repositories a run covers after applying the organization filter."""
    if not settings.analyze_all:
        return [RepositoryTarget(f"{settings.owner}/{settings.repository}")], []

    targets: List[RepositoryTarget] = []
    failures: List[RepositoryFailure] = []
    seen = set()

    def _add(full_name: str, involved_user: Optional[str] = None) -> None:
        if full_name in seen:
            return
        if should_skip(full_name, skip_config):
            print(f"[skip] {full_name} (organization filter)")
            return
        seen.add(full_name)
        targets.append(RepositoryTarget(full_name, involved_user))

    print(f"Fetching all repositories for user {settings.owner}...")
    try:
        user_repos = list_user_repositories(paginator, settings.owner)
    except FetchError as exc:
        print(f"[warn] could not fetch repositories for user {settings.owner}: {exc}")
        failures.append(_failure("<user repositories>", exc))
        user_repos = []
    for repo in user_repos:
        _add(repo.get("full_name") or f"{settings.owner}/{repo.get('name')}")

    print(f"Fetching organizations for user {settings.owner}...")
    try:
        organizations = list_user_organizations(paginator)
    except FetchError as exc:
        print(f"[warn] could not fetch organizations: {exc}")
        failures.append(_failure("<organizations>", exc))
        organizations = []

    for org in organizations:
        org_name = org.get("login") or ""
        if should_skip_organization(org_name, skip_config):
            print(f"[skip] organization {org_name} (configured to skip)")
            continue
        included = skip_config.partially_skipped.get(org_name)
        if included is not None:
            print(f"Analyzing organization: {org_name} (filtered to include only: {list(included)})")
        else:
            print(f"Analyzing organization: {org_name}")
        try:
            org_repos = list_organization_repositories(paginator, org_name)
        except FetchError as exc:
            print(f"[warn] could not fetch repositories from organization {org_name}: {exc}")
            failures.append(_failure(org_name, exc))
            continue
        for repo in org_repos:
            _add(repo.get("full_name") or f"{org_name}/{repo.get('name')}", settings.owner)

    print(f"Found {len(targets)} repositories to analyze")
    return targets, failures


def _pull_request_signals(fetcher: GitHubFetcher,
                          paginator: Paginator,
                          full_name: str,
                          number: int,
                          fetch_detail: bool) -> Tuple[List[dict], List[dict], Optional[dict]]:
    """Commits, reviews, and (optionally) the detail payload; a failed call degrades to empty."""
    try:
        commits = list_pr_commits(paginator, full_name, number)
    except FetchError as exc:
        print(f"[warn] could not fetch commits for {full_name}#{number}: {exc}")
        commits = []
    try:
        reviews = list_pr_reviews(paginator, full_name, number)
    except FetchError as exc:
        print(f"[warn] could not fetch reviews for {full_name}#{number}: {exc}")
        reviews = []
    detail = None
    if fetch_detail:
        try:
            detail = get_pull_request_detail(fetcher, full_name, number)
        except FetchError as exc:
            print(f"[warn] could not fetch details for {full_name}#{number}: {exc}")
    return commits, reviews, detail


def analyze_repository(fetcher: GitHubFetcher,
                       paginator: Paginator,
                       target: RepositoryTarget,
                       since: dt.datetime,
                       *,
                       fetch_details: bool = True) -> AnalysisResult:
    """Classify and fold every in-window pull request of one repository into a partial result."""
    full_name = target.full_name
    result = AnalysisResult(scope=full_name, total_repositories=1)
    print(f"Analyzing repository: {full_name}")

    prs = list(iter_pull_requests(paginator, full_name, since))
    if target.involved_user:
        prs = [pr for pr in prs if involves_user(pr, target.involved_user)]
    if not prs:
        print(f"  Found 0 PRs in {full_name}")
        return result

    try:
        runs = list_workflow_runs(paginator, full_name, since)
    except FetchError as exc:
        print(f"[warn] could not fetch workflow runs for {full_name}: {exc}")
        runs = []
    head_shas = {
        ((pr.get("head") or {}).get("sha")): int(pr["number"])
        for pr in prs
        if (pr.get("head") or {}).get("sha")
    }
    usage = usage_by_pull_request(runs, head_shas)

    for pr in prs:
        number = int(pr["number"])
        commits, reviews, detail = _pull_request_signals(fetcher, paginator, full_name, number, fetch_details)
        record = build_record(full_name, pr, commits, reviews, detail)
        fold(result, record, usage.get(number))

    print(f"  Found {len(prs)} PRs in {full_name}")
    return result


def run_analysis(settings: AnalysisSettings,
                 fetcher: GitHubFetcher,
                 paginator: Paginator,
                 now: Optional[dt.datetime] = None) -> AnalysisResult:
    """Analyze every target repository with bounded concurrency and isolate per-repo failures."""
    now = now or dt.datetime.now(dt.timezone.utc)
    since = now - dt.timedelta(days=settings.lookback_days)
    skip_config = load_skip_config(settings.skipped_orgs_text, settings.skipped_orgs_file)

    targets, failures = discover_repositories(paginator, settings, skip_config)
    partials: Dict[str, AnalysisResult] = {}

    with ThreadPoolExecutor(max_workers=settings.max_concurrent_repos) as pool:
        futures = {
            pool.submit(analyze_repository, fetcher, paginator, target, since,
                        fetch_details=settings.fetch_pr_details): target
            for target in targets
        }
        for future in as_completed(futures):
            target = futures[future]
            try:
                partials[target.full_name] = future.result()
            except Exception as exc:
                print(f"[error] {target.full_name}: {exc}")
                failures.append(_failure(target.full_name, exc))

    result = AnalysisResult(scope=settings.scope, analyzed_at=now, period_start=since, period_end=now)
    for name in sorted(partials):
        result = merge(result, partials[name])
    result.total_repositories = len(targets)
    result.failures.extend(sorted(failures, key=lambda f: f.repository))
    return result


def print_summary(result: AnalysisResult, fetcher: Optional[GitHubFetcher] = None) -> None:
    print("\n=== SUMMARY ===")
    print(f"Total repositories analyzed: {result.total_repositories}")
    print(f"Total PRs analyzed: {result.total_prs}")
    print(f"Copilot-assisted PRs: {result.total_copilot_prs} ({result.copilot_percentage:.2f}%)")
    print(f"  review assistant: {result.total_for(Category.COPILOT_REVIEW)}")
    print(f"  coding agent: {result.total_for(Category.COPILOT_AGENT)}")
    print(f"Dependabot PRs: {result.total_for(Category.DEPENDABOT)}")
    print(f"Actions minutes on PRs: {result.total_actions_minutes}")
    if result.failures:
        print(f"Failed repositories: {len(result.failures)}")
        for failure in result.failures:
            print(f"  {failure.repository}: {failure.error_type}: {failure.message}")
    if fetcher is not None:
        print(
            f"API calls: {fetcher.stats['network']} network, {fetcher.stats['cache_hits']} cached, "
            f"{fetcher.stats['retries']} retries"
        )

    print("\n=== WEEKLY BREAKDOWN ===")
    for week in sorted(result.weeks):
        bucket = result.weeks[week]
        print(
            f"{week}: {bucket.total_prs} PRs, {bucket.copilot_assisted_prs} Copilot-assisted "
            f"({bucket.copilot_percentage:.2f}%), {bucket.count(Category.DEPENDABOT)} Dependabot "
            f"({bucket.dependabot_percentage:.2f}%)"
        )


def main(env: Optional[Mapping[str, str]] = None) -> AnalysisResult:
    """Resolve settings, run the analysis, and print a summary; exits 1 on fatal configuration."""
    try:
        settings = resolve_settings(env)
    except ConfigurationError as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    cache = open_cache(settings.cache_dir)
    if settings.clean_cache:
        clean_cache(cache)

    fetcher = GitHubFetcher(build_session(settings.token), cache, RateLimitGovernor())
    paginator = Paginator(fetcher)

    print(f"Analyzing {settings.scope} for the last {settings.lookback_days} days...")
    try:
        result = run_analysis(settings, fetcher, paginator)
    finally:
        cache.close()
    print_summary(result, fetcher)
    return result


if __name__ == "__main__":
    main()

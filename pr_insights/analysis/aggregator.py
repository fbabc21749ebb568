"""Weekly aggregation of classified pull requests and their Actions usage."""

from __future__ import annotations

import datetime as dt
import math
from typing import Any, Dict, Iterable, Mapping, Optional

from ..retrieval.collectors import parse_github_timestamp
from .models import ActionsUsage, AnalysisResult, PullRequestRecord, WeekBucket


def week_key(moment: dt.datetime) -> str:
    """ISO-8601 year-week identifier (weeks start on Monday), e.g. `2024-W48`."""
    year, week, _ = moment.isocalendar()
    return f"{year}-W{week:02d}"


def fold(result: AnalysisResult,
         record: PullRequestRecord,
         usage: Optional[ActionsUsage] = None) -> WeekBucket:
    """Add one classified pull request to its week bucket and return that bucket."""
    key = week_key(record.created_at)
    bucket = result.weeks.get(key)
    if bucket is None:
        bucket = result.weeks[key] = WeekBucket(week=key)

    bucket.total_prs += 1
    bucket.category_counts[record.category] = bucket.count(record.category) + 1
    bucket.collaborators.add(record.author)
    bucket.collaborators.update(record.assignees)
    bucket.repositories.add(record.repository)
    bucket.additions += record.additions
    bucket.deletions += record.deletions
    bucket.changed_files += record.changed_files
    if usage is not None:
        bucket.actions_runs += usage.runs
        bucket.actions_minutes += usage.minutes
    bucket.pull_requests.append({
        "repository": record.repository,
        "number": record.number,
        "title": record.title,
        "author": record.author,
        "created_at": record.created_at.isoformat(),
        "category": record.category.value,
        "copilot_assisted": record.category.copilot_assisted,
        "url": record.url,
    })
    return bucket


def _merge_bucket(target: WeekBucket, other: WeekBucket) -> None:
    target.total_prs += other.total_prs
    for category, count in other.category_counts.items():
        target.category_counts[category] = target.count(category) + count
    target.collaborators |= other.collaborators
    target.repositories |= other.repositories
    target.actions_runs += other.actions_runs
    target.actions_minutes += other.actions_minutes
    target.additions += other.additions
    target.deletions += other.deletions
    target.changed_files += other.changed_files
    target.pull_requests.extend(dict(row) for row in other.pull_requests)


def merge(left: AnalysisResult, right: AnalysisResult) -> AnalysisResult:
    """Combine two partial results into a new one; neither input is modified.

    Folding disjoint partitions of the input and merging them gives the same
    totals as folding the whole input into one result.
    """
    merged = AnalysisResult(
        scope=left.scope,
        analyzed_at=left.analyzed_at or right.analyzed_at,
        period_start=left.period_start or right.period_start,
        period_end=left.period_end or right.period_end,
        total_repositories=left.total_repositories + right.total_repositories,
        failures=list(left.failures) + list(right.failures),
    )
    for source in (left, right):
        for key, bucket in source.weeks.items():
            target = merged.weeks.get(key)
            if target is None:
                target = merged.weeks[key] = WeekBucket(week=key)
            _merge_bucket(target, bucket)
    return merged


def workflow_run_minutes(run: Mapping[str, Any]) -> int:
    """Billable-style minutes for a run: wall time rounded up to the next minute."""
    started = parse_github_timestamp(run.get("run_started_at") or run.get("created_at"))
    finished = parse_github_timestamp(run.get("updated_at"))
    if started is None or finished is None or finished <= started:
        return 0
    return math.ceil((finished - started).total_seconds() / 60)


def usage_by_pull_request(runs: Iterable[Mapping[str, Any]],
                          head_sha_to_number: Optional[Mapping[str, int]] = None) -> Dict[int, ActionsUsage]:
    """Attribute workflow runs to pull request numbers.

    A run belongs to the first pull request it references; runs without a
    reference (e.g. from forks) fall back to matching their head SHA.
    Unattributed runs are ignored.
    """
    usage: Dict[int, ActionsUsage] = {}
    for run in runs:
        refs = run.get("pull_requests") or []
        number = next((ref.get("number") for ref in refs if ref.get("number") is not None), None)
        if number is None and head_sha_to_number:
            number = head_sha_to_number.get(run.get("head_sha") or "")
        if number is None:
            continue
        usage[int(number)] = usage.get(int(number), ActionsUsage()) + ActionsUsage(1, workflow_run_minutes(run))
    return usage


__all__ = [
    "week_key",
    "fold",
    "merge",
    "workflow_run_minutes",
    "usage_by_pull_request",
]

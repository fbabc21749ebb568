"""Records produced by the analysis: classified pull requests, weekly buckets, and run results."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple


class Category(str, Enum):
    MANUAL_ONLY = "ManualOnly"
    COPILOT_REVIEW = "CopilotReview"
    COPILOT_AGENT = "CopilotAgent"
    DEPENDABOT = "Dependabot"

    @property
    def copilot_assisted(self) -> bool:
        return self in (Category.COPILOT_REVIEW, Category.COPILOT_AGENT)


@dataclass(frozen=True)
class PullRequestRecord:
    repository: str
    number: int
    author: str
    created_at: dt.datetime
    category: Category
    commits: Tuple[Dict[str, Any], ...] = ()
    reviews: Tuple[Dict[str, Any], ...] = ()
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0
    title: str = ""
    url: str = ""
    assignees: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ActionsUsage:
    runs: int = 0
    minutes: int = 0

    def __add__(self, other: "ActionsUsage") -> "ActionsUsage":
        return ActionsUsage(self.runs + other.runs, self.minutes + other.minutes)


def _percentage(part: int, whole: int) -> float:
    return part / whole * 100 if whole > 0 else 0.0


@dataclass
class WeekBucket:
    """Running totals for one ISO week; percentages are computed on read."""

    week: str
    total_prs: int = 0
    category_counts: Dict[Category, int] = field(default_factory=lambda: {c: 0 for c in Category})
    collaborators: Set[str] = field(default_factory=set)
    repositories: Set[str] = field(default_factory=set)
    actions_runs: int = 0
    actions_minutes: int = 0
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0
    pull_requests: List[Dict[str, Any]] = field(default_factory=list)

    def count(self, category: Category) -> int:
        return self.category_counts.get(category, 0)

    @property
    def copilot_assisted_prs(self) -> int:
        return self.count(Category.COPILOT_REVIEW) + self.count(Category.COPILOT_AGENT)

    @property
    def copilot_percentage(self) -> float:
        return _percentage(self.copilot_assisted_prs, self.total_prs)

    @property
    def dependabot_percentage(self) -> float:
        return _percentage(self.count(Category.DEPENDABOT), self.total_prs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_prs": self.total_prs,
            "manual_only_prs": self.count(Category.MANUAL_ONLY),
            "copilot_review_prs": self.count(Category.COPILOT_REVIEW),
            "copilot_agent_prs": self.count(Category.COPILOT_AGENT),
            "copilot_assisted_prs": self.copilot_assisted_prs,
            "copilot_percentage": round(self.copilot_percentage, 2),
            "dependabot_prs": self.count(Category.DEPENDABOT),
            "dependabot_percentage": round(self.dependabot_percentage, 2),
            "unique_collaborators": len(self.collaborators),
            "collaborators": sorted(self.collaborators),
            "repositories": sorted(self.repositories),
            "actions_runs": self.actions_runs,
            "actions_minutes": self.actions_minutes,
            "additions": self.additions,
            "deletions": self.deletions,
            "changed_files": self.changed_files,
            "pull_requests": sorted(self.pull_requests, key=lambda row: (row["repository"], row["number"])),
        }


@dataclass(frozen=True)
class RepositoryFailure:
    repository: str
    error_type: str
    message: str


@dataclass
class AnalysisResult:
    """Accumulator during a run; reporters receive it afterwards and only read it."""

    scope: str
    analyzed_at: Optional[dt.datetime] = None
    period_start: Optional[dt.datetime] = None
    period_end: Optional[dt.datetime] = None
    total_repositories: int = 0
    weeks: Dict[str, WeekBucket] = field(default_factory=dict)
    failures: List[RepositoryFailure] = field(default_factory=list)

    @property
    def total_prs(self) -> int:
        return sum(bucket.total_prs for bucket in self.weeks.values())

    def total_for(self, category: Category) -> int:
        return sum(bucket.count(category) for bucket in self.weeks.values())

    @property
    def total_copilot_prs(self) -> int:
        return sum(bucket.copilot_assisted_prs for bucket in self.weeks.values())

    @property
    def copilot_percentage(self) -> float:
        return _percentage(self.total_copilot_prs, self.total_prs)

    @property
    def total_actions_minutes(self) -> int:
        return sum(bucket.actions_minutes for bucket in self.weeks.values())

    def to_dict(self) -> Dict[str, Any]:
        def _iso(value: Optional[dt.datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "analysis_date": _iso(self.analyzed_at),
            "period_start": _iso(self.period_start),
            "period_end": _iso(self.period_end),
            "analyzed_scope": self.scope,
            "total_repositories": self.total_repositories,
            "total_prs": self.total_prs,
            "total_copilot_prs": self.total_copilot_prs,
            "total_copilot_review_prs": self.total_for(Category.COPILOT_REVIEW),
            "total_copilot_agent_prs": self.total_for(Category.COPILOT_AGENT),
            "total_dependabot_prs": self.total_for(Category.DEPENDABOT),
            "copilot_percentage": round(self.copilot_percentage, 2),
            "total_actions_minutes": self.total_actions_minutes,
            "weekly_analysis": {week: self.weeks[week].to_dict() for week in sorted(self.weeks)},
            "failed_repositories": [
                {"repository": f.repository, "error_type": f.error_type, "message": f.message}
                for f in self.failures
            ],
        }


__all__ = [
    "Category",
    "PullRequestRecord",
    "ActionsUsage",
    "WeekBucket",
    "RepositoryFailure",
    "AnalysisResult",
]

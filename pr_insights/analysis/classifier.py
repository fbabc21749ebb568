"""Pull request classification by authorship and assistance signals.

Rules are evaluated in table order and the first match wins:

1. the author is the dependency-update bot             -> Dependabot
2. a review was left by the code-review assistant      -> CopilotReview
3. the coding agent opened the PR or authored at least
   AGENT_COMMIT_THRESHOLD of its commits               -> CopilotAgent
4. anything else                                       -> ManualOnly
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..retrieval.collectors import parse_github_timestamp
from .models import Category, PullRequestRecord

DEPENDABOT_RE = re.compile(r"^dependabot(\[bot\])?$", re.IGNORECASE)
REVIEW_ASSISTANT_LOGINS = frozenset({
    "copilot-pull-request-reviewer[bot]",
    "copilot-pull-request-reviewer",
})
CODING_AGENT_LOGINS = frozenset({
    "copilot",
    "copilot-swe-agent[bot]",
    "copilot-swe-agent",
})
COAUTHOR_TRAILER_RE = re.compile(r"^co-authored-by:\s*copilot\b", re.IGNORECASE | re.MULTILINE)

# Share of commits the coding agent must author; a 50/50 split counts as agent work.
AGENT_COMMIT_THRESHOLD = 0.5


def _login(user: Optional[Dict[str, Any]]) -> str:
    return str((user or {}).get("login") or "")


def pr_author(pr: Dict[str, Any]) -> str:
    return _login(pr.get("user")) or "unknown"


def is_agent_identity(name: str) -> bool:
    return name.lower() in CODING_AGENT_LOGINS


def is_agent_commit(commit: Dict[str, Any]) -> bool:
    """True when the commit was written by the coding agent or carries its co-author trailer."""
    details = commit.get("commit") or {}
    candidates = [
        _login(commit.get("author")),
        _login(commit.get("committer")),
        str((details.get("author") or {}).get("name") or ""),
    ]
    if any(is_agent_identity(name) for name in candidates if name):
        return True
    return bool(COAUTHOR_TRAILER_RE.search(details.get("message") or ""))


def agent_commit_share(commits: Sequence[Dict[str, Any]]) -> float:
    if not commits:
        return 0.0
    return sum(1 for c in commits if is_agent_commit(c)) / len(commits)


def _is_dependabot(pr, commits, reviews) -> bool:
    return bool(DEPENDABOT_RE.match(pr_author(pr)))


def _has_assistant_review(pr, commits, reviews) -> bool:
    return any(_login(review.get("user")).lower() in REVIEW_ASSISTANT_LOGINS for review in reviews)


def _is_agent_authored(pr, commits, reviews) -> bool:
    if is_agent_identity(pr_author(pr)):
        return True
    return bool(commits) and agent_commit_share(commits) >= AGENT_COMMIT_THRESHOLD


Rule = Callable[[Dict[str, Any], Sequence[Dict[str, Any]], Sequence[Dict[str, Any]]], bool]

CLASSIFICATION_RULES: List[Tuple[Category, Rule]] = [
    (Category.DEPENDABOT, _is_dependabot),
    (Category.COPILOT_REVIEW, _has_assistant_review),
    (Category.COPILOT_AGENT, _is_agent_authored),
]


def classify(pr: Dict[str, Any],
             commits: Sequence[Dict[str, Any]] = (),
             reviews: Sequence[Dict[str, Any]] = ()) -> Category:
    for category, rule in CLASSIFICATION_RULES:
        if rule(pr, commits, reviews):
            return category
    return Category.MANUAL_ONLY


def build_record(repository: str,
                 pr: Dict[str, Any],
                 commits: Sequence[Dict[str, Any]] = (),
                 reviews: Sequence[Dict[str, Any]] = (),
                 detail: Optional[Dict[str, Any]] = None) -> PullRequestRecord:
    """Classify a raw pull request and freeze it into a PullRequestRecord.

    Diff statistics come from `detail` (the single-PR payload) when the list
    payload lacks them.
    """
    created_at = parse_github_timestamp(pr.get("created_at"))
    if created_at is None:
        raise ValueError(f"pull request {repository}#{pr.get('number')} has no created_at")
    stats = {**pr, **(detail or {})}
    return PullRequestRecord(
        repository=repository,
        number=int(pr.get("number") or 0),
        author=pr_author(pr),
        created_at=created_at,
        category=classify(pr, commits, reviews),
        commits=tuple(commits),
        reviews=tuple(reviews),
        additions=int(stats.get("additions") or 0),
        deletions=int(stats.get("deletions") or 0),
        changed_files=int(stats.get("changed_files") or 0),
        title=str(pr.get("title") or ""),
        url=str(pr.get("html_url") or ""),
        assignees=tuple(_login(a) for a in (pr.get("assignees") or []) if _login(a)),
    )


__all__ = [
    "AGENT_COMMIT_THRESHOLD",
    "CLASSIFICATION_RULES",
    "CODING_AGENT_LOGINS",
    "REVIEW_ASSISTANT_LOGINS",
    "agent_commit_share",
    "build_record",
    "classify",
    "is_agent_commit",
    "pr_author",
]

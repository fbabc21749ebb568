"""Tests for pr_insights.analysis.aggregator covering week keys, folding, and merging.

Run with coverage:
    pytest tests/test_aggregator.py --maxfail=1 -v --cov=pr_insights.analysis.aggregator --cov-report=term-missing
"""

import datetime as dt

import pytest

from pr_insights.analysis import aggregator
from pr_insights.analysis.models import ActionsUsage, AnalysisResult, Category, PullRequestRecord, WeekBucket

UTC = dt.timezone.utc


def _record(number, category=Category.MANUAL_ONLY, created=dt.datetime(2024, 11, 25, 9, tzinfo=UTC),
            author="alice", repository="o/r", additions=1):
    return PullRequestRecord(
        repository=repository,
        number=number,
        author=author,
        created_at=created,
        category=category,
        additions=additions,
        deletions=1,
        changed_files=1,
        title=f"PR {number}",
    )


@pytest.mark.parametrize("moment, expected", [
    (dt.datetime(2024, 11, 25, tzinfo=UTC), "2024-W48"),
    (dt.datetime(2024, 12, 1, 23, 59, tzinfo=UTC), "2024-W48"),
    (dt.datetime(2024, 12, 2, tzinfo=UTC), "2024-W49"),
    (dt.datetime(2024, 12, 30, tzinfo=UTC), "2025-W01"),
    (dt.datetime(2021, 1, 3, tzinfo=UTC), "2020-W53"),
])
def test_week_key_follows_iso_weeks(moment, expected):
    assert aggregator.week_key(moment) == expected


def test_fold_updates_bucket_counters():
    result = AnalysisResult(scope="test")
    aggregator.fold(result, _record(1, Category.COPILOT_AGENT, author="Copilot"), ActionsUsage(2, 7))
    aggregator.fold(result, _record(2, Category.COPILOT_REVIEW, author="bob", repository="o/other"))
    aggregator.fold(result, _record(3, Category.DEPENDABOT, author="dependabot[bot]"))
    bucket = aggregator.fold(result, _record(4, author="alice"), ActionsUsage(1, 3))

    assert list(result.weeks) == ["2024-W48"]
    assert bucket.total_prs == 4
    assert bucket.copilot_assisted_prs == 2
    assert bucket.copilot_percentage == 50.0
    assert bucket.dependabot_percentage == 25.0
    assert bucket.collaborators == {"Copilot", "bob", "dependabot[bot]", "alice"}
    assert bucket.repositories == {"o/r", "o/other"}
    assert (bucket.actions_runs, bucket.actions_minutes) == (3, 10)
    assert len(bucket.pull_requests) == 4


def test_total_per_week_matches_record_weeks():
    records = [
        _record(1, created=dt.datetime(2024, 11, 25, tzinfo=UTC)),
        _record(2, created=dt.datetime(2024, 11, 27, tzinfo=UTC)),
        _record(3, created=dt.datetime(2024, 12, 3, tzinfo=UTC)),
    ]
    result = AnalysisResult(scope="test")
    for record in records:
        aggregator.fold(result, record)
    for week, bucket in result.weeks.items():
        assert bucket.total_prs == sum(1 for r in records if aggregator.week_key(r.created_at) == week)
    assert result.total_prs == 3


def test_empty_week_has_zero_percentages():
    bucket = WeekBucket(week="2024-W01")
    assert bucket.copilot_percentage == 0
    assert bucket.dependabot_percentage == 0
    assert bucket.to_dict()["copilot_percentage"] == 0
    assert AnalysisResult(scope="empty").copilot_percentage == 0


def test_merging_partitions_equals_folding_everything():
    records = [
        _record(1, Category.COPILOT_AGENT, author="Copilot"),
        _record(2, Category.MANUAL_ONLY, author="bob", repository="o/b"),
        _record(3, Category.DEPENDABOT, created=dt.datetime(2024, 12, 4, tzinfo=UTC), author="dependabot[bot]"),
        _record(4, Category.COPILOT_REVIEW, created=dt.datetime(2024, 12, 5, tzinfo=UTC), repository="o/b"),
    ]
    usage = {1: ActionsUsage(1, 5), 3: ActionsUsage(2, 4)}

    whole = AnalysisResult(scope="s")
    for record in records:
        aggregator.fold(whole, record, usage.get(record.number))

    left, right = AnalysisResult(scope="s"), AnalysisResult(scope="s")
    for record in records[::2]:
        aggregator.fold(left, record, usage.get(record.number))
    for record in records[1::2]:
        aggregator.fold(right, record, usage.get(record.number))

    merged = aggregator.merge(left, right)
    assert merged.to_dict()["weekly_analysis"] == whole.to_dict()["weekly_analysis"]
    assert aggregator.merge(right, left).to_dict()["weekly_analysis"] == whole.to_dict()["weekly_analysis"]


def test_merge_leaves_inputs_untouched():
    left = AnalysisResult(scope="s", total_repositories=1)
    right = AnalysisResult(scope="s", total_repositories=1)
    aggregator.fold(left, _record(1))
    aggregator.fold(right, _record(2))
    merged = aggregator.merge(left, right)
    assert merged.total_repositories == 2
    assert merged.weeks["2024-W48"].total_prs == 2
    assert left.weeks["2024-W48"].total_prs == 1
    assert right.weeks["2024-W48"].total_prs == 1


def test_workflow_run_minutes_round_up():
    run = {"run_started_at": "2024-11-25T10:00:00Z", "updated_at": "2024-11-25T10:02:01Z"}
    assert aggregator.workflow_run_minutes(run) == 3
    assert aggregator.workflow_run_minutes({"updated_at": "2024-11-25T10:00:00Z"}) == 0


def test_usage_by_pull_request_attributes_runs():
    runs = [
        {"pull_requests": [{"number": 5}], "run_started_at": "2024-11-25T10:00:00Z", "updated_at": "2024-11-25T10:01:00Z"},
        {"pull_requests": [{"number": 5}, {"number": 6}], "run_started_at": "2024-11-25T10:00:00Z",
         "updated_at": "2024-11-25T10:04:30Z"},
        {"pull_requests": [], "head_sha": "abc", "run_started_at": "2024-11-25T10:00:00Z",
         "updated_at": "2024-11-25T10:02:00Z"},
        {"pull_requests": [], "head_sha": "zzz"},
    ]
    usage = aggregator.usage_by_pull_request(runs, {"abc": 9})
    assert usage == {5: ActionsUsage(2, 6), 9: ActionsUsage(1, 2)}


def test_result_to_dict_is_sorted_and_json_ready():
    result = AnalysisResult(scope="s", analyzed_at=dt.datetime(2024, 12, 10, tzinfo=UTC))
    aggregator.fold(result, _record(2, created=dt.datetime(2024, 12, 3, tzinfo=UTC), author="zed"))
    aggregator.fold(result, _record(1, author="amy"))
    data = result.to_dict()
    assert list(data["weekly_analysis"]) == ["2024-W48", "2024-W49"]
    assert data["analysis_date"] == "2024-12-10T00:00:00+00:00"
    assert data["weekly_analysis"]["2024-W48"]["collaborators"] == ["amy"]
    assert data["failed_repositories"] == []

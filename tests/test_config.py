"""Tests for configuration: retrieval constants, run settings, and the secrets loader.

Run with coverage to validate configuration handling:
    pytest tests/test_config.py --maxfail=1 -v --cov=pr_insights.analysis.config --cov-report=term-missing
"""

import json
from importlib import reload

import pytest

import pr_insights.retrieval.config as retrieval_config
from pr_insights import secrets
from pr_insights.analysis.config import resolve_settings
from pr_insights.errors import ConfigurationError


@pytest.fixture(autouse=True)
def _no_local_secrets(monkeypatch, tmp_path):
    monkeypatch.setenv("LOCAL_SECRETS_FILE", str(tmp_path / "absent.json"))


def test_retrieval_defaults_are_present():
    assert retrieval_config.PER_PAGE > 0
    assert retrieval_config.BACKOFF_BASE_SEC >= 1
    assert retrieval_config.CACHE_TTL_SEC == 20 * 60 * 60
    assert retrieval_config.USER_AGENT.startswith("pr-insights")


def test_env_override_for_max_retries(monkeypatch):
    monkeypatch.setenv("MAX_RETRIES", "9")
    reloaded = reload(retrieval_config)
    try:
        assert reloaded.MAX_RETRIES == 9
    finally:
        monkeypatch.delenv("MAX_RETRIES", raising=False)
        reload(retrieval_config)


def test_missing_token_is_fatal():
    with pytest.raises(ConfigurationError):
        resolve_settings({"GITHUB_REPOSITORY_OWNER": "me"})


def test_defaults_analyze_everything():
    settings = resolve_settings({"GITHUB_TOKEN": "t", "GITHUB_REPOSITORY_OWNER": "me"})
    assert settings.analyze_all is True
    assert settings.scope == "all_repositories_and_organizations"
    assert settings.lookback_days == 90
    assert settings.max_concurrent_repos == 4
    assert settings.skipped_orgs_text is None
    assert settings.skipped_orgs_file == "skipped_orgs.txt"
    assert settings.clean_cache is False


def test_single_repository_from_github_repository():
    settings = resolve_settings({
        "GITHUB_TOKEN": "t",
        "GITHUB_REPOSITORY": "me/project",
        "ANALYZE_ALL_REPOS": "false",
        "SKIPPED_ORGS": "org1",
        "LOOKBACK_DAYS": "30",
        "CLEAN_CACHE": "true",
    })
    assert settings.owner == "me"
    assert settings.repository == "project"
    assert settings.scope == "me/project"
    assert settings.skipped_orgs_text == "org1"
    assert settings.lookback_days == 30
    assert settings.clean_cache is True


def test_single_repository_requires_a_name():
    with pytest.raises(ConfigurationError):
        resolve_settings({"GITHUB_TOKEN": "t", "GITHUB_REPOSITORY_OWNER": "me", "ANALYZE_ALL_REPOS": "false"})


def test_bad_integer_falls_back_to_default(capsys):
    settings = resolve_settings({"GITHUB_TOKEN": "t", "GITHUB_REPOSITORY_OWNER": "me", "MAX_CONCURRENT_REPOS": "many"})
    assert settings.max_concurrent_repos == 4
    assert "non-integer" in capsys.readouterr().out


def test_token_from_local_secrets(monkeypatch, tmp_path):
    path = tmp_path / "local_secrets.json"
    path.write_text(json.dumps({"github_tokens": ["", "from-file"]}), encoding="utf-8")
    monkeypatch.setenv("LOCAL_SECRETS_FILE", str(path))
    settings = resolve_settings({"GITHUB_REPOSITORY_OWNER": "me"})
    assert settings.token == "from-file"


def test_load_local_secrets_handles_missing_and_invalid(tmp_path, capsys):
    assert secrets.load_local_secrets(tmp_path / "nope.json") == {}
    bad = tmp_path / "bad.json"
    bad.write_text("{", encoding="utf-8")
    assert secrets.load_local_secrets(bad) == {}
    assert "could not read" in capsys.readouterr().out
    listing = tmp_path / "list.json"
    listing.write_text("[1, 2]", encoding="utf-8")
    assert secrets.load_local_secrets(listing) == {}


def test_github_token_from_secrets_variants():
    assert secrets.github_token_from_secrets({"github_tokens": "solo"}) == "solo"
    assert secrets.github_token_from_secrets({"github_token": "single"}) == "single"
    assert secrets.github_token_from_secrets({}) is None

"""Organization filtering: which repositories a run is allowed to analyze.

Configuration text has one entry per line:

    # comment
    some-org                          skip every repository of some-org
    other-org:include:repo-a,repo-b   skip other-org except repo-a and repo-b

Blank lines and `#` comments are ignored; surrounding whitespace and stray
carriage returns are stripped from every token.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..errors import ConfigParseError

INCLUDE_MARKER = ":include:"


@dataclass(frozen=True)
class SkipConfig:
    fully_skipped: Tuple[str, ...] = ()
    partially_skipped: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.fully_skipped and not self.partially_skipped


def _parse_include_line(line: str) -> Tuple[str, List[str]]:
    org_part, _, repo_part = line.partition(INCLUDE_MARKER)
    org_name = org_part.strip()
    repos = [repo.strip() for repo in repo_part.split(",") if repo.strip()]
    if not org_name:
        raise ConfigParseError(line, "missing organization name")
    if not repos:
        raise ConfigParseError(line, "empty include list")
    return org_name, repos


def parse_skip_config(text: Optional[str]) -> SkipConfig:
    """Parse skip-configuration text; malformed lines are reported and skipped."""
    fully: List[str] = []
    partial: Dict[str, List[str]] = {}

    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if INCLUDE_MARKER in line:
            try:
                org_name, repos = _parse_include_line(line)
            except ConfigParseError as exc:
                print(f"[warn] ignoring skip config line: {exc}")
                continue
            merged = partial.setdefault(org_name, [])
            merged.extend(repo for repo in repos if repo not in merged)
            continue
        if line not in fully:
            fully.append(line)

    return SkipConfig(
        fully_skipped=tuple(fully),
        partially_skipped={org: tuple(repos) for org, repos in partial.items()},
    )


def load_skip_config(env_text: Optional[str] = None, file_path: Optional[str] = None) -> SkipConfig:
    """Build the run's SkipConfig; the environment text wins over the file.

    With neither source available the result skips nothing.
    """
    if env_text:
        config = parse_skip_config(env_text)
        source = "SKIPPED_ORGS"
    elif file_path and os.path.exists(file_path):
        try:
            with open(file_path, "r", encoding="utf-8") as fh:
                config = parse_skip_config(fh.read())
        except OSError as exc:
            print(f"[warn] could not read skip config {file_path}: {exc}")
            return SkipConfig()
        source = file_path
    else:
        print("No skipped organizations configured")
        return SkipConfig()

    print(
        f"Loaded organization filters from {source}: "
        f"{len(config.fully_skipped)} fully skipped, {len(config.partially_skipped)} partially filtered"
    )
    return config


def should_skip_organization(org_name: str, config: SkipConfig) -> bool:
    """True only for organizations skipped entirely (their repositories need not be listed)."""
    return bool(org_name) and org_name in config.fully_skipped


def should_skip(full_repo_name: str, config: SkipConfig) -> bool:
    """Decide whether `org/repo` is excluded; names without an org segment are never skipped."""
    if "/" not in full_repo_name:
        return False
    org_name, _, repo_name = full_repo_name.partition("/")
    if org_name in config.fully_skipped:
        return True
    included = config.partially_skipped.get(org_name)
    if included is not None:
        return repo_name not in included
    return False


__all__ = [
    "SkipConfig",
    "parse_skip_config",
    "load_skip_config",
    "should_skip",
    "should_skip_organization",
]

"""Convenience shim to run the pull request analysis."""

from __future__ import annotations

from pr_insights.analysis.runner import main


if __name__ == "__main__":
    main()

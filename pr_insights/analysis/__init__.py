"""Pull request classification and weekly aggregation."""

from .runner import main, run_analysis

__all__ = ["main", "run_analysis"]

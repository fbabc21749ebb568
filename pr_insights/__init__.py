"""Weekly pull request metrics for GitHub repositories and organizations."""

__version__ = "1.0.0"

"""Correlate AI coding-agent sessions with git history to measure ROI."""

__version__ = "0.2.0"

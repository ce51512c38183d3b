"""Services for claude-roi."""

from claude_roi.services.correlator import MatchStrategy, correlate_sessions
from claude_roi.services.git_analyzer import analyze_git_repo, get_git_user, parse_git_log
from claude_roi.services.metrics import compute_metrics
from claude_roi.services.session_cache import SessionCache
from claude_roi.services.session_parser import parse_all_projects, parse_session_file
from claude_roi.services.survival import compute_line_survival

__all__ = [
    "MatchStrategy",
    "correlate_sessions",
    "analyze_git_repo",
    "get_git_user",
    "parse_git_log",
    "compute_metrics",
    "SessionCache",
    "parse_all_projects",
    "parse_session_file",
    "compute_line_survival",
]

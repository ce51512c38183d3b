"""Type definitions for claude-roi."""

from claude_roi.types.sessions import CostBreakdown, Session, TokenUsage
from claude_roi.types.commits import Commit, FileChange, RepoHistory
from claude_roi.types.report import (
    BucketStats,
    CorrelatedSession,
    CorrelationResult,
    DailyStats,
    Grade,
    Heatmap,
    Insight,
    InsightType,
    LineSurvival,
    MetricsReport,
    ModelStats,
    PeriodStats,
    ProjectStats,
    ReportMeta,
    Summary,
    TokenAnalytics,
)

__all__ = [
    "CostBreakdown",
    "Session",
    "TokenUsage",
    "Commit",
    "FileChange",
    "RepoHistory",
    "BucketStats",
    "CorrelatedSession",
    "CorrelationResult",
    "DailyStats",
    "Grade",
    "Heatmap",
    "Insight",
    "InsightType",
    "LineSurvival",
    "MetricsReport",
    "ModelStats",
    "PeriodStats",
    "ProjectStats",
    "ReportMeta",
    "Summary",
    "TokenAnalytics",
]

"""Fold correlated sessions and organic commits into the metrics report."""

import logging
import os
from dataclasses import replace
from datetime import datetime, timezone, tzinfo
from typing import Mapping, Optional

from claude_roi.services.insights import generate_insights
from claude_roi.services.survival import compute_survival_by_repo
from claude_roi.types import (
    BucketStats,
    CorrelatedSession,
    CorrelationResult,
    DailyStats,
    Grade,
    Heatmap,
    MetricsReport,
    ModelStats,
    PeriodStats,
    ProjectStats,
    RepoHistory,
    ReportMeta,
    Summary,
    TokenAnalytics,
)
from claude_roi.utils.date_grouping import (
    DatePeriod,
    get_periods,
    heatmap_cell,
    local_date_key,
)
from claude_roi.utils.pricing import (
    VERSIONED_PRICING,
    PricingTable,
    get_model_family,
    usage_cost,
)

logger = logging.getLogger(__name__)

UNKNOWN_FAMILY = "unknown"

# (grade, max cost per commit, min survival rate); checked best first
GRADE_THRESHOLDS = (
    (Grade.A, 2.0, 90),
    (Grade.B, 5.0, 75),
    (Grade.C, 15.0, 50),
    (Grade.D, 40.0, 25),
)

# (label, max message count); None means unbounded
SESSION_BUCKETS = (
    ("1-50", 50),
    ("51-100", 100),
    ("101-200", 200),
    ("200+", None),
)

# Floor for the commits-per-dollar denominator when ranking days
MIN_DAY_COST = 0.01


def compute_efficiency_grade(cost_per_commit: float, survival_rate: float) -> Grade:
    for grade, max_cost, min_survival in GRADE_THRESHOLDS:
        if cost_per_commit <= max_cost and survival_rate >= min_survival:
            return grade
    return Grade.F


def compute_session_grade(cs: CorrelatedSession, survival_rate: float) -> Grade:
    """Grade a session; one without commits is always F."""
    if cs.cost_per_commit is None:
        return Grade.F
    return compute_efficiency_grade(cs.cost_per_commit, survival_rate)


def compute_metrics(
    result: CorrelationResult,
    commits_by_repo: Mapping[str, RepoHistory],
    days: Optional[int] = None,
    pricing: PricingTable = VERSIONED_PRICING,
    tz: Optional[tzinfo] = None,
    now: Optional[datetime] = None,
    git_user: Optional[dict[str, str]] = None,
) -> MetricsReport:
    """Build the full report. Calendar keys use ``tz`` (local time when None)."""
    overall_survival, repo_survival = compute_survival_by_repo(commits_by_repo)

    sessions = [
        replace(cs, grade=compute_session_grade(
            cs,
            repo_survival.get(cs.session.repo_path, overall_survival).survival_rate,
        ))
        for cs in result.sessions
    ]

    daily = _daily(sessions, tz)
    summary = _summary(sessions, result, overall_survival.survival_rate, daily)
    model_breakdown = _model_breakdown(sessions, pricing)
    session_buckets = _session_buckets(sessions)

    report = MetricsReport(
        meta=ReportMeta(
            generated_at=datetime.now(timezone.utc),
            days_analyzed=days,
            default_branches={
                os.path.basename(repo.rstrip("/")) or repo: history.default_branch
                for repo, history in commits_by_repo.items()
                if history.default_branch
            },
            git_user=dict(git_user or {}),
        ),
        summary=summary,
        insights=generate_insights(summary, sessions, model_breakdown, session_buckets),
        daily=daily,
        projects=_projects(sessions),
        sessions=sessions,
        model_breakdown=model_breakdown,
        tool_breakdown=_tool_breakdown(sessions),
        session_buckets=session_buckets,
        line_survival=overall_survival,
        heatmap=_heatmap(sessions, tz),
        periods=_periods(sessions, now, tz),
        token_analytics=_token_analytics(sessions),
        organic_commits=list(result.organic_commits),
    )
    logger.debug("Computed metrics for %d sessions, %d commits",
                 summary.total_sessions, summary.total_commits)
    return report


def _summary(sessions: list[CorrelatedSession], result: CorrelationResult,
             survival_rate: int, daily: list[DailyStats]) -> Summary:
    summary = Summary(
        total_cost=sum(cs.session.cost.total_cost for cs in sessions),
        total_sessions=len(sessions),
        total_commits=sum(cs.commit_count for cs in sessions),
        total_lines_added=sum(cs.lines_added for cs in sessions),
        total_lines_deleted=sum(cs.lines_deleted for cs in sessions),
        total_files_changed=len({
            (cs.session.repo_path, f.path)
            for cs in sessions for c in cs.commits for f in c.files
        }),
        total_input_tokens=sum(cs.session.usage.input_tokens for cs in sessions),
        total_output_tokens=sum(cs.session.usage.output_tokens for cs in sessions),
        orphaned_sessions=sum(1 for cs in sessions if cs.is_orphaned),
        line_survival_rate=survival_rate,
        total_commits_on_default_branch=sum(cs.commits_on_default_branch for cs in sessions),
        organic_commit_count=len(result.organic_commits),
    )
    if summary.avg_cost_per_commit is not None:
        summary.overall_grade = compute_efficiency_grade(summary.avg_cost_per_commit, survival_rate)

    productive_days = [d for d in daily if d.commits > 0]
    if productive_days:
        summary.best_day = max(productive_days, key=_commits_per_dollar)
        summary.worst_day = min(productive_days, key=_commits_per_dollar)
    return summary


def _commits_per_dollar(day: DailyStats) -> float:
    return day.commits / max(day.cost, MIN_DAY_COST)


def _daily(sessions: list[CorrelatedSession], tz: Optional[tzinfo]) -> list[DailyStats]:
    days: dict[str, DailyStats] = {}
    for cs in sessions:
        key = local_date_key(cs.session.start_time, tz)
        day = days.setdefault(key, DailyStats(date=key))
        day.cost += cs.session.cost.total_cost
        day.sessions += 1
        day.commits += cs.commit_count
        day.lines_added += cs.lines_added
        day.lines_deleted += cs.lines_deleted
    return [days[k] for k in sorted(days)]


def _model_breakdown(sessions: list[CorrelatedSession],
                     pricing: PricingTable) -> dict[str, ModelStats]:
    """Per-family tokens and cost; sessions and commits split by token share."""
    families: dict[str, ModelStats] = {}
    for cs in sessions:
        session = cs.session
        total_tokens = session.total_tokens
        if total_tokens <= 0:
            family = get_model_family(session.model) or UNKNOWN_FAMILY
            stats = families.setdefault(family, ModelStats())
            stats.cost += session.cost.total_cost
            stats.sessions += 1
            stats.commits += cs.commit_count
            continue

        for model, usage in session.model_usage.items():
            family = get_model_family(model) or UNKNOWN_FAMILY
            stats = families.setdefault(family, ModelStats())
            share = usage.total / total_tokens
            stats.tokens += usage.total
            stats.cost += usage_cost(usage, model, pricing).total_cost
            stats.sessions += share
            stats.commits += share * cs.commit_count

    return dict(sorted(families.items()))


def _tool_breakdown(sessions: list[CorrelatedSession]) -> dict[str, int]:
    tools: dict[str, int] = {}
    for cs in sessions:
        for tool, count in cs.session.tool_calls.items():
            tools[tool] = tools.get(tool, 0) + count
    return dict(sorted(tools.items(), key=lambda kv: (-kv[1], kv[0])))


def _bucket_label(message_count: int) -> str:
    for label, upper in SESSION_BUCKETS:
        if upper is None or message_count <= upper:
            return label
    return SESSION_BUCKETS[-1][0]


def _session_buckets(sessions: list[CorrelatedSession]) -> dict[str, BucketStats]:
    buckets = {label: BucketStats() for label, _ in SESSION_BUCKETS}
    for cs in sessions:
        bucket = buckets[_bucket_label(cs.session.message_count)]
        bucket.sessions += 1
        bucket.cost += cs.session.cost.total_cost
        bucket.commits += cs.commit_count
    return buckets


def _heatmap(sessions: list[CorrelatedSession], tz: Optional[tzinfo]) -> Heatmap:
    heatmap = Heatmap()
    for cs in sessions:
        for commit in cs.commits:
            day, hour = heatmap_cell(commit.timestamp, tz)
            heatmap.commits[day][hour] += 1
        day, hour = heatmap_cell(cs.session.start_time, tz)
        heatmap.cost[day][hour] += cs.session.cost.total_cost
    return heatmap


def _projects(sessions: list[CorrelatedSession]) -> list[ProjectStats]:
    projects: dict[str, ProjectStats] = {}
    for cs in sessions:
        key = cs.session.repo_path or UNKNOWN_FAMILY
        project = projects.get(key)
        if project is None:
            name = cs.session.project_name or os.path.basename(key.rstrip("/")) or key
            project = projects[key] = ProjectStats(repo_path=key, repo_name=name)
        project.total_cost += cs.session.cost.total_cost
        project.sessions += 1
        project.commits += cs.commit_count
        project.lines_added += cs.lines_added
        project.commits_on_default_branch += cs.commits_on_default_branch
    return sorted(projects.values(), key=lambda p: (-p.total_cost, p.repo_path))


def _periods(sessions: list[CorrelatedSession], now: Optional[datetime],
             tz: Optional[tzinfo]) -> list[PeriodStats]:
    periods = {p: PeriodStats(label=p.value) for p in DatePeriod}
    for cs in sessions:
        for period in get_periods(cs.session.start_time, now=now, tz=tz):
            stats = periods[period]
            stats.cost += cs.session.cost.total_cost
            stats.sessions += 1
            stats.commits += cs.commit_count
    return list(periods.values())


def _token_analytics(sessions: list[CorrelatedSession]) -> TokenAnalytics:
    analytics = TokenAnalytics()
    for cs in sessions:
        tokens = cs.session.total_tokens
        if cs.commits:
            analytics.productive_tokens += tokens
            analytics.total_commits += cs.commit_count
        elif cs.is_orphaned:
            analytics.orphaned_tokens += tokens
        else:
            analytics.exploratory_tokens += tokens
    return analytics

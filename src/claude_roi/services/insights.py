"""Natural-language observations drawn from computed metrics.

Each rule is independent and only fires when its condition holds; output order
is evaluation order.
"""

import math

from claude_roi.types import (
    BucketStats,
    CorrelatedSession,
    Insight,
    InsightType,
    ModelStats,
    Summary,
)

COST_CONCENTRATION_SHARE = 0.2
COST_CONCENTRATION_MIN_PCT = 60
UNCOMMITTED_MIN_PCT = 20


def generate_insights(
    summary: Summary,
    sessions: list[CorrelatedSession],
    model_breakdown: dict[str, ModelStats],
    session_buckets: dict[str, BucketStats],
) -> list[Insight]:
    insights: list[Insight] = []
    insights.extend(_orphaned_rate(sessions))
    insights.extend(_model_comparison(model_breakdown))
    insights.extend(_session_sweet_spot(session_buckets))
    insights.extend(_best_and_worst_day(summary))
    insights.extend(_default_branch_share(summary))
    insights.extend(_cost_concentration(summary, sessions))
    insights.extend(_average_duration(sessions))
    insights.extend(_commit_delay(sessions))
    insights.extend(_uncommitted_files(sessions))
    return insights


def _orphaned_rate(sessions: list[CorrelatedSession]) -> list[Insight]:
    orphaned = sum(1 for cs in sessions if cs.is_orphaned)
    if not orphaned:
        return []
    pct = round(orphaned / len(sessions) * 100)
    return [Insight(
        InsightType.WARNING,
        f"{pct}% of your sessions ({orphaned}/{len(sessions)}) produced zero commits, "
        f"potential wasted effort.",
    )]


def _model_comparison(model_breakdown: dict[str, ModelStats]) -> list[Insight]:
    priced = [(name, stats.avg_cost_per_commit)
              for name, stats in model_breakdown.items()
              if stats.sessions > 0]
    if len(priced) < 2:
        return []
    priced = [(name, cost) for name, cost in priced if cost]
    if len(priced) < 2:
        return []
    priced.sort(key=lambda item: item[1])
    (best, best_cost), (worst, worst_cost) = priced[0], priced[-1]
    return [Insight(
        InsightType.INFO,
        f"{worst.capitalize()} sessions cost {worst_cost / best_cost:.1f}x more per commit "
        f"than {best.capitalize()}.",
    )]


def _session_sweet_spot(session_buckets: dict[str, BucketStats]) -> list[Insight]:
    priced = [(label, b.avg_cost_per_commit) for label, b in session_buckets.items()
              if b.sessions > 0 and b.avg_cost_per_commit is not None]
    if len(priced) < 2:
        return []
    label, cost = min(priced, key=lambda item: item[1])
    return [Insight(
        InsightType.TIP,
        f"Sessions with {label} messages have the best cost-per-commit (${cost:.2f}).",
    )]


def _best_and_worst_day(summary: Summary) -> list[Insight]:
    if summary.total_commits <= 0:
        return []
    insights = []
    best, worst = summary.best_day, summary.worst_day
    if best:
        insights.append(Insight(
            InsightType.SUCCESS,
            f"{best.date} was your most productive AI day: "
            f"{best.commits} commits for ${best.cost:.2f}.",
        ))
    if worst and (best is None or worst.date != best.date):
        insights.append(Insight(
            InsightType.WARNING,
            f"{worst.date} had the worst ROI: {worst.commits} commits for ${worst.cost:.2f}.",
        ))
    return insights


def _default_branch_share(summary: Summary) -> list[Insight]:
    if summary.total_commits <= 0:
        return []
    pct = summary.default_branch_pct
    if pct < 30:
        text = (f"{pct}% of AI-assisted commits landed on the default branch; this is "
                f"normal if you primarily work on feature branches.")
    elif pct >= 70:
        text = f"{pct}% of AI-assisted commits landed directly on the default branch."
    else:
        text = f"{pct}% of AI-assisted commits landed on the default branch."
    return [Insight(InsightType.SUCCESS if pct >= 50 else InsightType.INFO, text)]


def _cost_concentration(summary: Summary, sessions: list[CorrelatedSession]) -> list[Insight]:
    if summary.total_cost <= 0 or not sessions:
        return []
    top_n = max(1, math.ceil(len(sessions) * COST_CONCENTRATION_SHARE))
    costs = sorted((cs.session.cost.total_cost for cs in sessions), reverse=True)
    pct = round(sum(costs[:top_n]) / summary.total_cost * 100)
    if pct < COST_CONCENTRATION_MIN_PCT:
        return []
    return [Insight(InsightType.INFO,
                    f"Top 20% of sessions account for {pct}% of total cost.")]


def _average_duration(sessions: list[CorrelatedSession]) -> list[Insight]:
    if not sessions:
        return []
    avg = sum(cs.session.duration_minutes for cs in sessions) / len(sessions)
    if avg <= 0:
        return []
    return [Insight(InsightType.INFO, f"Average session duration: {round(avg)} minutes.")]


def _commit_delay(sessions: list[CorrelatedSession]) -> list[Insight]:
    delays = [
        (commit.timestamp - cs.session.end_time).total_seconds()
        for cs in sessions for commit in cs.commits
        if commit.timestamp >= cs.session.end_time
    ]
    if not delays:
        return []
    avg_hours = sum(delays) / len(delays) / 3600
    if avg_hours < 1:
        return [Insight(
            InsightType.SUCCESS,
            f"On average, commits happen {round(avg_hours * 60)} minutes after a session ends.",
        )]
    return [Insight(
        InsightType.INFO,
        f"On average, commits happen {avg_hours:.1f} hours after a session ends.",
    )]


def _uncommitted_files(sessions: list[CorrelatedSession]) -> list[Insight]:
    uncommitted = sum(len(cs.uncommitted_files) for cs in sessions)
    written = sum(len(cs.session.files_written) for cs in sessions)
    if not written or not uncommitted:
        return []
    pct = round(uncommitted / written * 100)
    if pct < UNCOMMITTED_MIN_PCT:
        return []
    return [Insight(
        InsightType.INFO,
        f"{pct}% of files the agent edited ({uncommitted}/{written}) "
        f"were not found in any commit.",
    )]

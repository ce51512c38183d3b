"""Convert sessions, commits and reports to and from JSON-compatible dicts.

Keys are camelCase; datetimes are ISO 8601 strings; absent ratios are null.
"""

from datetime import datetime
from typing import Any, Optional

import orjson

from claude_roi.types import (
    BucketStats,
    Commit,
    CorrelatedSession,
    CostBreakdown,
    DailyStats,
    FileChange,
    MetricsReport,
    ModelStats,
    ProjectStats,
    Session,
    TokenUsage,
)


def dumps(data: Any, indent: bool = False) -> bytes:
    option = orjson.OPT_INDENT_2 if indent else 0
    return orjson.dumps(data, option=option | orjson.OPT_NON_STR_KEYS)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt is not None else None


def _cost_to_dict(cost: CostBreakdown) -> dict:
    return {
        "inputCost": cost.input_cost,
        "outputCost": cost.output_cost,
        "cacheReadCost": cost.cache_read_cost,
        "cacheCreationCost": cost.cache_creation_cost,
        "totalCost": cost.total_cost,
    }


def _usage_to_dict(usage: TokenUsage) -> dict:
    return {
        "input": usage.input_tokens,
        "output": usage.output_tokens,
        "cacheRead": usage.cache_read_tokens,
        "cacheCreation": usage.cache_creation_tokens,
    }


def session_to_dict(session: Session) -> dict:
    usage = session.usage
    return {
        "sessionId": session.session_id,
        "repoPath": session.repo_path,
        "projectName": session.project_name,
        "gitBranch": session.git_branch,
        "startTime": _iso(session.start_time),
        "endTime": _iso(session.end_time),
        "durationMinutes": session.duration_minutes,
        "userMessageCount": session.user_message_count,
        "assistantMessageCount": session.assistant_message_count,
        "totalInputTokens": usage.input_tokens,
        "totalOutputTokens": usage.output_tokens,
        "cacheReadTokens": usage.cache_read_tokens,
        "cacheCreationTokens": usage.cache_creation_tokens,
        "modelUsage": {m: _usage_to_dict(u) for m, u in session.model_usage.items()},
        "cost": _cost_to_dict(session.cost),
        "model": session.model,
        "toolCalls": dict(session.tool_calls),
        "filesWritten": list(session.files_written),
        "filesRead": list(session.files_read),
    }


def session_from_dict(data: dict) -> Session:
    """Rebuild a Session; raises KeyError or ValueError on malformed input."""
    cost = data.get("cost", {})
    return Session(
        session_id=data["sessionId"],
        repo_path=data.get("repoPath", ""),
        project_name=data.get("projectName", ""),
        git_branch=data.get("gitBranch", ""),
        start_time=datetime.fromisoformat(data["startTime"]),
        end_time=datetime.fromisoformat(data["endTime"]),
        user_message_count=data.get("userMessageCount", 0),
        assistant_message_count=data.get("assistantMessageCount", 0),
        model_usage={
            model: TokenUsage(
                input_tokens=u.get("input", 0),
                output_tokens=u.get("output", 0),
                cache_read_tokens=u.get("cacheRead", 0),
                cache_creation_tokens=u.get("cacheCreation", 0),
            )
            for model, u in data.get("modelUsage", {}).items()
        },
        cost=CostBreakdown(
            input_cost=cost.get("inputCost", 0.0),
            output_cost=cost.get("outputCost", 0.0),
            cache_read_cost=cost.get("cacheReadCost", 0.0),
            cache_creation_cost=cost.get("cacheCreationCost", 0.0),
        ),
        model=data.get("model"),
        tool_calls=dict(data.get("toolCalls", {})),
        files_written=list(data.get("filesWritten", [])),
        files_read=list(data.get("filesRead", [])),
    )


def commit_to_dict(commit: Commit) -> dict:
    return {
        "hash": commit.hash,
        "authorEmail": commit.author_email,
        "timestamp": _iso(commit.timestamp),
        "subject": commit.subject,
        "branches": list(commit.branches),
        "onMain": commit.on_default_branch,
        "files": [_file_to_dict(f) for f in commit.files],
        "totalAdded": commit.total_added,
        "totalDeleted": commit.total_deleted,
        "netLines": commit.net_lines,
    }


def _file_to_dict(change: FileChange) -> dict:
    return {"path": change.path, "added": change.added, "deleted": change.deleted}


def correlated_to_dict(cs: CorrelatedSession) -> dict:
    data = session_to_dict(cs.session)
    data.update({
        "commits": [commit_to_dict(c) for c in cs.commits],
        "commitCount": cs.commit_count,
        "commitsOnMain": cs.commits_on_default_branch,
        "linesAdded": cs.lines_added,
        "linesDeleted": cs.lines_deleted,
        "netLines": cs.net_lines,
        "filesChanged": cs.files_changed,
        "isOrphaned": cs.is_orphaned,
        "matchedByFiles": cs.matched_by_files,
        "uncommittedFiles": list(cs.uncommitted_files),
        "costPerCommit": cs.cost_per_commit,
        "costPerLine": cs.cost_per_line,
        "costPerNetLine": cs.cost_per_net_line,
        "grade": cs.grade.value,
    })
    return data


def _day_to_dict(day: Optional[DailyStats]) -> Optional[dict]:
    if day is None:
        return None
    return {
        "date": day.date,
        "cost": day.cost,
        "sessions": day.sessions,
        "commits": day.commits,
        "linesAdded": day.lines_added,
        "linesDeleted": day.lines_deleted,
        "netLines": day.net_lines,
    }


def _model_to_dict(stats: ModelStats) -> dict:
    return {
        "cost": stats.cost,
        "tokens": stats.tokens,
        # Fractional shares are rounded only here
        "sessions": round(stats.sessions, 2),
        "commits": round(stats.commits, 2),
        "avgCostPerCommit": stats.avg_cost_per_commit,
    }


def _bucket_to_dict(bucket: BucketStats) -> dict:
    return {
        "sessions": bucket.sessions,
        "cost": bucket.cost,
        "commits": bucket.commits,
        "avgCostPerCommit": bucket.avg_cost_per_commit,
    }


def _project_to_dict(project: ProjectStats) -> dict:
    return {
        "repoPath": project.repo_path,
        "repoName": project.repo_name,
        "totalCost": project.total_cost,
        "sessions": project.sessions,
        "commits": project.commits,
        "linesAdded": project.lines_added,
        "commitsOnMain": project.commits_on_default_branch,
        "avgCostPerLine": project.avg_cost_per_line,
        "mainBranchPct": project.default_branch_pct,
    }


def report_to_dict(report: MetricsReport) -> dict:
    """The single JSON shape shared by ``--json`` output and the HTTP API."""
    s = report.summary
    tokens = report.token_analytics
    survival = report.line_survival
    return {
        "meta": {
            "generatedAt": _iso(report.meta.generated_at),
            "daysAnalyzed": report.meta.days_analyzed,
            "defaultBranches": dict(report.meta.default_branches),
            "gitUser": dict(report.meta.git_user),
        },
        "summary": {
            "totalCost": s.total_cost,
            "totalSessions": s.total_sessions,
            "totalCommits": s.total_commits,
            "totalLinesAdded": s.total_lines_added,
            "totalLinesDeleted": s.total_lines_deleted,
            "totalNetLines": s.total_net_lines,
            "totalFilesChanged": s.total_files_changed,
            "avgCostPerCommit": s.avg_cost_per_commit,
            "avgCostPerLine": s.avg_cost_per_line,
            "totalInputTokens": s.total_input_tokens,
            "totalOutputTokens": s.total_output_tokens,
            "orphanedSessionRate": s.orphaned_session_rate,
            "lineSurvivalRate": s.line_survival_rate,
            "overallGrade": s.overall_grade.value,
            "totalCommitsOnMain": s.total_commits_on_default_branch,
            "mainBranchPct": s.default_branch_pct,
            "organicCommitCount": s.organic_commit_count,
            "bestDay": _day_to_dict(s.best_day),
            "worstDay": _day_to_dict(s.worst_day),
        },
        "insights": [{"type": i.type.value, "text": i.text} for i in report.insights],
        "daily": [_day_to_dict(d) for d in report.daily],
        "projects": [_project_to_dict(p) for p in report.projects],
        "sessions": [correlated_to_dict(cs) for cs in report.sessions],
        "modelBreakdown": {k: _model_to_dict(v) for k, v in report.model_breakdown.items()},
        "toolBreakdown": dict(report.tool_breakdown),
        "sessionBuckets": {k: _bucket_to_dict(v) for k, v in report.session_buckets.items()},
        "lineSurvival": {
            "totalAdded": survival.total_added,
            "totalChurned": survival.total_churned,
            "surviving": survival.surviving,
            "survivalRate": survival.survival_rate,
        },
        "heatmap": {"commits": report.heatmap.commits, "cost": report.heatmap.cost},
        "periods": [
            {"label": p.label, "cost": p.cost, "sessions": p.sessions, "commits": p.commits}
            for p in report.periods
        ],
        "tokenAnalytics": {
            "totalTokens": tokens.total_tokens,
            "productiveTokens": tokens.productive_tokens,
            "orphanedTokens": tokens.orphaned_tokens,
            "exploratoryTokens": tokens.exploratory_tokens,
            "efficiencyPct": tokens.efficiency_pct,
            "tokensPerCommit": tokens.tokens_per_commit,
        },
        "organicCommits": [commit_to_dict(c) for c in report.organic_commits],
    }

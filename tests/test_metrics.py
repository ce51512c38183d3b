"""Tests for claude_roi.services.metrics."""

from datetime import datetime, timezone

import pytest

from claude_roi.services.correlator import correlate_sessions
from claude_roi.services.metrics import (
    compute_efficiency_grade,
    compute_metrics,
    compute_session_grade,
)
from claude_roi.types import (
    CorrelatedSession,
    CorrelationResult,
    Grade,
    Session,
    TokenUsage,
)
from claude_roi.utils.pricing import session_cost
from helpers import at, make_commit, make_history, make_session

REPO_A = "/home/wiz/projects/alpha"
REPO_B = "/home/wiz/projects/beta"
NOW = datetime(2026, 1, 20, 12, tzinfo=timezone.utc)

GRADE_ORDER = [Grade.A, Grade.B, Grade.C, Grade.D, Grade.F]


def _report(sessions, histories, **kwargs):
    result = correlate_sessions(sessions, histories)
    kwargs.setdefault("tz", timezone.utc)
    kwargs.setdefault("now", NOW)
    return compute_metrics(result, histories, **kwargs)


@pytest.fixture
def two_repo_report():
    """3 sessions, 5 commits (one organic) across 2 repositories."""
    sessions = [
        make_session("A", at(10), at(11), files=["a.py"], repo=REPO_A),
        make_session("B", at(13), at(14), repo=REPO_A),
        make_session("C", at(10), at(11), files=["x.py"], repo=REPO_B),
    ]
    histories = {
        REPO_A: make_history([
            make_commit("c1", at(10, 30), files={"a.py": (10, 0)}),
            make_commit("c2", at(13, 30), files={"b.py": (5, 1)}, on_default_branch=False),
            make_commit("c3", at(20), files={"c.py": (8, 0)}),
        ], repo=REPO_A),
        REPO_B: make_history([
            make_commit("c4", at(10, 45), files={"x.py": (20, 5)}),
            make_commit("c5", at(10, 50), files={"x.py": (1, 1)}),
        ], repo=REPO_B),
    }
    return _report(sessions, histories, days=30)


# ---------------------------------------------------------------------------
# 1. Grades
# ---------------------------------------------------------------------------

class TestEfficiencyGrade:
    @pytest.mark.parametrize("cost,survival,expected", [
        (1.0, 95, Grade.A),
        (2.0, 90, Grade.A),
        (1.0, 80, Grade.B),
        (4.0, 95, Grade.B),
        (10.0, 60, Grade.C),
        (30.0, 30, Grade.D),
        (50.0, 100, Grade.F),
        (1.0, 10, Grade.F),
    ])
    def test_thresholds(self, cost, survival, expected):
        assert compute_efficiency_grade(cost, survival) == expected

    def test_monotonic(self):
        costs = [0.5, 2, 3, 5, 8, 15, 20, 40, 60]
        rates = [0, 20, 25, 50, 60, 75, 85, 90, 100]
        for survival in rates:
            grades = [GRADE_ORDER.index(compute_efficiency_grade(c, survival)) for c in costs]
            assert grades == sorted(grades)
        for cost in costs:
            grades = [GRADE_ORDER.index(compute_efficiency_grade(cost, s)) for s in rates]
            assert grades == sorted(grades, reverse=True)


def test_session_without_commits_is_f():
    cs = CorrelatedSession(session=make_session("s", at(10), at(11)))
    assert compute_session_grade(cs, 100) == Grade.F


# ---------------------------------------------------------------------------
# 2. Summary totals
# ---------------------------------------------------------------------------

def test_summary_totals(two_repo_report):
    summary = two_repo_report.summary
    assert summary.total_sessions == 3
    assert summary.total_commits == 4
    assert summary.organic_commit_count == 1
    assert summary.total_lines_added == 10 + 5 + 21
    assert summary.total_lines_deleted == 0 + 1 + 6
    assert summary.total_commits_on_default_branch == 3
    assert summary.default_branch_pct == 75
    assert summary.total_files_changed == 3
    session_costs = sum(cs.session.cost.total_cost for cs in two_repo_report.sessions)
    assert summary.total_cost == pytest.approx(session_costs)
    assert summary.avg_cost_per_commit == pytest.approx(session_costs / 4)
    assert summary.overall_grade == Grade.A


def test_organic_commits_listed(two_repo_report):
    assert [c.hash for c in two_repo_report.organic_commits] == ["c3"]


def test_per_repository_survival_grades_sessions(two_repo_report):
    grades = {cs.session.session_id: cs.grade for cs in two_repo_report.sessions}
    assert grades == {"A": Grade.A, "B": Grade.A, "C": Grade.A}


def test_daily_and_best_day(two_repo_report):
    assert [d.date for d in two_repo_report.daily] == ["2026-01-16"]
    day = two_repo_report.daily[0]
    assert day.sessions == 3
    assert day.commits == 4
    assert two_repo_report.summary.best_day.date == "2026-01-16"


def test_projects_sorted_by_cost():
    sessions = [
        make_session("A", at(10), at(11), repo=REPO_A, input_tokens=1000),
        make_session("B", at(10), at(11), repo=REPO_B, input_tokens=900_000),
    ]
    report = _report(sessions, {})
    assert [p.repo_path for p in report.projects] == [REPO_B, REPO_A]
    assert report.projects[0].repo_name == "beta"


# ---------------------------------------------------------------------------
# 3. Breakdowns
# ---------------------------------------------------------------------------

def _mixed_session(usage, model="claude-sonnet-4-5", session_id="mixed"):
    return Session(
        session_id=session_id, repo_path=REPO_A, start_time=at(10), end_time=at(11),
        user_message_count=2, assistant_message_count=2,
        model_usage=usage, cost=session_cost(usage), model=model,
    )


def _one_commit_history():
    return {REPO_A: make_history([make_commit("c1", at(10, 30))], repo=REPO_A)}


def test_model_breakdown_is_fractional():
    session = _mixed_session({
        "claude-sonnet-4-5": TokenUsage(input_tokens=3000),
        "claude-opus-4-6": TokenUsage(input_tokens=1000),
    })
    breakdown = _report([session], _one_commit_history()).model_breakdown

    assert breakdown["sonnet"].sessions == 0.75
    assert breakdown["opus"].sessions == 0.25
    assert breakdown["sonnet"].commits == 0.75
    assert breakdown["sonnet"].tokens == 3000
    assert breakdown["opus"].cost == pytest.approx(1000 * 5.0 / 1_000_000)
    total = sum(s.cost for s in breakdown.values())
    assert total == pytest.approx(session.cost.total_cost)


def test_small_share_family_keeps_its_commits():
    # 4k opus tokens against 1M sonnet tokens is well under 0.01 of a session
    session = _mixed_session({
        "claude-sonnet-4-5": TokenUsage(input_tokens=1_000_000),
        "claude-opus-4-6": TokenUsage(output_tokens=4000),
    })
    report = _report([session], _one_commit_history())
    opus = report.model_breakdown["opus"]

    share = 4000 / 1_004_000
    assert opus.cost == pytest.approx(0.10)
    assert opus.sessions == pytest.approx(share)
    assert opus.commits == pytest.approx(share)
    assert opus.avg_cost_per_commit == pytest.approx(0.10 / share)
    assert any(i.text.startswith("Opus sessions cost") for i in report.insights)


def test_unknown_model_goes_to_unknown_family():
    session = _mixed_session({
        "gpt-foo": TokenUsage(input_tokens=1000),
        "claude-sonnet-4-5": TokenUsage(input_tokens=3000),
    })
    breakdown = _report([session], _one_commit_history()).model_breakdown

    assert set(breakdown) == {"sonnet", "unknown"}
    assert breakdown["unknown"].tokens == 1000
    assert breakdown["unknown"].sessions == 0.25
    assert breakdown["unknown"].commits == 0.25
    assert breakdown["unknown"].cost == 0.0
    assert breakdown["sonnet"].sessions == 0.75


def test_tokenless_session_without_model_counts_as_unknown():
    session = _mixed_session({}, model=None, session_id="empty")
    breakdown = _report([session], _one_commit_history()).model_breakdown

    assert breakdown["unknown"].sessions == 1
    assert breakdown["unknown"].commits == 1
    assert breakdown["unknown"].tokens == 0


def test_session_buckets():
    sessions = [
        make_session("s1", at(9), at(10), messages=10),
        make_session("s2", at(10), at(11), messages=60),
        make_session("s3", at(11), at(12), messages=250),
    ]
    buckets = _report(sessions, {}).session_buckets
    assert list(buckets) == ["1-50", "51-100", "101-200", "200+"]
    assert [b.sessions for b in buckets.values()] == [1, 1, 0, 1]


def test_tool_breakdown_sorted_by_count():
    a = make_session("a", at(9), at(10))
    a.tool_calls = {"Read": 2, "Edit": 5}
    b = make_session("b", at(10), at(11))
    b.tool_calls = {"Read": 4, "Bash": 1}
    tools = _report([a, b], {}).tool_breakdown
    assert list(tools.items()) == [("Read", 6), ("Edit", 5), ("Bash", 1)]


def test_heatmap_uses_commit_time():
    # Session starts Saturday 23:00; its commit lands Sunday 00:30.
    session = make_session("late", at(23, day=17), at(23, 50, day=17))
    commit = make_commit("c1", at(0, 30, day=18))
    report = _report([session], {"/home/wiz/projects/myapp": make_history([commit])})

    assert report.heatmap.commits[0][0] == 1
    assert report.heatmap.commits[6][23] == 0
    assert report.heatmap.cost[6][23] == pytest.approx(session.cost.total_cost)


def test_periods_are_cumulative():
    sessions = [
        make_session("today", at(9, day=20), at(10, day=20)),
        make_session("week", at(9, day=19), at(10, day=19)),
        make_session("month", at(9, day=5), at(10, day=5)),
        make_session("old", datetime(2025, 12, 1, 9, tzinfo=timezone.utc),
                     datetime(2025, 12, 1, 10, tzinfo=timezone.utc)),
    ]
    periods = {p.label: p.sessions for p in _report(sessions, {}).periods}
    assert periods == {"Today": 1, "This Week": 2, "This Month": 3, "All Time": 4}


def test_token_funnel_is_exclusive_and_exhaustive():
    sessions = [
        make_session("productive", at(9), at(10), input_tokens=4000, output_tokens=0),
        make_session("orphan", at(12), at(13), messages=20, files=["z.py"],
                     input_tokens=1000, output_tokens=0),
        make_session("explore", at(15), at(16), messages=4, files=["q.py"],
                     input_tokens=500, output_tokens=0),
    ]
    histories = {"/home/wiz/projects/myapp": make_history([make_commit("c1", at(9, 30))])}
    tokens = _report(sessions, histories).token_analytics

    assert tokens.productive_tokens == 4000
    assert tokens.orphaned_tokens == 1000
    assert tokens.exploratory_tokens == 500
    assert tokens.total_tokens == sum(s.total_tokens for s in sessions)
    assert tokens.efficiency_pct == 73
    assert tokens.tokens_per_commit == 4000


# ---------------------------------------------------------------------------
# 4. Edge cases
# ---------------------------------------------------------------------------

def test_empty_input():
    report = compute_metrics(CorrelationResult(sessions=[], organic_commits=[]), {},
                             tz=timezone.utc, now=NOW)
    assert report.summary.total_sessions == 0
    assert report.summary.avg_cost_per_commit is None
    assert report.summary.overall_grade == Grade.F
    assert report.summary.best_day is None
    assert report.line_survival.survival_rate == 100
    assert report.daily == []
    assert report.insights == []
    assert report.token_analytics.efficiency_pct is None


def test_no_commits_leaves_ratios_undefined():
    report = _report([make_session("s", at(9), at(10))], {})
    assert report.summary.avg_cost_per_commit is None
    assert report.summary.overall_grade == Grade.F
    assert report.sessions[0].cost_per_commit is None

"""Correlation results and the aggregated metrics report."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from claude_roi.types.commits import Commit
from claude_roi.types.sessions import Session


class Grade(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"


class InsightType(str, Enum):
    INFO = "info"
    TIP = "tip"
    SUCCESS = "success"
    WARNING = "warning"


@dataclass
class CorrelatedSession:
    session: Session
    commits: list[Commit] = field(default_factory=list)
    commits_on_default_branch: int = 0
    lines_added: int = 0
    lines_deleted: int = 0
    files_changed: int = 0
    is_orphaned: bool = False
    matched_by_files: bool = False
    uncommitted_files: list[str] = field(default_factory=list)
    grade: Grade = Grade.F

    @property
    def commit_count(self) -> int:
        return len(self.commits)

    @property
    def net_lines(self) -> int:
        return self.lines_added - self.lines_deleted

    @property
    def cost_per_commit(self) -> Optional[float]:
        if not self.commits:
            return None
        return self.session.cost.total_cost / len(self.commits)

    @property
    def cost_per_line(self) -> Optional[float]:
        if self.lines_added <= 0:
            return None
        return self.session.cost.total_cost / self.lines_added

    @property
    def cost_per_net_line(self) -> Optional[float]:
        if self.net_lines <= 0:
            return None
        return self.session.cost.total_cost / self.net_lines


@dataclass
class CorrelationResult:
    sessions: list[CorrelatedSession]
    organic_commits: list[Commit]


@dataclass
class LineSurvival:
    total_added: int = 0
    total_churned: int = 0
    survival_rate: int = 100

    @property
    def surviving(self) -> int:
        return self.total_added - self.total_churned


@dataclass
class DailyStats:
    date: str
    cost: float = 0.0
    sessions: int = 0
    commits: int = 0
    lines_added: int = 0
    lines_deleted: int = 0

    @property
    def net_lines(self) -> int:
        return self.lines_added - self.lines_deleted


@dataclass
class ModelStats:
    cost: float = 0.0
    tokens: int = 0
    sessions: float = 0.0
    commits: float = 0.0

    @property
    def avg_cost_per_commit(self) -> Optional[float]:
        if self.commits <= 0:
            return None
        return self.cost / self.commits


@dataclass
class BucketStats:
    sessions: int = 0
    cost: float = 0.0
    commits: int = 0

    @property
    def avg_cost_per_commit(self) -> Optional[float]:
        if self.commits <= 0:
            return None
        return self.cost / self.commits


@dataclass
class ProjectStats:
    repo_path: str
    repo_name: str
    total_cost: float = 0.0
    sessions: int = 0
    commits: int = 0
    lines_added: int = 0
    commits_on_default_branch: int = 0

    @property
    def avg_cost_per_line(self) -> Optional[float]:
        if self.lines_added <= 0:
            return None
        return self.total_cost / self.lines_added

    @property
    def default_branch_pct(self) -> int:
        if self.commits <= 0:
            return 0
        return round(self.commits_on_default_branch / self.commits * 100)


@dataclass
class PeriodStats:
    label: str
    cost: float = 0.0
    sessions: int = 0
    commits: int = 0


@dataclass
class TokenAnalytics:
    """Exhaustive split of all session tokens by session outcome."""
    productive_tokens: int = 0
    orphaned_tokens: int = 0
    exploratory_tokens: int = 0
    total_commits: int = 0

    @property
    def total_tokens(self) -> int:
        return self.productive_tokens + self.orphaned_tokens + self.exploratory_tokens

    @property
    def efficiency_pct(self) -> Optional[int]:
        if self.total_tokens <= 0:
            return None
        return round(self.productive_tokens / self.total_tokens * 100)

    @property
    def tokens_per_commit(self) -> Optional[int]:
        if self.total_commits <= 0:
            return None
        return round(self.productive_tokens / self.total_commits)


@dataclass
class Heatmap:
    """7x24 grids indexed [day_of_week][hour], Sunday = 0."""
    commits: list[list[int]] = field(
        default_factory=lambda: [[0] * 24 for _ in range(7)])
    cost: list[list[float]] = field(
        default_factory=lambda: [[0.0] * 24 for _ in range(7)])


@dataclass
class Insight:
    type: InsightType
    text: str


@dataclass
class Summary:
    total_cost: float = 0.0
    total_sessions: int = 0
    total_commits: int = 0
    total_lines_added: int = 0
    total_lines_deleted: int = 0
    total_files_changed: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    orphaned_sessions: int = 0
    line_survival_rate: int = 100
    overall_grade: Grade = Grade.F
    total_commits_on_default_branch: int = 0
    organic_commit_count: int = 0
    best_day: Optional[DailyStats] = None
    worst_day: Optional[DailyStats] = None

    @property
    def total_net_lines(self) -> int:
        return self.total_lines_added - self.total_lines_deleted

    @property
    def avg_cost_per_commit(self) -> Optional[float]:
        if self.total_commits <= 0:
            return None
        return self.total_cost / self.total_commits

    @property
    def avg_cost_per_line(self) -> Optional[float]:
        if self.total_lines_added <= 0:
            return None
        return self.total_cost / self.total_lines_added

    @property
    def orphaned_session_rate(self) -> int:
        if self.total_sessions <= 0:
            return 0
        return round(self.orphaned_sessions / self.total_sessions * 100)

    @property
    def default_branch_pct(self) -> int:
        if self.total_commits <= 0:
            return 0
        return round(self.total_commits_on_default_branch / self.total_commits * 100)


@dataclass
class ReportMeta:
    generated_at: datetime
    days_analyzed: Optional[int] = None
    default_branches: dict[str, str] = field(default_factory=dict)
    git_user: dict[str, str] = field(default_factory=dict)


@dataclass
class MetricsReport:
    meta: ReportMeta
    summary: Summary
    insights: list[Insight]
    daily: list[DailyStats]
    projects: list[ProjectStats]
    sessions: list[CorrelatedSession]
    model_breakdown: dict[str, ModelStats]
    tool_breakdown: dict[str, int]
    session_buckets: dict[str, BucketStats]
    line_survival: LineSurvival
    heatmap: Heatmap
    periods: list[PeriodStats]
    token_analytics: TokenAnalytics
    organic_commits: list[Commit]

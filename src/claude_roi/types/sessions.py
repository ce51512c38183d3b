"""Session-level types produced by transcript ingestion."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0

    def __post_init__(self):
        if min(self.input_tokens, self.output_tokens,
               self.cache_read_tokens, self.cache_creation_tokens) < 0:
            raise ValueError("token counts must be non-negative")

    @property
    def total(self) -> int:
        return (self.input_tokens + self.output_tokens +
                self.cache_read_tokens + self.cache_creation_tokens)

    def add(self, other: "TokenUsage"):
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.cache_read_tokens += other.cache_read_tokens
        self.cache_creation_tokens += other.cache_creation_tokens


@dataclass
class CostBreakdown:
    input_cost: float = 0.0
    output_cost: float = 0.0
    cache_read_cost: float = 0.0
    cache_creation_cost: float = 0.0

    @property
    def total_cost(self) -> float:
        return (self.input_cost + self.output_cost +
                self.cache_read_cost + self.cache_creation_cost)

    def __add__(self, other: "CostBreakdown") -> "CostBreakdown":
        return CostBreakdown(
            input_cost=self.input_cost + other.input_cost,
            output_cost=self.output_cost + other.output_cost,
            cache_read_cost=self.cache_read_cost + other.cache_read_cost,
            cache_creation_cost=self.cache_creation_cost + other.cache_creation_cost,
        )


@dataclass
class Session:
    """One recorded agent run in a repository.

    ``model_usage`` maps each raw model identifier to the tokens it consumed;
    ``cost`` is the sum of per-model costs, each priced at its own tier.
    """
    session_id: str
    repo_path: str
    start_time: datetime
    end_time: datetime
    project_name: str = ""
    git_branch: str = ""
    user_message_count: int = 0
    assistant_message_count: int = 0
    model_usage: dict[str, TokenUsage] = field(default_factory=dict)
    cost: CostBreakdown = field(default_factory=CostBreakdown)
    model: Optional[str] = None
    tool_calls: dict[str, int] = field(default_factory=dict)
    files_written: list[str] = field(default_factory=list)
    files_read: list[str] = field(default_factory=list)

    def __post_init__(self):
        if self.start_time is None or self.end_time is None:
            raise ValueError(f"session {self.session_id} needs start and end times")
        if self.end_time < self.start_time:
            raise ValueError(f"session {self.session_id} ends before it starts")

    @property
    def message_count(self) -> int:
        return self.user_message_count + self.assistant_message_count

    @property
    def usage(self) -> TokenUsage:
        total = TokenUsage()
        for usage in self.model_usage.values():
            total.add(usage)
        return total

    @property
    def total_tokens(self) -> int:
        return sum(u.total for u in self.model_usage.values())

    @property
    def duration_minutes(self) -> float:
        seconds = (self.end_time - self.start_time).total_seconds()
        return round(seconds / 60, 1)

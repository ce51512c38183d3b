"""Shared test helpers: session and commit factories."""

from datetime import datetime, timezone

from claude_roi.types import Commit, FileChange, RepoHistory, Session, TokenUsage
from claude_roi.utils.pricing import session_cost

REPO = "/home/wiz/projects/myapp"


def at(hour: int, minute: int = 0, day: int = 16) -> datetime:
    """A UTC timestamp on 2026-01-<day>."""
    return datetime(2026, 1, day, hour, minute, tzinfo=timezone.utc)


def make_session(
    session_id: str,
    start: datetime,
    end: datetime,
    files: list[str] | None = None,
    repo: str = REPO,
    messages: int = 4,
    model: str = "claude-sonnet-4-5-20250929",
    input_tokens: int = 1000,
    output_tokens: int = 500,
) -> Session:
    model_usage = {model: TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens)}
    return Session(
        session_id=session_id,
        repo_path=repo,
        start_time=start,
        end_time=end,
        project_name=repo.rsplit("/", 1)[-1],
        user_message_count=messages // 2,
        assistant_message_count=messages - messages // 2,
        model_usage=model_usage,
        cost=session_cost(model_usage),
        model=model,
        files_written=list(files or []),
    )


def make_commit(
    commit_hash: str,
    timestamp: datetime,
    files: dict[str, tuple[int, int]] | None = None,
    on_default_branch: bool = True,
    email: str = "dev@example.com",
) -> Commit:
    changes = [FileChange(path=p, added=a, deleted=d)
               for p, (a, d) in (files or {"src/app.py": (10, 2)}).items()]
    return Commit(
        hash=commit_hash,
        author_email=email,
        timestamp=timestamp,
        subject=f"commit {commit_hash}",
        on_default_branch=on_default_branch,
        files=changes,
        total_added=sum(f.added for f in changes),
        total_deleted=sum(f.deleted for f in changes),
    )


def make_history(commits: list[Commit], repo: str = REPO,
                 default_branch: str = "main") -> RepoHistory:
    return RepoHistory(repo_path=repo, commits=list(commits),
                       all_commits=list(commits), default_branch=default_branch)

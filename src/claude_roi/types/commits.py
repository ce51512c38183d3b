"""Commit-level types produced by repository history extraction."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class FileChange:
    path: str
    added: int = 0
    deleted: int = 0


@dataclass
class Commit:
    hash: str
    author_email: str
    timestamp: datetime
    subject: str = ""
    branches: list[str] = field(default_factory=list)
    on_default_branch: bool = False
    files: list[FileChange] = field(default_factory=list)
    # Totals exclude generated and lock files; ``files`` still lists them.
    total_added: int = 0
    total_deleted: int = 0

    @property
    def net_lines(self) -> int:
        return self.total_added - self.total_deleted

    @property
    def paths(self) -> set[str]:
        return {f.path for f in self.files}


@dataclass
class RepoHistory:
    """Commits for one repository within the look-back window.

    ``commits`` holds the acting user's commits; ``all_commits`` is the
    superset used for default-branch tagging.
    """
    repo_path: str
    commits: list[Commit] = field(default_factory=list)
    all_commits: list[Commit] = field(default_factory=list)
    default_branch: Optional[str] = None

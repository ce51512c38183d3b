"""Git history extraction: commits with per-file numstat and default-branch tags."""

import logging
import re
import subprocess
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Optional

from claude_roi.types import Commit, FileChange, RepoHistory

logger = logging.getLogger(__name__)

COMMIT_PREFIX = "COMMIT:"
LOG_FORMAT = f"{COMMIT_PREFIX}%H|%ae|%aI|%s|%D"
DEFAULT_BRANCH_CANDIDATES = ("main", "master", "develop", "development", "staging", "trunk")
GIT_TIMEOUT_S = 60

# Files excluded from line-count totals (lock files, minified bundles, etc.)
EXCLUDED_NAMES = frozenset({
    "package-lock.json", "yarn.lock", "pnpm-lock.yaml",
    "composer.lock", "Gemfile.lock", "Cargo.lock",
    "poetry.lock", "Pipfile.lock", "go.sum", "flake.lock", "bun.lockb",
})
EXCLUDED_PATTERNS = tuple(re.compile(p) for p in (
    r"\.min\.js$", r"\.min\.css$", r"\.map$",
    r"(?:^|/)dist/", r"(?:^|/)build/", r"(?:^|/)\.next/",
    r"(?:^|/)__pycache__/",
))


def is_generated_file(file_path: str) -> bool:
    if PurePosixPath(file_path).name in EXCLUDED_NAMES:
        return True
    return any(p.search(file_path) for p in EXCLUDED_PATTERNS)


def is_git_repo(repo_path: str) -> bool:
    """True for regular repos and worktrees (.git may be a file)."""
    return (Path(repo_path) / ".git").exists()


def _git(args: list[str], repo_path: Optional[str] = None) -> str:
    cmd = ["git"]
    if repo_path:
        cmd += ["-C", repo_path]
    result = subprocess.run(
        cmd + args,
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        check=True,
        timeout=GIT_TIMEOUT_S,
    )
    return result.stdout


def get_git_user() -> dict[str, str]:
    """The configured git identity, or "unknown" for fields that are unset."""
    user = {}
    for key in ("name", "email"):
        try:
            user[key] = _git(["config", f"user.{key}"]).strip() or "unknown"
        except (subprocess.SubprocessError, OSError):
            user[key] = "unknown"
    return user


def detect_default_branch(repo_path: str) -> Optional[str]:
    """origin/HEAD if set, else a conventional branch name, else the first branch."""
    try:
        ref = _git(["symbolic-ref", "refs/remotes/origin/HEAD"], repo_path).strip()
        branch = ref.replace("refs/remotes/origin/", "", 1)
        if branch:
            return branch
    except (subprocess.SubprocessError, OSError):
        pass

    try:
        raw = _git(["branch", "--format=%(refname:short)"], repo_path)
    except (subprocess.SubprocessError, OSError):
        logger.debug("Cannot list branches in %s", repo_path, exc_info=True)
        return None

    # a detached HEAD lists as "(HEAD detached at ...)"
    branches = [b.strip() for b in raw.splitlines()
                if b.strip() and not b.startswith("(")]
    for name in DEFAULT_BRANCH_CANDIDATES:
        if name in branches:
            return name
    return branches[0] if branches else None


def default_branch_hashes(repo_path: str, branch: Optional[str]) -> set[str]:
    if not branch:
        return set()
    try:
        raw = _git(["log", branch, "--format=%H"], repo_path)
    except (subprocess.SubprocessError, OSError):
        logger.debug("Cannot list %s history in %s", branch, repo_path, exc_info=True)
        return set()
    return {line for line in raw.split() if line}


def _parse_header(rest: str) -> Optional[Commit]:
    # hash|email|timestamp|subject|decorations; the subject may contain "|"
    parts = rest.split("|", 3)
    if len(parts) < 4:
        return None
    commit_hash, email, timestamp, remaining = parts
    try:
        ts = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return None

    subject, sep, decorations = remaining.rpartition("|")
    if not sep:
        subject, decorations = remaining, ""

    branches = []
    for ref in decorations.split(","):
        cleaned = ref.replace("HEAD -> ", "").replace("origin/", "").strip()
        if not cleaned or cleaned.startswith("tag:") or cleaned == "HEAD":
            continue
        if cleaned not in branches:
            branches.append(cleaned)

    return Commit(hash=commit_hash, author_email=email, timestamp=ts,
                  subject=subject, branches=branches)


def _parse_numstat(line: str) -> Optional[FileChange]:
    # "2\t2\tpath" or "-\t-\tbinary"
    parts = line.split("\t", 2)
    if len(parts) < 3:
        return None
    added = int(parts[0]) if parts[0].isdigit() else 0
    deleted = int(parts[1]) if parts[1].isdigit() else 0
    return FileChange(path=parts[2], added=added, deleted=deleted)


def parse_git_log(raw: str) -> list[Commit]:
    """Parse ``git log --format=COMMIT:... --numstat`` output.

    Malformed header lines are skipped along with their numstat lines.
    """
    commits: list[Commit] = []
    current: Optional[Commit] = None

    for line in raw.splitlines():
        if line.startswith(COMMIT_PREFIX):
            current = _parse_header(line[len(COMMIT_PREFIX):])
            if current is None:
                logger.debug("Skipping malformed commit header: %r", line)
            else:
                commits.append(current)
            continue
        if current is None or not line.strip():
            continue
        change = _parse_numstat(line)
        if change is None:
            continue
        current.files.append(change)
        if not is_generated_file(change.path):
            current.total_added += change.added
            current.total_deleted += change.deleted
    return commits


def analyze_git_repo(repo_path: str, days: int,
                     author_email: Optional[str] = None) -> RepoHistory:
    """Collect the last ``days`` of history; ``commits`` keeps the author's own."""
    if not is_git_repo(repo_path):
        return RepoHistory(repo_path=repo_path)

    if author_email is None:
        author_email = get_git_user()["email"]

    try:
        raw = _git(["log", "--all", f"--since={days} days ago",
                    f"--format={LOG_FORMAT}", "--numstat"], repo_path)
    except (subprocess.SubprocessError, OSError) as e:
        logger.warning("Git analysis failed for %s: %s", repo_path, e)
        return RepoHistory(repo_path=repo_path)

    all_commits = parse_git_log(raw)
    branch = detect_default_branch(repo_path)
    on_default = default_branch_hashes(repo_path, branch)
    for commit in all_commits:
        commit.on_default_branch = commit.hash in on_default

    mine = [c for c in all_commits if c.author_email == author_email]
    logger.debug("%s: %d commits, %d authored by %s",
                 repo_path, len(all_commits), len(mine), author_email)
    return RepoHistory(repo_path=repo_path, commits=mine,
                       all_commits=all_commits, default_branch=branch)

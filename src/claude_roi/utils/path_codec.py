"""Project folder names and session file paths relative to a repository."""

import re

_WORKTREE_FILE_RE = re.compile(r"\.claude/worktrees/[^/]+/(.+)")
_WORKTREE_ROOT_RE = re.compile(r"^(.+?)/\.claude/worktrees/[^/]+/?$")


def extract_project_name(folder: str) -> str:
    """Get the last hyphen-separated segment of an encoded project folder.

    -home-wiz-AI-LLM → LLM
    """
    if not folder:
        return ""
    return folder.rsplit("-", 1)[-1] or folder


def resolve_repo_root(cwd: str) -> str:
    """Map an agent worktree directory back to its repository root.

    /src/app/.claude/worktrees/fix-bug → /src/app
    """
    if not cwd:
        return ""
    match = _WORKTREE_ROOT_RE.match(cwd)
    if match:
        return match.group(1)
    return cwd


def to_relative_path(absolute_path: str, repo_path: str) -> str:
    """Make a file path relative to the repository root.

    Worktree paths drop their worktree prefix; paths outside the repository
    fall back to the bare file name.
    """
    if not absolute_path:
        return ""
    match = _WORKTREE_FILE_RE.search(absolute_path)
    if match:
        return match.group(1)
    if repo_path and absolute_path.startswith(repo_path):
        return absolute_path[len(repo_path):].lstrip("/")
    return absolute_path.rsplit("/", 1)[-1]

"""Tests for claude_roi.services.git_analyzer."""

import os
import shutil
import subprocess
from datetime import datetime, timedelta, timezone

import pytest

from claude_roi.services import git_analyzer
from claude_roi.services.git_analyzer import (
    analyze_git_repo,
    detect_default_branch,
    is_generated_file,
    is_git_repo,
    parse_git_log,
)

SAMPLE_LOG = """\
COMMIT:aaa111|dev@example.com|2026-01-16T10:30:00+00:00|Add login form|HEAD -> main, origin/main, tag: v1.0
12\t3\tsrc/login.py
200\t0\tpackage-lock.json
-\t-\tassets/logo.png

COMMIT:bbb222|other@example.com|2026-01-16T11:00:00+00:00|Fix: handle a|b pipes|
4\t1\tsrc/util.py
COMMIT:garbage line without fields
9\t9\tshould/not/attach.py
COMMIT:ccc333|dev@example.com|2026-01-16T12:00:00Z|Refactor|feature/x
1\t1\tsrc/login.py
"""

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


# ---------------------------------------------------------------------------
# 1. Log parsing
# ---------------------------------------------------------------------------

def test_parse_commits_and_numstat():
    commits = parse_git_log(SAMPLE_LOG)
    assert [c.hash for c in commits] == ["aaa111", "bbb222", "ccc333"]

    first = commits[0]
    assert first.author_email == "dev@example.com"
    assert first.timestamp == datetime(2026, 1, 16, 10, 30, tzinfo=timezone.utc)
    assert first.subject == "Add login form"
    assert first.branches == ["main"]
    assert [f.path for f in first.files] == ["src/login.py", "package-lock.json", "assets/logo.png"]


def test_totals_exclude_generated_files():
    first = parse_git_log(SAMPLE_LOG)[0]
    assert first.total_added == 12
    assert first.total_deleted == 3
    assert first.files[2].added == 0


def test_subject_with_pipes():
    second = parse_git_log(SAMPLE_LOG)[1]
    assert second.subject == "Fix: handle a|b pipes"
    assert second.branches == []


def test_malformed_header_drops_its_numstat():
    commits = parse_git_log(SAMPLE_LOG)
    paths = {f.path for c in commits for f in c.files}
    assert "should/not/attach.py" not in paths
    assert commits[2].timestamp == datetime(2026, 1, 16, 12, tzinfo=timezone.utc)


def test_empty_log():
    assert parse_git_log("") == []


@pytest.mark.parametrize("path,expected", [
    ("package-lock.json", True),
    ("web/yarn.lock", True),
    ("static/app.min.js", True),
    ("dist/bundle.js", True),
    ("src/__pycache__/x.pyc", True),
    ("src/app.py", False),
    ("docs/distribution.md", False),
])
def test_is_generated_file(path, expected):
    assert is_generated_file(path) is expected


# ---------------------------------------------------------------------------
# 2. Real repositories
# ---------------------------------------------------------------------------

def _run(repo, *args, when=None):
    env = None
    if when is not None:
        stamp = when.isoformat()
        env = {**os.environ, "GIT_AUTHOR_DATE": stamp, "GIT_COMMITTER_DATE": stamp}
    subprocess.run(["git", "-C", str(repo), *args], check=True,
                   capture_output=True, env=env)


@pytest.fixture
def git_repo(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()
    _run(repo, "init", "-b", "main")
    _run(repo, "config", "user.email", "dev@example.com")
    _run(repo, "config", "user.name", "Dev")
    now = datetime.now(timezone.utc).replace(microsecond=0)

    (repo / "app.py").write_text("print('hi')\n" * 5)
    _run(repo, "add", ".")
    _run(repo, "commit", "-m", "Initial", when=now - timedelta(hours=3))

    _run(repo, "checkout", "-b", "feature")
    (repo / "feature.py").write_text("x = 1\n")
    _run(repo, "add", ".")
    _run(repo, "commit", "-m", "Feature work", when=now - timedelta(hours=1))
    _run(repo, "checkout", "main")
    return repo


@requires_git
def test_analyze_repo(git_repo):
    history = analyze_git_repo(str(git_repo), days=7, author_email="dev@example.com")
    assert history.default_branch == "main"
    subjects = {c.subject: c for c in history.commits}
    assert set(subjects) == {"Initial", "Feature work"}
    assert subjects["Initial"].on_default_branch is True
    assert subjects["Feature work"].on_default_branch is False
    assert subjects["Initial"].total_added == 5


@requires_git
def test_analyze_repo_filters_author(git_repo):
    history = analyze_git_repo(str(git_repo), days=7, author_email="someone@else.com")
    assert history.commits == []
    assert len(history.all_commits) == 2


@requires_git
def test_detect_default_branch(git_repo):
    assert detect_default_branch(str(git_repo)) == "main"


@requires_git
def test_default_branch_checked_out_in_worktree(git_repo, tmp_path):
    # With main checked out elsewhere, `git branch` marks it with "+ "
    _run(git_repo, "checkout", "feature")
    _run(git_repo, "worktree", "add", str(tmp_path / "wt"), "main")
    assert detect_default_branch(str(git_repo)) == "main"


def test_default_branch_skips_detached_head(monkeypatch):
    def fake_git(args, repo_path=None):
        if args[0] == "symbolic-ref":
            raise subprocess.CalledProcessError(128, "git")
        return "(HEAD detached at 1a2b3c4)\nfeature\n"

    monkeypatch.setattr(git_analyzer, "_git", fake_git)
    assert detect_default_branch("/repo") == "feature"


def test_not_a_repo(tmp_path):
    assert is_git_repo(str(tmp_path)) is False
    history = analyze_git_repo(str(tmp_path), days=7, author_email="dev@example.com")
    assert history.commits == []
    assert history.default_branch is None

"""Assign commits to the sessions that most plausibly produced them.

Matching is partitioned per repository. A commit is a candidate for a session
when it lands within ``[start, end + FALLBACK_BUFFER]`` and touches a file the
session wrote; sessions that wrote nothing match on the time window alone.
Each commit then goes to exactly one candidate: file overlap beats time-only,
then the smallest temporal distance wins, then the earliest session start and
session id, so the assignment does not depend on the order of the input.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Mapping

from claude_roi.types import (
    Commit,
    CorrelatedSession,
    CorrelationResult,
    RepoHistory,
    Session,
)

logger = logging.getLogger(__name__)

FALLBACK_BUFFER = timedelta(hours=2)
ORPHAN_MESSAGE_THRESHOLD = 10


class MatchStrategy(str, Enum):
    NEAREST = "nearest"
    GREEDY = "greedy"


@dataclass
class _Candidate:
    session: Session
    has_file_overlap: bool
    distance: timedelta

    def rank(self) -> tuple:
        return (
            not self.has_file_overlap,
            self.distance,
            self.session.start_time,
            self.session.session_id,
        )


def temporal_distance(commit_time: datetime, start: datetime, end: datetime) -> timedelta:
    """Zero inside ``[start, end]``, else distance to the nearer endpoint."""
    if start <= commit_time <= end:
        return timedelta(0)
    return min(abs(commit_time - start), abs(commit_time - end))


def match_candidate(session: Session, commit: Commit) -> _Candidate | None:
    """Return the candidate pairing of session and commit, or None."""
    window_end = session.end_time + FALLBACK_BUFFER
    if commit.timestamp < session.start_time or commit.timestamp > window_end:
        return None

    written = set(session.files_written)
    has_overlap = bool(written) and any(f.path in written for f in commit.files)
    if written and not has_overlap:
        return None

    return _Candidate(
        session=session,
        has_file_overlap=has_overlap,
        distance=temporal_distance(commit.timestamp, session.start_time, session.end_time),
    )


def correlate_sessions(
    sessions: Iterable[Session],
    commits_by_repo: Mapping[str, RepoHistory],
    strategy: MatchStrategy = MatchStrategy.NEAREST,
) -> CorrelationResult:
    """Partition each repository's commits among its sessions.

    Returns correlated sessions, most recent first, and the commits no session
    claimed ("organic" commits) in repository then history order.
    """
    sessions = list(sessions)
    by_repo: dict[str, list[Session]] = {}
    for session in sessions:
        by_repo.setdefault(session.repo_path, []).append(session)

    won: dict[str, list[Commit]] = {s.session_id: [] for s in sessions}
    organic: list[Commit] = []

    for repo_path, history in commits_by_repo.items():
        repo_sessions = by_repo.get(repo_path, [])
        if strategy == MatchStrategy.GREEDY:
            assignment = _assign_greedy(repo_sessions, history.commits)
        else:
            assignment = _assign_nearest(repo_sessions, history.commits)

        for commit in history.commits:
            session = assignment.get(commit.hash)
            if session is None:
                organic.append(commit)
            else:
                won[session.session_id].append(commit)

    unmatched_repos = set(by_repo) - set(commits_by_repo)
    if unmatched_repos:
        logger.debug("No history for %d session repos: %s",
                     len(unmatched_repos), sorted(unmatched_repos))

    correlated = [_build_correlated(s, won[s.session_id]) for s in sessions]
    correlated.sort(key=lambda c: (c.session.start_time, c.session.session_id), reverse=True)
    return CorrelationResult(sessions=correlated, organic_commits=organic)


def _assign_nearest(sessions: list[Session], commits: list[Commit]) -> dict[str, Session]:
    best: dict[str, _Candidate] = {}
    for commit in commits:
        for session in sessions:
            candidate = match_candidate(session, commit)
            if candidate is None:
                continue
            current = best.get(commit.hash)
            if current is None or candidate.rank() < current.rank():
                best[commit.hash] = candidate
    return {h: c.session for h, c in best.items()}


def _assign_greedy(sessions: list[Session], commits: list[Commit]) -> dict[str, Session]:
    # Earlier sessions claim first; sorted so the result stays reproducible.
    assignment: dict[str, Session] = {}
    for session in sorted(sessions, key=lambda s: (s.start_time, s.session_id)):
        for commit in commits:
            if commit.hash in assignment:
                continue
            if match_candidate(session, commit) is not None:
                assignment[commit.hash] = session
    return assignment


def _build_correlated(session: Session, commits: list[Commit]) -> CorrelatedSession:
    written = set(session.files_written)
    commits = sorted(commits, key=lambda c: c.timestamp)

    if written:
        touched = [f for c in commits for f in c.files if f.path in written]
        lines_added = sum(f.added for f in touched)
        lines_deleted = sum(f.deleted for f in touched)
        files_changed = len({f.path for f in touched})
    else:
        lines_added = sum(c.total_added for c in commits)
        lines_deleted = sum(c.total_deleted for c in commits)
        files_changed = len({f.path for c in commits for f in c.files})

    committed = {f.path for c in commits for f in c.files}
    uncommitted = [p for p in session.files_written if p not in committed]

    return CorrelatedSession(
        session=session,
        commits=commits,
        commits_on_default_branch=sum(1 for c in commits if c.on_default_branch),
        lines_added=lines_added,
        lines_deleted=lines_deleted,
        files_changed=files_changed,
        is_orphaned=session.message_count > ORPHAN_MESSAGE_THRESHOLD and not commits,
        matched_by_files=bool(written),
        uncommitted_files=uncommitted,
    )

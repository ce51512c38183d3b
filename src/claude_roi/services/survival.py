"""Same-file churn heuristic for estimating how much added code survives.

Not line provenance: for each file, lines deleted by the next change within
CHURN_WINDOW count as churn, capped by what the earlier change added.
"""

import math
from datetime import timedelta
from typing import Iterable, Mapping

from claude_roi.types import Commit, LineSurvival, RepoHistory

CHURN_WINDOW = timedelta(hours=24)
RATE_STEP = 5


def round_rate(raw_rate: float) -> int:
    """Round half up to the nearest RATE_STEP and clamp to [0, 100]."""
    rounded = int(math.floor(raw_rate / RATE_STEP + 0.5)) * RATE_STEP
    return max(0, min(100, rounded))


def _tally(commits: Iterable[Commit]) -> tuple[int, int]:
    timelines: dict[str, list[tuple]] = {}
    for commit in commits:
        for change in commit.files:
            timelines.setdefault(change.path, []).append(
                (commit.timestamp, change.added, change.deleted))

    total_added = 0
    total_churned = 0
    for events in timelines.values():
        events.sort(key=lambda e: e[0])
        for (ts, added, _), (next_ts, _, next_deleted) in zip(events, events[1:]):
            if next_ts - ts <= CHURN_WINDOW:
                total_churned += min(next_deleted, added)
        total_added += sum(e[1] for e in events)
    return total_added, total_churned


def _survival(total_added: int, total_churned: int) -> LineSurvival:
    if total_added > 0:
        rate = round_rate((total_added - total_churned) / total_added * 100)
    else:
        rate = 100
    return LineSurvival(total_added=total_added, total_churned=total_churned,
                        survival_rate=rate)


def compute_line_survival(commits: Iterable[Commit]) -> LineSurvival:
    """Survival statistics for one repository's commits."""
    return _survival(*_tally(commits))


def compute_survival_by_repo(
    commits_by_repo: Mapping[str, RepoHistory],
) -> tuple[LineSurvival, dict[str, LineSurvival]]:
    """Overall survival across repositories, plus each repository's own."""
    per_repo: dict[str, LineSurvival] = {}
    total_added = 0
    total_churned = 0
    for repo_path, history in commits_by_repo.items():
        added, churned = _tally(history.commits)
        per_repo[repo_path] = _survival(added, churned)
        total_added += added
        total_churned += churned
    return _survival(total_added, total_churned), per_repo

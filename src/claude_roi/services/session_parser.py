"""Streaming JSONL parser turning Claude Code transcripts into Session records."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, Optional

import orjson

from claude_roi.services.session_cache import SessionCache
from claude_roi.types import Session, TokenUsage
from claude_roi.utils.path_codec import (
    extract_project_name,
    resolve_repo_root,
    to_relative_path,
)
from claude_roi.utils.pricing import VERSIONED_PRICING, PricingTable, session_cost

logger = logging.getLogger(__name__)

CLAUDE_PROJECTS_DIR = Path.home() / ".claude" / "projects"

# Max size for a single JSONL line (10MB)
MAX_LINE_SIZE = 10 * 1024 * 1024

SYNTHETIC_MODEL = "<synthetic>"
WRITE_TOOLS = frozenset({"Write", "Edit", "MultiEdit", "NotebookEdit"})
READ_TOOLS = frozenset({"Read"})


@dataclass
class _SessionBuilder:
    """Mutable accumulator for one transcript file."""
    session_id: str
    repo_path: str = ""
    git_branch: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    user_message_count: int = 0
    assistant_message_count: int = 0
    model_usage: dict[str, TokenUsage] = field(default_factory=dict)
    tool_calls: dict[str, int] = field(default_factory=dict)
    files_written: list[str] = field(default_factory=list)
    files_read: list[str] = field(default_factory=list)
    seen_requests: set[str] = field(default_factory=set)

    def touch(self, ts: Optional[datetime]):
        if ts is None:
            return
        if self.start_time is None or ts < self.start_time:
            self.start_time = ts
        if self.end_time is None or ts > self.end_time:
            self.end_time = ts

    def build(self, pricing: PricingTable) -> Optional[Session]:
        if self.start_time is None:
            return None

        repo_root = resolve_repo_root(self.repo_path)
        primary = None
        if self.model_usage:
            primary = max(self.model_usage, key=lambda m: self.model_usage[m].total)

        return Session(
            session_id=self.session_id,
            repo_path=repo_root,
            start_time=self.start_time,
            end_time=self.end_time,
            git_branch=self.git_branch,
            user_message_count=self.user_message_count,
            assistant_message_count=self.assistant_message_count,
            model_usage=self.model_usage,
            cost=session_cost(self.model_usage, pricing),
            model=primary,
            tool_calls=self.tool_calls,
            files_written=_relative_paths(self.files_written, repo_root),
            files_read=_relative_paths(self.files_read, repo_root),
        )


def stream_records(file_path: str | Path) -> Iterator[dict]:
    """Yield each JSON object line of a transcript.

    Malformed lines are logged and skipped.
    Lines exceeding MAX_LINE_SIZE are skipped with a warning.
    """
    path = Path(file_path)
    if not path.exists():
        logger.warning("Session file not found: %s", path)
        return

    line_num = 0
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        for line in f:
            line_num += 1
            line = line.strip()
            if not line:
                continue

            if len(line) > MAX_LINE_SIZE:
                logger.warning(
                    "Line %d in %s exceeds %dMB, skipping",
                    line_num, path.name, MAX_LINE_SIZE // (1024 * 1024),
                )
                continue

            try:
                raw = orjson.loads(line)
            except orjson.JSONDecodeError as e:
                logger.debug("Malformed JSON at line %d in %s: %s", line_num, path.name, e)
                continue

            if isinstance(raw, dict):
                yield raw


def parse_session_file(
    file_path: str | Path,
    pricing: PricingTable = VERSIONED_PRICING,
) -> Optional[Session]:
    """Parse one transcript. Returns None when it holds no timestamped messages."""
    path = Path(file_path)
    builder = _SessionBuilder(session_id=path.stem)

    for raw in stream_records(path):
        record_type = raw.get("type")
        message = raw.get("message")
        if not isinstance(message, dict):
            continue
        if record_type == "user":
            _apply_user_record(builder, raw, message)
        elif record_type == "assistant":
            _apply_assistant_record(builder, raw, message)

    return builder.build(pricing)


def parse_session_with_subagents(
    project_dir: str | Path,
    session_id: str,
    pricing: PricingTable = VERSIONED_PRICING,
) -> Optional[Session]:
    """Parse a main transcript and fold its subagent transcripts into it."""
    project_dir = Path(project_dir)
    session = parse_session_file(project_dir / f"{session_id}.jsonl", pricing)
    if session is None:
        return None

    for sub_path in _subagent_files(project_dir, session_id):
        sub = parse_session_file(sub_path, pricing)
        if sub is not None:
            merge_subagent(session, sub)
    return session


def merge_subagent(parent: Session, sub: Session):
    """Add a subagent run's usage, cost, counts, tools and files to its parent."""
    for model, usage in sub.model_usage.items():
        parent.model_usage.setdefault(model, TokenUsage()).add(usage)
    parent.cost = parent.cost + sub.cost
    parent.user_message_count += sub.user_message_count
    parent.assistant_message_count += sub.assistant_message_count

    for tool, count in sub.tool_calls.items():
        parent.tool_calls[tool] = parent.tool_calls.get(tool, 0) + count
    for path in sub.files_written:
        if path not in parent.files_written:
            parent.files_written.append(path)
    for path in sub.files_read:
        if path not in parent.files_read:
            parent.files_read.append(path)


def discover_session_files(
    projects_dir: str | Path,
    project_filter: Optional[str] = None,
) -> Iterator[tuple[Path, str]]:
    """Yield (transcript path, project name) for every top-level transcript."""
    root = Path(projects_dir)
    if not root.is_dir():
        return

    for folder in sorted(root.iterdir()):
        if folder.name.startswith(".") or not folder.is_dir():
            continue
        if project_filter and project_filter.lower() not in folder.name.lower():
            continue
        project_name = extract_project_name(folder.name)
        try:
            files = sorted(folder.glob("*.jsonl"))
        except OSError:
            logger.debug("Cannot list %s", folder, exc_info=True)
            continue
        for path in files:
            yield path, project_name


def parse_all_projects(
    projects_dir: str | Path = CLAUDE_PROJECTS_DIR,
    days: int = 30,
    project_filter: Optional[str] = None,
    cache: Optional[SessionCache] = None,
    pricing: PricingTable = VERSIONED_PRICING,
    now: Optional[datetime] = None,
) -> list[Session]:
    """Parse every session started within the last ``days`` days.

    Results come back most recent first. With a cache, unchanged transcripts
    are loaded instead of re-parsed.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=days)
    sessions: list[Session] = []

    for path, project_name in discover_session_files(projects_dir, project_filter):
        try:
            stat = path.stat()
        except OSError:
            continue
        if datetime.fromtimestamp(stat.st_mtime, timezone.utc) < cutoff:
            continue

        size, mtime = _transcript_signature(path)
        session = cache.get(str(path), size, mtime) if cache is not None else None
        if session is not None:
            # Cached costs may come from another pricing table.
            session.cost = session_cost(session.model_usage, pricing)
        else:
            try:
                session = parse_session_with_subagents(path.parent, path.stem, pricing)
            except (OSError, ValueError):
                logger.warning("Failed to parse %s", path, exc_info=True)
                continue
            if session is None:
                continue
            if cache is not None:
                cache.put(str(path), size, mtime, session)

        if session.message_count == 0:
            continue
        if session.start_time < cutoff:
            continue
        session.project_name = project_name
        sessions.append(session)

    if cache is not None:
        removed = cache.prune()
        if removed:
            logger.debug("Pruned %d deleted transcripts from cache", removed)

    sessions.sort(key=lambda s: s.start_time, reverse=True)
    logger.info("Parsed %d sessions from %s", len(sessions), projects_dir)
    return sessions


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO 8601 or epoch timestamp into an aware UTC datetime."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 1e12 else value
        return datetime.fromtimestamp(seconds, timezone.utc)
    if isinstance(value, str) and value:
        try:
            # ISO 8601 format: "2026-02-13T12:00:00.000Z"
            ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts
    return None


def _apply_user_record(builder: _SessionBuilder, raw: dict, message: dict):
    if not builder.repo_path and raw.get("cwd"):
        builder.repo_path = raw["cwd"]
    if not builder.git_branch and raw.get("gitBranch"):
        builder.git_branch = raw["gitBranch"]
    if raw.get("sessionId"):
        builder.session_id = raw["sessionId"]
    builder.touch(parse_timestamp(raw.get("timestamp")))

    # Tool results arrive as user records; only real text counts as a message.
    content = message.get("content")
    if isinstance(content, str):
        builder.user_message_count += 1
    elif isinstance(content, list):
        if any(isinstance(b, dict) and b.get("type") == "text" for b in content):
            builder.user_message_count += 1


def _apply_assistant_record(builder: _SessionBuilder, raw: dict, message: dict):
    if message.get("model") == SYNTHETIC_MODEL:
        return
    builder.touch(parse_timestamp(raw.get("timestamp")))

    # Split messages repeat usage under one requestId; count it once.
    request_id = raw.get("requestId")
    is_new_request = not request_id or request_id not in builder.seen_requests
    if request_id:
        builder.seen_requests.add(request_id)

    if is_new_request:
        usage = message.get("usage")
        if isinstance(usage, dict):
            model = message.get("model") or "unknown"
            builder.model_usage.setdefault(model, TokenUsage()).add(TokenUsage(
                input_tokens=_count(usage.get("input_tokens")),
                output_tokens=_count(usage.get("output_tokens")),
                cache_read_tokens=_count(usage.get("cache_read_input_tokens")),
                cache_creation_tokens=_count(usage.get("cache_creation_input_tokens")),
            ))
        builder.assistant_message_count += 1

    content = message.get("content")
    if isinstance(content, list):
        _extract_tool_use(builder, content)


def _extract_tool_use(builder: _SessionBuilder, content: list):
    for block in content:
        if not isinstance(block, dict) or block.get("type") != "tool_use":
            continue
        name = block.get("name")
        if not name:
            continue
        builder.tool_calls[name] = builder.tool_calls.get(name, 0) + 1

        tool_input = block.get("input")
        file_path = tool_input.get("file_path") if isinstance(tool_input, dict) else None
        if not file_path:
            continue
        if name in WRITE_TOOLS:
            if file_path not in builder.files_written:
                builder.files_written.append(file_path)
        elif name in READ_TOOLS:
            if file_path not in builder.files_read:
                builder.files_read.append(file_path)


def _count(value) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return 0


def _relative_paths(paths: list[str], repo_root: str) -> list[str]:
    if not repo_root:
        return list(paths)
    result = []
    for path in paths:
        rel = to_relative_path(path, repo_root)
        if rel and rel not in result:
            result.append(rel)
    return result


def _subagent_files(project_dir: Path, session_id: str) -> list[Path]:
    subagent_dir = project_dir / session_id / "subagents"
    if not subagent_dir.is_dir():
        return []
    try:
        return sorted(subagent_dir.glob("*.jsonl"))
    except OSError:
        logger.debug("Cannot read subagent directory %s", subagent_dir, exc_info=True)
        return []


def _transcript_signature(path: Path) -> tuple[int, float]:
    """Combined size and newest mtime of a transcript and its subagents."""
    files = [path, *_subagent_files(path.parent, path.stem)]
    size = 0
    mtime = 0.0
    for f in files:
        try:
            st = f.stat()
        except OSError:
            continue
        size += st.st_size
        mtime = max(mtime, st.st_mtime)
    return size, mtime

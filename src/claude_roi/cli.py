"""Command line entry point: parse, correlate, measure, then print or serve."""

import argparse
import logging
import os
import socket
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from claude_roi.serialization import dumps, report_to_dict
from claude_roi.services.config_manager import ConfigManager
from claude_roi.services.correlator import MatchStrategy, correlate_sessions
from claude_roi.services.git_analyzer import analyze_git_repo, get_git_user
from claude_roi.services.metrics import compute_metrics
from claude_roi.services.session_cache import SessionCache
from claude_roi.services.session_parser import parse_all_projects
from claude_roi.utils.logging_config import LOG_LEVEL_ENV, log_timing, setup_logging
from claude_roi.utils.pricing import PRICING_TABLES

logger = logging.getLogger(__name__)

VERSION = "0.2.0"


@dataclass
class RunOptions:
    projects_dir: Path
    days: int
    project: Optional[str]
    matching: MatchStrategy
    pricing: str
    use_cache: bool
    refresh: bool


def _progress(message: str):
    print(message, file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="claude-roi",
        description="Correlate Claude Code token usage with git output to measure AI coding agent ROI",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-d", "--days", type=int, help="number of days to look back")
    parser.add_argument("--project", help="only include project folders containing this name")
    parser.add_argument("--projects-dir", help="Claude Code projects directory")
    parser.add_argument("--json", action="store_true", help="print the report as JSON and exit")
    parser.add_argument("-p", "--port", type=int, help="port for the JSON API")
    parser.add_argument("--refresh", action="store_true", help="ignore and rebuild the parse cache")
    parser.add_argument("--no-cache", action="store_true", help="do not read or write the parse cache")
    parser.add_argument("--matching", choices=[s.value for s in MatchStrategy],
                        help="commit-to-session matching strategy")
    parser.add_argument("--pricing", choices=sorted(PRICING_TABLES), help="pricing table")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    return parser


def _stored_choice(config: ConfigManager, key: str, choices) -> str:
    """A stored setting, reset to its default when it is not one of ``choices``."""
    value = config.get_string(key)
    if value not in choices:
        logger.warning("Ignoring invalid %s setting %r", key, value)
        config.reset(key)
        value = config.get_string(key)
    return value


def resolve_options(args: argparse.Namespace, config: ConfigManager) -> RunOptions:
    """Command line flags win over stored settings."""
    projects_dir = args.projects_dir or config.get_string("general/projectsDir")
    matching = args.matching or _stored_choice(
        config, "general/matching", [s.value for s in MatchStrategy])
    pricing = args.pricing or _stored_choice(config, "general/pricing", PRICING_TABLES)
    return RunOptions(
        projects_dir=Path(projects_dir).expanduser(),
        days=args.days if args.days is not None else config.get_int("general/days"),
        project=args.project,
        matching=MatchStrategy(matching),
        pricing=pricing,
        use_cache=config.get_bool("cache/enabled") and not args.no_cache,
        refresh=args.refresh,
    )


def build_report(options: RunOptions) -> Optional[dict]:
    """Run the whole pipeline. Returns None when no sessions were found."""
    pricing = PRICING_TABLES.get(options.pricing)
    if pricing is None:
        raise ValueError(f"Unknown pricing table: {options.pricing}")

    cache = SessionCache() if options.use_cache else None
    try:
        if cache is not None and options.refresh:
            cache.clear()
            _progress("Cache cleared, performing full parse...")

        start = time.perf_counter()
        with log_timing(logger, "Session parsing"):
            sessions = parse_all_projects(
                options.projects_dir, options.days, options.project,
                cache=cache, pricing=pricing,
            )
        _progress(f"Parsing sessions... {len(sessions)} found "
                  f"({(time.perf_counter() - start) * 1000:.0f}ms)")
    finally:
        if cache is not None:
            cache.close()

    if not sessions:
        return None

    start = time.perf_counter()
    git_user = get_git_user()
    repo_paths = sorted({s.repo_path for s in sessions if s.repo_path})
    with log_timing(logger, "Git analysis"):
        commits_by_repo = {
            repo: analyze_git_repo(repo, options.days, author_email=git_user["email"])
            for repo in repo_paths
        }
    _progress(f"Analyzing {len(repo_paths)} git repo(s)... done "
              f"({(time.perf_counter() - start) * 1000:.0f}ms)")

    with log_timing(logger, "Correlation"):
        result = correlate_sessions(sessions, commits_by_repo, options.matching)
    _progress("Correlating sessions with commits... done")

    with log_timing(logger, "Metrics"):
        report = compute_metrics(result, commits_by_repo, days=options.days,
                                 pricing=pricing, git_user=git_user)
    return report_to_dict(report)


def check_port(host: str, port: int) -> Optional[OSError]:
    """Try binding ``host:port``; returns the error when it is unavailable."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as e:
            return e
    return None


def serve(payload: dict, options: RunOptions, host: str, port: int) -> int:
    import uvicorn

    from claude_roi.server import create_app

    # uvicorn exits the process itself on bind failures
    error = check_port(host, port)
    if error is not None:
        _progress(f"Could not listen on {host}:{port} ({error}). Try: claude-roi --port {port + 1}")
        return 1

    app = create_app(payload, rebuild=lambda: build_report(options))
    _progress(f"Dashboard API: http://{host}:{port}/api/summary")
    uvicorn.run(app, host=host, port=port, log_level="warning")
    return 0


def run(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = ConfigManager()
    setup_logging(args.log_level
                  or os.environ.get(LOG_LEVEL_ENV)
                  or config.get_string("advanced/logLevel"))
    options = resolve_options(args, config)

    _progress(f"claude-roi v{VERSION}")
    payload = build_report(options)
    if payload is None:
        _progress("No Claude Code sessions found.")
        _progress(f"Make sure session files exist in {options.projects_dir}")
        return 0

    if args.json:
        sys.stdout.buffer.write(dumps(payload, indent=True))
        sys.stdout.buffer.write(b"\n")
        return 0

    port = args.port if args.port is not None else config.get_int("server/port")
    return serve(payload, options, config.get_string("server/host"), port)

"""
Local JSON API serving a computed report.
"""

import logging
from typing import Callable, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query

logger = logging.getLogger(__name__)

API_TITLE = "claude-roi"
API_VERSION = "0.2.0"

Rebuild = Callable[[], Optional[dict]]


class _ReportState:
    def __init__(self, payload: dict, rebuild: Optional[Rebuild]):
        self.payload = payload
        self.rebuild = rebuild


def _sort_value(value):
    if value is None:
        return 0
    return value


def _default_branch_only(session: dict) -> dict:
    """Restrict a session dict to its default-branch commits.

    Lines follow the correlator's rule: file-matched sessions count only the
    files they wrote, chat-only sessions count whole commits.
    """
    commits = [c for c in session["commits"] if c["onMain"]]
    if session["matchedByFiles"]:
        written = set(session["filesWritten"])
        touched = [f for c in commits for f in c["files"] if f["path"] in written]
        added = sum(f["added"] for f in touched)
        deleted = sum(f["deleted"] for f in touched)
        files_changed = len({f["path"] for f in touched})
    else:
        added = sum(c["totalAdded"] for c in commits)
        deleted = sum(c["totalDeleted"] for c in commits)
        files_changed = len({f["path"] for c in commits for f in c["files"]})
    return {
        **session,
        "commits": commits,
        "commitCount": len(commits),
        "commitsOnMain": len(commits),
        "linesAdded": added,
        "linesDeleted": deleted,
        "netLines": added - deleted,
        "filesChanged": files_changed,
    }


def create_app(payload: dict, rebuild: Optional[Rebuild] = None) -> FastAPI:
    """Build the API around a report dict as produced by ``report_to_dict``."""
    state = _ReportState(payload, rebuild)
    router = APIRouter(prefix="/api")

    @router.get("/all")
    def get_all() -> dict:
        return state.payload

    @router.get("/summary")
    def get_summary() -> dict:
        return {
            **state.payload["meta"],
            **state.payload["summary"],
            "insights": state.payload["insights"],
        }

    @router.get("/timeline")
    def get_timeline() -> list:
        return state.payload["daily"]

    @router.get("/sessions")
    def list_sessions(
        page: int = Query(1, ge=1),
        limit: int = Query(50, ge=1, le=1000),
        sort: str = Query("startTime"),
        order: str = Query("desc"),
        mainOnly: bool = Query(False),
    ) -> dict:
        sessions = state.payload["sessions"]
        if mainOnly:
            sessions = [_default_branch_only(s) for s in sessions]

        def key(session):
            value = _sort_value(session.get(sort))
            # Keeps columns mixing strings and numbers comparable.
            return (isinstance(value, str), value)

        try:
            sessions = sorted(sessions, key=key, reverse=order != "asc")
        except TypeError:
            raise HTTPException(status_code=400, detail=f"Cannot sort by {sort}")

        start = (page - 1) * limit
        return {
            "sessions": sessions[start:start + limit],
            "total": len(sessions),
            "page": page,
            "limit": limit,
        }

    @router.get("/session/{session_id}")
    def get_session(session_id: str) -> dict:
        for session in state.payload["sessions"]:
            if session["sessionId"] == session_id:
                return session
        logger.debug("Session not found: %s", session_id)
        raise HTTPException(status_code=404, detail="Session not found")

    @router.get("/models")
    def get_models() -> dict:
        return state.payload["modelBreakdown"]

    @router.get("/heatmap")
    def get_heatmap() -> dict:
        return state.payload["heatmap"]

    @router.get("/projects")
    def get_projects() -> list:
        return state.payload["projects"]

    @router.get("/buckets")
    def get_buckets() -> dict:
        return state.payload["sessionBuckets"]

    @router.get("/tools")
    def get_tools() -> dict:
        return state.payload["toolBreakdown"]

    @router.get("/survival")
    def get_survival() -> dict:
        return state.payload["lineSurvival"]

    @router.get("/tokens")
    def get_tokens() -> dict:
        return state.payload["tokenAnalytics"]

    @router.post("/refresh")
    def refresh() -> dict:
        if state.rebuild is None:
            raise HTTPException(status_code=501, detail="Refresh not available")
        try:
            new_payload = state.rebuild()
        except Exception as e:
            logger.exception("Refresh failed")
            raise HTTPException(status_code=500, detail=str(e))
        if new_payload is None:
            raise HTTPException(status_code=404, detail="No sessions found after refresh")
        state.payload = new_payload
        logger.info("Report refreshed")
        return {"ok": True}

    app = FastAPI(title=API_TITLE, version=API_VERSION)
    app.include_router(router)
    return app

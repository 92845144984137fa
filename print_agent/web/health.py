from __future__ import annotations

"""
Health endpoint for the print agent.

This blueprint exposes `/healthz`, reporting:
- Overall status ("ok" or "degraded")
- Per-printer session state
- Size of the dispatch history
"""

from typing import Any, Dict

from flask import Blueprint, current_app

from print_agent.printing.dispatcher import list_jobs

health_bp = Blueprint("health", __name__)


@health_bp.get("/healthz")
def healthz():
    status: Dict[str, Any] = {"status": "ok"}
    supervisor = current_app.config.get("SUPERVISOR")
    if supervisor is None:
        status["status"] = "degraded"
        status["reason"] = "no_supervisor"
        return status, 200

    sessions = supervisor.session_states()
    status["sessions"] = sessions
    status["jobs_recorded"] = len(list_jobs())
    if not sessions:
        status["status"] = "degraded"
        status["reason"] = "no_sessions"
    elif not supervisor.healthy():
        status["status"] = "degraded"
        status["reason"] = "session_not_active"
    return status, 200

from __future__ import annotations

"""
Dispatch history endpoints for the print agent.

This blueprint exposes:
- GET /jobs: JSON list of recent dispatches, newest first
- GET /jobs/<entry_id>: JSON status for a specific dispatch (404 if not found)
"""

from typing import Any, Dict, Optional

from flask import Blueprint, current_app

from print_agent.printing.dispatcher import get_job, list_jobs

jobs_bp = Blueprint("jobs", __name__)


@jobs_bp.get("/jobs/<entry_id>")
def job_status(entry_id: str):
    job: Optional[Dict[str, Any]] = get_job(entry_id)
    if job:
        return job
    current_app.logger.info("GET /jobs/%s not found", entry_id)
    return {"error": "not_found"}, 404


@jobs_bp.get("/jobs")
def jobs_list():
    jobs = list_jobs()
    return {"jobs": jobs, "count": len(jobs)}

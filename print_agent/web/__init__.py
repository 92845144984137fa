"""
Local status endpoints for the print agent.

Exposes blueprints for:
- Health endpoint: health_bp
- Dispatch history: jobs_bp
"""

from .health import health_bp
from .jobs import jobs_bp

__all__ = ["health_bp", "jobs_bp"]

"""
Print agent package

Field agent that discovers network printers, keeps one duplex session per
printer open to the order backend, and prints the jobs it receives.

This module provides the factory for the small local status app:
- Configures logging
- Creates a Flask app exposing the health and dispatch-history blueprints
- Attaches the running Supervisor so the endpoints can report session state
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from flask import Flask

from print_agent.core.logging import configure_logging

if TYPE_CHECKING:
    from print_agent.supervisor import Supervisor

__version__ = "1.0.0"


def create_app(supervisor: Optional["Supervisor"] = None, config_overrides: Optional[dict] = None) -> Flask:
    """
    Application factory.

    Parameters:
    - supervisor: the running Supervisor; /healthz reports degraded without one
    - config_overrides: values to inject into app.config after defaults

    Returns:
    - Flask app instance
    """
    from print_agent.web import health_bp, jobs_bp

    app = Flask("print_agent")
    app.url_map.strict_slashes = False
    app.config["SUPERVISOR"] = supervisor

    if not logging.getLogger().handlers:
        configure_logging()

    app.register_blueprint(health_bp)
    app.register_blueprint(jobs_bp)

    if config_overrides:
        app.config.update(config_overrides)

    return app


__all__ = ["__version__", "create_app"]

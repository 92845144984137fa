"""
Core utilities for the print agent.

This package groups helpers used across the agent:
- config: paths, JSON load/save, Config load-or-bootstrap
- logging: printer-context log filter, JSON formatter, root logger config
- models: Printer, PrinterType, Config
- registry: the persisted printer registry
- errors: exception hierarchy
"""

from .config import (
    ensure_dir,
    get_config_path,
    get_printers_path,
    get_work_dir,
    load_config,
    load_or_bootstrap_config,
    save_config,
)
from .errors import PrintAgentError
from .logging import JsonFormatter, PrinterContextFilter, configure_logging, log_context
from .models import Config, Printer, PrinterType
from .registry import PrinterRegistry

__all__ = [
    # config
    "ensure_dir",
    "get_config_path",
    "get_printers_path",
    "get_work_dir",
    "load_config",
    "load_or_bootstrap_config",
    "save_config",
    # logging
    "configure_logging",
    "log_context",
    "JsonFormatter",
    "PrinterContextFilter",
    # models
    "Config",
    "Printer",
    "PrinterType",
    "PrinterRegistry",
    "PrintAgentError",
]

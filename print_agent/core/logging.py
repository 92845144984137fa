"""
Logging utilities for the print agent.

- PrinterContextFilter attaches the printer a thread is working for (set via
  log_context) so every line from a session thread is attributable
- JsonFormatter for structured logs when PRINTAGENT_JSON_LOGS=true
- configure_logging() initializes root logging with journald or console
"""

from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from typing import Iterator

_context = threading.local()


def current_printer() -> str:
    return getattr(_context, "printer", "-")


@contextmanager
def log_context(printer: str) -> Iterator[None]:
    """
    Tag log records emitted by the current thread with a printer name.
    """
    previous = getattr(_context, "printer", None)
    _context.printer = printer
    try:
        yield
    finally:
        if previous is None:
            del _context.printer
        else:
            _context.printer = previous


class PrinterContextFilter(logging.Filter):
    """
    Attach the thread's printer name to log records ("-" outside a session).
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        record.printer = current_printer()
        return True


class JsonFormatter(logging.Formatter):
    """
    Minimal JSON formatter that includes timestamp, level, logger, message and printer.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        from json import dumps

        base = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "printer": getattr(record, "printer", "-"),
        }
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return dumps(base, ensure_ascii=False)


def configure_logging() -> logging.Logger:
    """
    Configure root logging for the agent.

    Behavior:
    - Sets root logger to PRINTAGENT_LOG_LEVEL (default INFO)
    - Clears any existing handlers to avoid duplicates on repeated calls
    - Chooses JSON or plain formatter based on PRINTAGENT_JSON_LOGS
    - Prefer systemd's JournalHandler, fallback to StreamHandler
    - Adds PrinterContextFilter so formatters can reference %(printer)s

    Returns the configured root logger.
    """
    root = logging.getLogger()
    level = os.environ.get("PRINTAGENT_LOG_LEVEL", "INFO").upper()
    root.setLevel(getattr(logging, level, logging.INFO))

    root.handlers = []

    json_logs = os.environ.get("PRINTAGENT_JSON_LOGS", "false").lower() in ("1", "true", "yes")
    formatter: logging.Formatter
    if json_logs:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("[%(asctime)s] %(levelname)s [%(printer)s] %(message)s")

    # Prefer systemd journal when available
    try:
        from systemd.journal import JournalHandler  # type: ignore

        handler: logging.Handler = JournalHandler(SYSLOG_IDENTIFIER="print-agent")
        handler.setFormatter(formatter)
    except Exception:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)

    handler.addFilter(PrinterContextFilter())
    root.addHandler(handler)

    # werkzeug logs every status request at INFO
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    return root


__all__ = ["JsonFormatter", "PrinterContextFilter", "configure_logging", "current_printer", "log_context"]

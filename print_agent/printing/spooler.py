"""
OS print-spooler sink for non-thermal (inkjet/laser) printers.

The rendered document is handed to the platform's print command; the
printer is addressed by its queue name, or by its network address when no
name is configured. A non-zero exit status or anything on stderr counts as
a failed print.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from typing import List, Optional, Sequence

from print_agent.core.errors import SpoolerError
from print_agent.core.models import Printer

logger = logging.getLogger(__name__)

SPOOLER_TIMEOUT = 60


def default_command(platform: Optional[str] = None) -> List[str]:
    """Command template; {printer} and {path} are substituted per job."""
    platform = platform or sys.platform
    if platform.startswith("win"):
        return ["mspaint", "/pt", "{path}", "{printer}"]
    return ["lp", "-d", "{printer}", "{path}"]


def queue_name(printer: Printer) -> str:
    return printer.name or printer.ip


class SpoolerSink:
    def __init__(self, command: Optional[Sequence[str]] = None, timeout: float = SPOOLER_TIMEOUT):
        self.command = list(command) if command else default_command()
        self.timeout = timeout

    def build_command(self, printer: Printer, path: str) -> List[str]:
        target = queue_name(printer)
        return [part.replace("{printer}", target).replace("{path}", path) for part in self.command]

    def submit(self, printer: Printer, path: str) -> None:
        """
        Print the document at `path` on `printer`.

        Raises:
            SpoolerError on a missing command, non-zero exit, timeout, or stderr output.
        """
        cmd = self.build_command(printer, path)
        if shutil.which(cmd[0]) is None:
            raise SpoolerError(f"Print command not found: {cmd[0]}")
        logger.info("Spooling %s to %s via %s", path, queue_name(printer), cmd[0])
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout, check=False)
        except subprocess.TimeoutExpired as e:
            raise SpoolerError(f"Print command timed out after {self.timeout}s") from e
        except OSError as e:
            raise SpoolerError(f"Print command failed to start: {e}") from e

        stderr = (proc.stderr or "").strip()
        if proc.returncode != 0:
            raise SpoolerError(f"Print command exited with {proc.returncode}: {stderr or 'no output'}")
        if stderr:
            raise SpoolerError(f"Print command reported an error: {stderr}")
        logger.debug("Spooler output: %s", (proc.stdout or "").strip())


__all__ = ["SpoolerSink", "default_command", "queue_name"]

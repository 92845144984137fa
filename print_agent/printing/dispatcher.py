"""
Job dispatch: render, deliver to the physical printer, report back.

This module owns:
- The sink table mapping each PrinterType to its delivery mechanism
  (raw ESC/POS over TCP for thermal printers, the OS spooler otherwise)
- JobDispatcher, which turns one Job into a `printed` or `print_failed`
  session message
- A bounded in-memory history of dispatches (queued -> running -> success/error)
  for the local status endpoints

Dispatch never raises: every failure becomes a print_failed result. Rendered
artifacts are deleted after a successful print and kept after a failure so
the operator can inspect what was (not) printed.
"""

from __future__ import annotations

import logging
import os
import threading
import time
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from PIL import Image

from print_agent.core.config import ensure_dir, get_work_dir
from print_agent.core.errors import DispatchError, JobValidationError, RenderError, TransmissionError
from print_agent.core.models import DEFAULT_THERMAL_WIDTH, Config, Printer, PrinterType
from print_agent.printing.raster import build_print_job
from print_agent.printing.render import Renderer
from print_agent.printing.spooler import SpoolerSink
from print_agent.session.messages import Job, SessionMessage

logger = logging.getLogger(__name__)

# Page width used when rendering for spooler printers (A4 at ~150 dpi).
DOCUMENT_WIDTH = 1240

JOBS: Dict[str, Dict[str, Any]] = {}
JOBS_LOCK = threading.RLock()
JOBS_MAX = int(os.environ.get("PRINTAGENT_JOBS_MAX", "200"))


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _prune_jobs_if_needed() -> None:
    with JOBS_LOCK:
        while len(JOBS) > JOBS_MAX:
            oldest_id = min(JOBS.values(), key=lambda j: j.get("created_at", ""))["id"]
            JOBS.pop(oldest_id, None)


def _create_job(meta: Optional[Dict[str, Any]] = None) -> str:
    entry_id = uuid.uuid4().hex
    now = _utc_now_iso()
    entry = {
        "id": entry_id,
        "status": "queued",
        "created_at": now,
        "updated_at": now,
    }
    if meta:
        entry.update(meta)
    with JOBS_LOCK:
        JOBS[entry_id] = entry
        _prune_jobs_if_needed()
    return entry_id


def _update_job(entry_id: Optional[str], **updates: Any) -> None:
    if not entry_id:
        return
    with JOBS_LOCK:
        entry = JOBS.get(entry_id)
        if not entry:
            return
        entry.update(updates)
        entry["updated_at"] = _utc_now_iso()


def get_job(entry_id: str) -> Optional[Dict[str, Any]]:
    with JOBS_LOCK:
        entry = JOBS.get(entry_id)
        return dict(entry) if entry else None


def list_jobs() -> List[Dict[str, Any]]:
    """
    Return dispatch history sorted by created_at descending.
    """
    with JOBS_LOCK:
        items = [dict(v) for v in JOBS.values()]
    items.sort(key=lambda j: j.get("created_at", ""), reverse=True)
    return items


class Sink(Protocol):
    render_width: Optional[int]

    def prepare(self, printer: Printer, image: Image.Image, path: str) -> Any: ...

    def send(self, printer: Printer, prepared: Any) -> None: ...


class RawSocketSink:
    """
    Thermal printers: ESC/POS raster over a fresh TCP connection per copy.
    """

    render_width: Optional[int] = None

    def __init__(self, timeout: float = 5.0, drain_delay: float = 0.5):
        self.timeout = timeout
        self.drain_delay = drain_delay

    def _connect_printer(self, printer: Printer):
        from escpos.printer import Network

        return Network(printer.ip, printer.port, timeout=self.timeout)

    def prepare(self, printer: Printer, image: Image.Image, path: str) -> bytes:
        return build_print_job(image, printer.raster_width or DEFAULT_THERMAL_WIDTH)

    def send(self, printer: Printer, prepared: bytes) -> None:
        from escpos.exceptions import DeviceNotFoundError

        logger.info("Sending %d bytes to %s", len(prepared), printer.address)
        p = self._connect_printer(printer)
        try:
            p.open()
            p._raw(prepared)
            # Closing right away can truncate the job on printers with small buffers.
            time.sleep(self.drain_delay)
        except (DeviceNotFoundError, OSError) as e:
            raise TransmissionError(f"Printer {printer.address} unreachable: {e}") from e
        finally:
            try:
                p.close()
            except OSError as e:
                logger.debug("Closing connection to %s failed: %s", printer.address, e)


class SpoolSink:
    """
    Inkjet/laser printers: the rendered PNG goes through the OS spooler.
    """

    render_width: Optional[int] = DOCUMENT_WIDTH

    def __init__(self, spooler: Optional[SpoolerSink] = None):
        self.spooler = spooler or SpoolerSink()

    def prepare(self, printer: Printer, image: Image.Image, path: str) -> str:
        return path

    def send(self, printer: Printer, prepared: str) -> None:
        self.spooler.submit(printer, prepared)


def default_sinks(config: Config) -> Dict[PrinterType, Sink]:
    raw = RawSocketSink(timeout=config.printer_timeout, drain_delay=config.drain_delay)
    spool = SpoolSink()
    return {
        PrinterType.THERMAL: raw,
        # Records written before the type field existed are thermal printers.
        PrinterType.UNSET: raw,
        PrinterType.INKJET: spool,
        PrinterType.LASER: spool,
    }


class JobDispatcher:
    def __init__(
        self,
        config: Config,
        renderer: Optional[Renderer] = None,
        sinks: Optional[Mapping[PrinterType, Sink]] = None,
        work_dir: Optional[str] = None,
    ):
        self.config = config
        self.renderer = renderer or Renderer(config)
        self.sinks: Dict[PrinterType, Sink] = dict(sinks) if sinks is not None else default_sinks(config)
        self.work_dir = work_dir or get_work_dir(config)

    def _validate(self, printer: Printer, job: Job) -> Sink:
        content = job.content
        if job.is_empty or (isinstance(content, str) and not content.strip()):
            raise JobValidationError("job has no printable content")
        sink = self.sinks.get(printer.kind)
        if sink is None:
            raise JobValidationError(f"unsupported printer type: {printer.type or 'unset'}")
        return sink

    def _artifact_path(self, printer: Printer, job: Job) -> str:
        owner = printer.credential or printer.ip.replace(".", "_")
        ident = job.job_id or uuid.uuid4().hex[:12]
        return str(Path(ensure_dir(self.work_dir)) / f"{owner}_order_{ident}.png")

    def _render(self, printer: Printer, job: Job, sink: Sink) -> Image.Image:
        width = sink.render_width or printer.raster_width or DEFAULT_THERMAL_WIDTH
        try:
            return self.renderer.render(job, width)
        except DispatchError:
            raise
        except Exception as e:
            raise RenderError(f"Rendering failed: {e}") from e

    def dispatch(self, printer: Printer, job: Job) -> SessionMessage:
        """
        Print `job` on `printer` and return the result message to send upstream.
        """
        copies = max(1, job.copies)
        entry_id = _create_job(
            {"printer": printer.label, "job_id": job.job_id, "copies": copies, "printer_type": printer.type},
        )
        _update_job(entry_id, status="running")
        logger.info("Dispatching job %s to %s (%d cop%s)", job.job_id or "-", printer.label, copies, "y" if copies == 1 else "ies")

        path: Optional[str] = None
        printed = 0
        try:
            sink = self._validate(printer, job)
            image = self._render(printer, job, sink)
            path = self._artifact_path(printer, job)
            try:
                image.save(path, format="PNG")
            except OSError as e:
                raise RenderError(f"Cannot write rendered artifact {path}: {e}") from e
            logger.debug("Rendered job %s to %s", job.job_id or "-", path)

            prepared = sink.prepare(printer, image, path)
            for n in range(1, copies + 1):
                sink.send(printer, prepared)
                printed = n
                logger.info("Printed copy %d/%d of job %s", n, copies, job.job_id or "-")
        except DispatchError as e:
            logger.error("Job %s failed on %s: %s", job.job_id or "-", printer.label, e)
            if path:
                logger.info("Keeping rendered artifact for inspection: %s", path)
            _update_job(entry_id, status="error", error=str(e), printed=printed)
            return SessionMessage.print_failed(printer.credential, str(e), job_id=job.job_id)
        except Exception as e:
            logger.exception("Unexpected error dispatching job %s: %s", job.job_id or "-", e)
            _update_job(entry_id, status="error", error=str(e), printed=printed)
            return SessionMessage.print_failed(printer.credential, f"internal error: {e}", job_id=job.job_id)

        _update_job(entry_id, status="success", printed=printed)
        try:
            os.remove(path)
            logger.debug("Removed rendered artifact %s", path)
        except OSError as e:
            logger.warning("Failed to delete rendered artifact %s: %s", path, e)
        return SessionMessage.printed(printer.credential, job_id=job.job_id)


__all__ = [
    "DOCUMENT_WIDTH",
    "JOBS",
    "JOBS_MAX",
    "JobDispatcher",
    "RawSocketSink",
    "Sink",
    "SpoolSink",
    "default_sinks",
    "get_job",
    "list_jobs",
]

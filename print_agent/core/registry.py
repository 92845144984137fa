"""
Printer registry: the set of printers known to this agent, keyed by IP.

Discovery and backend sync only ever append printers with new IPs; an
existing record always wins so local edits (names, issued credentials)
survive. Records are persisted as an ordered JSON array.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable
from typing import Dict, List, Optional

from pydantic import ValidationError

from print_agent.core.config import get_printers_path, load_json, save_json
from print_agent.core.errors import RegistryError
from print_agent.core.models import LEGACY_RASTER_WIDTH, Printer

logger = logging.getLogger(__name__)


def _with_default_width(printer: Printer) -> Printer:
    if printer.raster_width <= 0:
        return printer.model_copy(update={"raster_width": LEGACY_RASTER_WIDTH})
    return printer


class PrinterRegistry:
    def __init__(self, path: Optional[str] = None, printers: Optional[Iterable[Printer]] = None):
        self.path = path or get_printers_path()
        self._lock = threading.RLock()
        self._printers: List[Printer] = []
        if printers:
            self.merge(printers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._printers)

    def __iter__(self):
        return iter(self.all())

    def all(self) -> List[Printer]:
        """Return a snapshot copy of the registered printers, in insertion order."""
        with self._lock:
            return [p.model_copy() for p in self._printers]

    def get(self, ip: str) -> Optional[Printer]:
        with self._lock:
            for p in self._printers:
                if p.ip == ip:
                    return p.model_copy()
        return None

    def merge(self, incoming: Iterable[Printer]) -> List[Printer]:
        """
        Append printers whose IP is not yet registered; drop the rest.
        Returns the printers that were actually added.
        """
        added: List[Printer] = []
        with self._lock:
            known = {p.ip for p in self._printers}
            for printer in incoming:
                if printer.ip in known:
                    logger.debug("Registry already has %s; keeping existing entry", printer.ip)
                    continue
                printer = _with_default_width(printer)
                self._printers.append(printer)
                known.add(printer.ip)
                added.append(printer.model_copy())
        if added:
            logger.info("Registry: added %d printer(s): %s", len(added), ", ".join(p.ip for p in added))
        return added

    def set_credential(self, ip: str, credential: str) -> Printer:
        """
        Record the credential issued for one printer. Only that record changes.
        """
        with self._lock:
            for i, p in enumerate(self._printers):
                if p.ip == ip:
                    self._printers[i] = p.model_copy(update={"credential": credential})
                    return self._printers[i].model_copy()
        raise KeyError(ip)

    def load(self) -> "PrinterRegistry":
        """
        Replace in-memory state with the persisted records. A missing file
        is an empty registry.
        """
        try:
            data = load_json(self.path)
        except (OSError, json.JSONDecodeError) as e:
            raise RegistryError(f"Cannot read printer registry {self.path}: {e}") from e
        if data is None:
            data = []
        if not isinstance(data, list):
            raise RegistryError(f"Printer registry {self.path} is not a JSON array")
        try:
            loaded = [Printer.model_validate(item) for item in data]
        except ValidationError as e:
            raise RegistryError(
                f"Invalid printer record in {self.path}",
                {"errors": e.errors(include_url=False)},
            ) from e
        with self._lock:
            self._printers = []
        self.merge(loaded)
        logger.info("Loaded %d printer(s) from %s", len(self), self.path)
        return self

    def save(self) -> None:
        """
        Persist the registry, merging with whatever is already on disk so a
        concurrent edit of the file is never clobbered by a stale copy.
        """
        try:
            on_disk = load_json(self.path) or []
        except (OSError, json.JSONDecodeError) as e:
            raise RegistryError(f"Cannot read printer registry {self.path}: {e}") from e

        with self._lock:
            mine: Dict[str, Printer] = {p.ip: p for p in self._printers}
            records: List[dict] = []
            seen = set()
            # Existing file order first; our copy of a record replaces the file's.
            for item in on_disk if isinstance(on_disk, list) else []:
                ip = item.get("ip") if isinstance(item, dict) else None
                if not ip or ip in seen:
                    continue
                seen.add(ip)
                if ip in mine:
                    records.append(mine[ip].to_record())
                else:
                    item.setdefault("size", LEGACY_RASTER_WIDTH)
                    if not item["size"]:
                        item["size"] = LEGACY_RASTER_WIDTH
                    records.append(item)
            for p in self._printers:
                if p.ip not in seen:
                    seen.add(p.ip)
                    records.append(p.to_record())

        try:
            save_json(records, self.path)
        except OSError as e:
            raise RegistryError(f"Cannot write printer registry {self.path}: {e}") from e
        logger.info("Saved %d printer(s) to %s", len(records), self.path)


__all__ = ["PrinterRegistry"]

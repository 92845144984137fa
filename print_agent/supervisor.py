"""
Agent orchestration.

The Supervisor owns the Config and the PrinterRegistry for the lifetime of
the process. Registry mutation (discovery, backend sync, credential
assignment) happens here, on the main thread, before any session starts;
afterwards each SessionClient only reads its own Printer.
"""

from __future__ import annotations

import logging
import signal
import threading
from typing import Dict, List, Optional

from print_agent.backend.api import AuthClient
from print_agent.core.errors import LocalAddressError, RegistrationError
from print_agent.core.models import DEFAULT_RAW_PORT, DEFAULT_THERMAL_WIDTH, Config, Printer, PrinterType
from print_agent.core.registry import PrinterRegistry
from print_agent.network.scanner import NetworkScanner
from print_agent.printing.dispatcher import JobDispatcher
from print_agent.session.client import SessionClient, SessionState

logger = logging.getLogger(__name__)

JOIN_TIMEOUT = 30.0


class Supervisor:
    def __init__(
        self,
        config: Config,
        registry: PrinterRegistry,
        auth: Optional[AuthClient] = None,
        scanner: Optional[NetworkScanner] = None,
        dispatcher: Optional[JobDispatcher] = None,
    ):
        self.config = config
        self.registry = registry
        self.auth = auth or AuthClient(config)
        self.scanner = scanner or NetworkScanner(
            ports=config.scan_ports,
            timeout=config.scan_timeout,
            concurrency=config.scan_concurrency,
        )
        self.dispatcher = dispatcher or JobDispatcher(config)
        self.stop_event = threading.Event()
        self.sessions: List[SessionClient] = []
        self._status_server = None
        self._shut_down = False

    # Setup (main thread only)

    def discover(self, subnet_prefix: Optional[str] = None) -> List[Printer]:
        """
        Scan the local network and merge every reachable host into the
        registry. Returns the printers that were new.
        """
        try:
            found = list(self.scanner.scan(subnet_prefix))
        except LocalAddressError as e:
            logger.error("Discovery skipped: %s", e)
            return []
        if not found:
            logger.info("No printers found on the local network.")
            return []
        candidates = [
            Printer(
                ip=ip,
                port=DEFAULT_RAW_PORT,
                name=f"Printer {ip}",
                enabled=True,
                tenant_id=self.config.tenant_id,
                restaurant_id=self.config.restaurant_id,
                type=PrinterType.THERMAL,
                raster_width=DEFAULT_THERMAL_WIDTH,
            )
            for ip in found
        ]
        return self.registry.merge(candidates)

    def sync(self) -> List[Printer]:
        """
        Merge the backend's printer list into the registry (existing IPs win).
        """
        try:
            remote = self.auth.fetch_printers()
        except RegistrationError as e:
            logger.error("Printer sync failed: %s", e)
            return []
        return self.registry.merge(remote)

    def ensure_credentials(self) -> int:
        """
        Register every enabled printer that has no credential yet. Failures
        are logged and that printer is skipped. Returns the number of
        credentials issued.
        """
        issued = 0
        for printer in self.registry.all():
            if not printer.enabled or printer.credential:
                continue
            logger.info("Registering printer '%s' with server...", printer.label)
            try:
                credential = self.auth.register_printer(printer)
            except RegistrationError as e:
                logger.error("Failed to register %s: %s", printer.label, e)
                continue
            self.registry.set_credential(printer.ip, credential)
            issued += 1
            logger.info("Registered %s", printer.label)
        return issued

    def prepare(self, sync: bool = False) -> None:
        """
        Bring the registry up to date and persist it. Registry I/O errors
        propagate (fatal).
        """
        self.registry.load()
        dirty = False
        if len(self.registry) == 0:
            logger.info("No printers configured. Starting discovery...")
            dirty |= bool(self.discover())
        if sync:
            dirty |= bool(self.sync())
        dirty |= self.ensure_credentials() > 0
        if dirty:
            self.registry.save()

    # Runtime

    def start_sessions(self) -> int:
        for printer in self.registry.all():
            if not printer.enabled or not printer.credential:
                continue
            client = SessionClient(printer, self.config, self.dispatcher, stop_event=self.stop_event)
            client.start()
            self.sessions.append(client)
        return len(self.sessions)

    def session_states(self) -> Dict[str, str]:
        return {c.printer.label: c.state.value for c in self.sessions}

    def healthy(self) -> bool:
        return bool(self.sessions) and all(c.state is SessionState.ACTIVE for c in self.sessions)

    def start_status_server(self) -> None:
        if not self.config.status_port:
            return
        from werkzeug.serving import make_server

        from print_agent import create_app

        app = create_app(self)
        self._status_server = make_server("127.0.0.1", int(self.config.status_port), app, threaded=True)
        threading.Thread(target=self._status_server.serve_forever, daemon=True, name="status-http").start()
        logger.info("Status endpoint on http://127.0.0.1:%d/healthz", self.config.status_port)

    def shutdown(self) -> None:
        """
        Stop accepting new work; in-flight dispatches run to completion.
        """
        if self._shut_down:
            return
        self._shut_down = True
        logger.info("Shutting down...")
        self.stop_event.set()
        for client in self.sessions:
            if client.thread is not None:
                client.thread.join(JOIN_TIMEOUT)
                if client.thread.is_alive():
                    logger.warning("Session %s did not stop within %gs", client.printer.label, JOIN_TIMEOUT)
        if self._status_server is not None:
            self._status_server.shutdown()

    def _install_signal_handlers(self) -> None:
        def _handler(signum, frame):
            logger.info("Received signal %s", signal.Signals(signum).name)
            self.stop_event.set()

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)

    def run(self, sync: bool = False) -> int:
        """
        Full agent lifecycle. Returns the process exit code.
        """
        self.prepare(sync=sync)
        active = self.start_sessions()
        if active == 0:
            logger.warning("No printers are registered with an Agent Key. Exiting.")
            return 0
        self._install_signal_handlers()
        self.start_status_server()
        logger.info("--- System Running. Controlling %d printers ---", active)
        while not self.stop_event.wait(1.0):
            pass
        self.shutdown()
        return 0


__all__ = ["Supervisor"]

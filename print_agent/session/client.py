"""
Per-printer duplex session with the backend.

Each SessionClient runs in its own thread and loops forever:

    DISCONNECTED -> CONNECTING -> AWAITING_REGISTRATION_ACK -> ACTIVE -> DISCONNECTED

Connect failures and read/write errors drop back to DISCONNECTED and retry
after a backoff; the client only exits when the shared stop event is set
(or, with stop_on_unregister, after the server unregisters it). Messages on
one session are handled strictly in arrival order, including print jobs,
so a job in flight always finishes before the next frame is read.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Optional

from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import connect as ws_connect

from print_agent.core.errors import MessageDecodeError
from print_agent.core.logging import log_context
from print_agent.core.models import Config, Printer
from print_agent.printing.dispatcher import JobDispatcher
from print_agent.session.messages import MessageType, SessionMessage, jobs_from_payload

logger = logging.getLogger(__name__)

OPEN_TIMEOUT = 10.0
# How often a blocked read wakes up to check for shutdown.
POLL_INTERVAL = 1.0


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_REGISTRATION_ACK = "awaiting_registration_ack"
    ACTIVE = "active"


class _Outcome(str, Enum):
    ERROR = "error"
    UNREGISTERED = "unregistered"
    STOPPED = "stopped"


class SessionClient:
    def __init__(
        self,
        printer: Printer,
        config: Config,
        dispatcher: JobDispatcher,
        *,
        stop_event: Optional[threading.Event] = None,
        connect: Callable[..., Any] = ws_connect,
        poll_interval: float = POLL_INTERVAL,
        on_state: Optional[Callable[["SessionClient", SessionState], None]] = None,
    ):
        self.printer = printer
        self.config = config
        self.dispatcher = dispatcher
        self._stop = stop_event or threading.Event()
        self._connect = connect
        self.poll_interval = poll_interval
        self._on_state = on_state
        self._state = SessionState.DISCONNECTED
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    @property
    def thread(self) -> Optional[threading.Thread]:
        return self._thread

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        logger.debug("Session state %s -> %s", self._state.value, state.value)
        self._state = state
        if self._on_state is not None:
            self._on_state(self, state)

    def stop(self) -> None:
        self._stop.set()

    def start(self) -> threading.Thread:
        t = threading.Thread(target=self.run, daemon=True, name=f"session-{self.printer.label}")
        t.start()
        self._thread = t
        return t

    def _backoff_delay(self, failures: int) -> float:
        base = self.config.reconnect_backoff
        ceiling = max(base, self.config.max_reconnect_backoff)
        return min(ceiling, base * (2 ** max(0, failures - 1)))

    def _wait_backoff(self, delay: float) -> None:
        # Returns early when the agent shuts down.
        self._stop.wait(delay)

    def _send(self, ws: Any, message: SessionMessage) -> None:
        ws.send(message.encode())

    def run(self) -> None:
        """
        Outer reconnect loop. Never raises; returns on shutdown.
        """
        with log_context(self.printer.label):
            url = self.config.ws_url
            failures = 0
            logger.info("Connecting to WebSocket...")
            while not self._stop.is_set():
                self._set_state(SessionState.CONNECTING)
                try:
                    ws = self._connect(
                        url,
                        additional_headers={"X-Api-Key": self.config.api_key},
                        open_timeout=OPEN_TIMEOUT,
                    )
                except (OSError, WebSocketException) as e:
                    self._set_state(SessionState.DISCONNECTED)
                    failures += 1
                    delay = self._backoff_delay(failures)
                    logger.warning("Connection failed: %s. Retrying in %gs...", e, delay)
                    self._wait_backoff(delay)
                    continue

                logger.info("Connected.")
                try:
                    outcome = self._serve(ws)
                except Exception:
                    logger.exception("Session handler crashed")
                    outcome = _Outcome.ERROR
                finally:
                    try:
                        ws.close()
                    except Exception as e:
                        logger.debug("Error closing session: %s", e)
                    reached_active = self._state is SessionState.ACTIVE
                    self._set_state(SessionState.DISCONNECTED)

                if outcome is _Outcome.STOPPED or self._stop.is_set():
                    break
                if outcome is _Outcome.UNREGISTERED and self.config.stop_on_unregister:
                    logger.info("Unregistered by server; not reconnecting.")
                    return
                failures = 1 if reached_active else failures + 1
                delay = self._backoff_delay(failures)
                logger.info("Disconnected. Reconnecting in %gs...", delay)
                self._wait_backoff(delay)
            logger.info("Session stopped.")

    def _serve(self, ws: Any) -> _Outcome:
        """
        Register, then read and handle frames until the connection ends.
        """
        try:
            self._send(ws, SessionMessage.registration(self.printer.credential))
        except (ConnectionClosed, OSError) as e:
            logger.error("Failed to send register: %s", e)
            return _Outcome.ERROR
        self._set_state(SessionState.AWAITING_REGISTRATION_ACK)

        while not self._stop.is_set():
            try:
                frame = ws.recv(timeout=self.poll_interval)
            except TimeoutError:
                continue
            except (ConnectionClosed, OSError) as e:
                logger.warning("Read error: %s", e)
                return _Outcome.ERROR

            try:
                message = SessionMessage.decode(frame)
            except MessageDecodeError as e:
                logger.error("Malformed frame, dropping connection: %s", e)
                return _Outcome.ERROR

            try:
                outcome = self.handle(ws, message)
            except (ConnectionClosed, OSError) as e:
                logger.warning("Write error: %s", e)
                return _Outcome.ERROR
            if outcome is not None:
                return outcome
        return _Outcome.STOPPED

    def handle(self, ws: Any, message: SessionMessage) -> Optional[_Outcome]:
        """
        Handle one inbound message. Returns an outcome when the connection
        should end, None to keep reading.
        """
        kind = message.kind
        if kind is None:
            logger.warning("Unknown message type: %s", message.type)
            return None

        if self._state is SessionState.AWAITING_REGISTRATION_ACK:
            if kind is MessageType.REGISTERED:
                logger.info("Successfully registered with server.")
            else:
                logger.info("No registration ack; treating %s as session activity.", kind.value)
            self._set_state(SessionState.ACTIVE)
        elif kind is MessageType.REGISTERED:
            logger.debug("Duplicate registration ack ignored.")

        if kind is MessageType.PING:
            logger.debug("Received ping, sending pong...")
            self._send(ws, SessionMessage.pong(self.printer.credential))
        elif kind is MessageType.PRINT_ORDER:
            logger.info("Received print order...")
            self._handle_order(ws, message)
        elif kind is MessageType.UNREGISTER:
            logger.info("Server requested unregister.")
            return _Outcome.UNREGISTERED
        elif kind is not MessageType.REGISTERED:
            logger.debug("Ignoring %s message from server.", kind.value)
        return None

    def _handle_order(self, ws: Any, message: SessionMessage) -> None:
        try:
            jobs = jobs_from_payload(message.order)
        except MessageDecodeError as e:
            logger.error("Error parsing order payload: %s", e)
            self._send(ws, SessionMessage.print_failed(self.printer.credential, f"invalid order payload: {e.message}"))
            return

        if not jobs:
            logger.warning("No valid orders in payload")
            return

        for job in jobs:
            result = self.dispatcher.dispatch(self.printer, job)
            self._send(ws, result)
            if result.kind is MessageType.PRINTED:
                logger.info("Order %s sent successfully!", job.job_id or "-")


__all__ = ["SessionClient", "SessionState"]

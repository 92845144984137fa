"""
Local-network printer discovery.

Probes every host of the agent's /24 with a plain TCP connect on the raw
print port(s). A fixed pool of worker threads pulls candidate addresses
from a bounded queue, so at most `concurrency` sockets are ever open at
once. Found addresses are yielded lazily as workers report them.
"""

from __future__ import annotations

import ipaddress
import logging
import queue
import socket
import threading
from collections.abc import Iterator, Sequence
from typing import Callable, List, Optional

from print_agent.core.errors import LocalAddressError
from print_agent.core.models import DEFAULT_RAW_PORT

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 0.3
DEFAULT_CONCURRENCY = 50
# Only used to pick the outbound interface; nothing is sent.
_ROUTE_PROBE_ADDR = ("10.255.255.255", 1)

_DONE = object()


def detect_local_ip() -> str:
    """
    Return the non-loopback IPv4 address of the interface used for outbound
    traffic.

    Raises:
        LocalAddressError if no such address exists.
    """
    candidates: List[str] = []
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(_ROUTE_PROBE_ADDR)
            candidates.append(s.getsockname()[0])
    except OSError as e:
        logger.debug("Route lookup for local address failed: %s", e)

    try:
        for info in socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET):
            candidates.append(info[4][0])
    except OSError as e:
        logger.debug("Hostname lookup for local address failed: %s", e)

    for addr in candidates:
        try:
            ip = ipaddress.IPv4Address(addr)
        except ValueError:
            continue
        if not ip.is_loopback and not ip.is_unspecified:
            return str(ip)
    raise LocalAddressError("no local IPv4 address found")


def subnet_of(ip: str) -> str:
    """'192.168.1.37' -> '192.168.1'"""
    parts = ip.split(".")
    if len(parts) != 4:
        raise ValueError(f"Unexpected IPv4 address format: {ip}")
    return ".".join(parts[:3])


def probe(ip: str, port: int = DEFAULT_RAW_PORT, timeout: float = DEFAULT_PROBE_TIMEOUT) -> bool:
    """
    Reachability check: connect, then close without sending anything.
    Timeouts and refusals are negative results, not errors.
    """
    try:
        with socket.create_connection((ip, port), timeout=timeout):
            return True
    except OSError:
        return False


def candidate_hosts(subnet_prefix: str, exclude: Optional[str] = None) -> Iterator[str]:
    for i in range(1, 255):
        ip = f"{subnet_prefix}.{i}"
        if ip != exclude:
            yield ip


class NetworkScanner:
    """
    Bounded-concurrency TCP prober. One instance may run several scans;
    each scan starts its own worker pool.
    """

    def __init__(
        self,
        ports: Sequence[int] = (DEFAULT_RAW_PORT,),
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        concurrency: int = DEFAULT_CONCURRENCY,
        probe_fn: Callable[[str, int, float], bool] = probe,
        local_ip_fn: Callable[[], str] = detect_local_ip,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.ports = tuple(ports) or (DEFAULT_RAW_PORT,)
        self.timeout = timeout
        self.concurrency = concurrency
        self._probe = probe_fn
        self._local_ip = local_ip_fn

    def _is_reachable(self, ip: str) -> bool:
        return any(self._probe(ip, port, self.timeout) for port in self.ports)

    def _worker(self, work: "queue.Queue[object]", found: "queue.Queue[object]") -> None:
        while True:
            ip = work.get()
            if ip is _DONE:
                return
            try:
                if self._is_reachable(ip):  # type: ignore[arg-type]
                    logger.info("Found printer candidate at %s", ip)
                    found.put(ip)
            except Exception:
                logger.exception("Probe of %s failed unexpectedly", ip)

    def scan(self, subnet_prefix: Optional[str] = None) -> Iterator[str]:
        """
        Yield reachable IPs of `subnet_prefix` (e.g. '192.168.1'); defaults to
        the local /24. The local address itself is never probed.

        Raises:
            LocalAddressError (before yielding anything) when the local IPv4
            address cannot be determined.
        """
        local_ip = self._local_ip()
        prefix = subnet_prefix or subnet_of(local_ip)
        logger.info("Scanning subnet: %s.0/24 ports=%s", prefix, ",".join(map(str, self.ports)))
        return self._run(prefix, local_ip)

    def _run(self, prefix: str, local_ip: str) -> Iterator[str]:
        work: "queue.Queue[object]" = queue.Queue(maxsize=256)
        found: "queue.Queue[object]" = queue.Queue()

        workers = [
            threading.Thread(target=self._worker, args=(work, found), daemon=True, name=f"scan-{i}")
            for i in range(self.concurrency)
        ]
        for t in workers:
            t.start()

        def _feed() -> None:
            for ip in candidate_hosts(prefix, exclude=local_ip):
                work.put(ip)
            for _ in workers:
                work.put(_DONE)
            for t in workers:
                t.join()
            found.put(_DONE)

        threading.Thread(target=_feed, daemon=True, name="scan-feeder").start()

        count = 0
        while True:
            ip = found.get()
            if ip is _DONE:
                break
            count += 1
            yield ip  # type: ignore[misc]
        logger.info("Scan of %s.0/24 complete: %d host(s) reachable", prefix, count)


def scan(
    subnet_prefix: Optional[str] = None,
    ports: Sequence[int] = (DEFAULT_RAW_PORT,),
    timeout: float = DEFAULT_PROBE_TIMEOUT,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> Iterator[str]:
    """Convenience wrapper around NetworkScanner(...).scan()."""
    return NetworkScanner(ports=ports, timeout=timeout, concurrency=concurrency).scan(subnet_prefix)


__all__ = ["NetworkScanner", "candidate_hosts", "detect_local_ip", "probe", "scan", "subnet_of"]

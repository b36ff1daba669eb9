import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional

from ..errors import InvalidPortSpec, TooManyPorts


logger = logging.getLogger(__name__)

MIN_PORT = 1
MAX_PORT = 65535
DEFAULT_TIMEOUT_S = 2.0
DEFAULT_MAX_PORTS = 100

Connector = Callable[[str, int], Awaitable[Any]]


class PortStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ProbeResult:
    port: int
    status: PortStatus


def _to_port(raw: str) -> Optional[int]:
    raw = raw.strip()
    if not (raw.isascii() and raw.isdigit()):
        return None
    port = int(raw)
    if not (MIN_PORT <= port <= MAX_PORT):
        return None
    return port


def _expand_token(token: str) -> list[int]:
    """Expand a single token ("80" or "8080-8090"); malformed tokens expand to nothing."""
    if "-" in token:
        start_raw, end_raw = token.split("-", 1)
        start, end = _to_port(start_raw), _to_port(end_raw)
        if start is None or end is None or start > end:
            return []
        return list(range(start, end + 1))

    port = _to_port(token)
    return [] if port is None else [port]


def parse_port_spec(spec: str, max_ports: int = DEFAULT_MAX_PORTS) -> list[int]:
    """
    Parse a port specification such as "80,443,8080-8090".

    Malformed tokens are dropped individually. The expanded list keeps
    encounter order and duplicates.

    Raises:
        InvalidPortSpec: no token survived parsing
        TooManyPorts: more than max_ports ports after expansion
    """
    ports: list[int] = []
    for token in (spec or "").split(","):
        token = token.strip()
        if not token:
            continue
        expanded = _expand_token(token)
        if not expanded:
            logger.debug(f"Dropping malformed port token '{token}'")
        ports.extend(expanded)
        if len(ports) > max_ports:
            break

    if not ports:
        raise InvalidPortSpec(
            "Invalid port format. Use comma-separated values or ranges (e.g., 80, 443, 8080-8090)."
        )

    if len(ports) > max_ports:
        raise TooManyPorts(
            f"Too many ports. Please scan a maximum of {max_ports} ports at a time."
        )

    return ports


async def open_tcp_connection(host: str, port: int):
    """Default connector: a plain TCP connect through asyncio streams."""
    _, writer = await asyncio.open_connection(host, port)
    return writer


async def _close_quietly(conn: Any) -> None:
    try:
        conn.close()
        wait_closed = getattr(conn, "wait_closed", None)
        if wait_closed is not None:
            await wait_closed()
    except Exception as e:
        logger.debug(f"Error while closing probe connection: {e}")


class ConcurrentPortProbe:
    """
    Probes TCP ports on a host concurrently.

    Args:
        timeout_s: per-probe connect timeout
        connector: async callable (host, port) returning a closable connection
        limiter: optional semaphore shared by all scans to cap in-flight connects
    """

    def __init__(
        self,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        connector: Optional[Connector] = None,
        limiter: Optional[asyncio.Semaphore] = None,
    ):
        if timeout_s <= 0:
            raise ValueError("timeout_s must be greater than 0")
        self.timeout_s = timeout_s
        self.connector = connector or open_tcp_connection
        self.limiter = limiter

    async def _connect(self, host: str, port: int) -> ProbeResult:
        try:
            conn = await asyncio.wait_for(self.connector(host, port), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            return ProbeResult(port, PortStatus.TIMEOUT)
        except OSError as e:
            logger.debug(f"Socket error for {host}:{port} - errno: {e.errno}, message: {e}")
            return ProbeResult(port, PortStatus.CLOSED)

        await _close_quietly(conn)
        return ProbeResult(port, PortStatus.OPEN)

    async def probe(self, host: str, port: int) -> ProbeResult:
        """Probe one port. Never raises for network or internal failures."""
        try:
            if self.limiter is None:
                return await self._connect(host, port)
            async with self.limiter:
                return await self._connect(host, port)
        except Exception as e:
            logger.error(f"Unexpected error probing {host}:{port}: {e}", exc_info=True)
            return ProbeResult(port, PortStatus.CLOSED)

    async def scan(self, host: str, ports: Iterable[int]) -> list[ProbeResult]:
        """Probe every port concurrently; results follow the input order."""
        ports = list(ports)
        outcomes = await asyncio.gather(
            *(self.probe(host, port) for port in ports),
            return_exceptions=True,
        )

        report: list[ProbeResult] = []
        for port, outcome in zip(ports, outcomes):
            if isinstance(outcome, ProbeResult):
                report.append(outcome)
            else:
                logger.error(f"Probe task for {host}:{port} failed: {outcome!r}")
                report.append(ProbeResult(port, PortStatus.CLOSED))
        return report


def open_ports(report: Iterable[ProbeResult]) -> list[int]:
    return [r.port for r in report if r.status is PortStatus.OPEN]


async def port_scan(host: str, ports_spec: str, probe: ConcurrentPortProbe, max_ports: int = DEFAULT_MAX_PORTS) -> list[int]:
    """Parse ports_spec, scan every port and return the open ones in scan order."""
    ports = parse_port_spec(ports_spec, max_ports=max_ports)
    logger.info(f"Scanning {len(ports)} port(s) on {host}")

    report = await probe.scan(host, ports)
    found = open_ports(report)

    logger.info(f"Scan of {host} finished: {len(found)} open of {len(report)}")
    return found

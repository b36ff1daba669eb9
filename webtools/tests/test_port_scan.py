import asyncio
import socket
import time
import pytest
from unittest.mock import MagicMock, patch

from webtools.errors import InvalidPortSpec, TooManyPorts
from webtools.tasks.port_scan import (
    ConcurrentPortProbe,
    PortStatus,
    ProbeResult,
    open_ports,
    parse_port_spec,
    port_scan,
)


def make_connector(open_set=(), hang_set=(), broken_set=()):
    """Fake connector: open ports connect, hanging ports never answer, broken ports raise, the rest refuse."""
    connections = {}

    async def connector(host, port):
        if port in hang_set:
            await asyncio.Event().wait()
        if port in broken_set:
            raise RuntimeError(f"probe exploded on {port}")
        if port in open_set:
            conn = MagicMock()
            connections[port] = conn
            return conn
        raise ConnectionRefusedError(111, "Connection refused")

    connector.connections = connections
    return connector


def listening_socket():
    """A bound, listening socket on loopback; the kernel completes connects without accept()."""
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.bind(("127.0.0.1", 0))
    srv.listen(16)
    return srv


def unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestParsePortSpec:
    """Test cases for port specification parsing."""

    def test_single_ports(self):
        """Test comma-separated single ports."""
        assert parse_port_spec("80,443") == [80, 443]

    def test_range_is_inclusive(self):
        """Test that a range expands to both endpoints."""
        assert parse_port_spec("8080-8082") == [8080, 8081, 8082]

    def test_mixed_tokens_keep_encounter_order(self):
        """Test singles and ranges in encounter order."""
        assert parse_port_spec("443,20-22,80") == [443, 20, 21, 22, 80]

    def test_whitespace_and_empty_tokens(self):
        """Test that tokens are trimmed and empty tokens skipped."""
        assert parse_port_spec(" 80 , ,443, ") == [80, 443]

    def test_out_of_range_tokens_dropped_to_empty_raises(self):
        """Test that 0 and 70000 are dropped and the empty result is rejected."""
        with pytest.raises(InvalidPortSpec) as exc_info:
            parse_port_spec("0,70000")
        assert "Invalid port format" in str(exc_info.value)

    def test_malformed_token_is_dropped_not_fatal(self):
        """Test that one bad token does not abort the whole parse."""
        assert parse_port_spec("80,abc,443") == [80, 443]

    def test_only_plain_digits_accepted(self):
        """Test that signs, underscores and stray letters are not numbers here."""
        assert parse_port_spec("80,+81,8_2,8o,1e2") == [80]

    def test_reversed_range_dropped(self):
        """Test that start > end drops the range token."""
        assert parse_port_spec("90-80,22") == [22]

    def test_range_with_bad_endpoint_dropped(self):
        """Test ranges with non-numeric or out-of-range endpoints."""
        assert parse_port_spec("a-10,0-5,65530-65536,25") == [25]

    def test_single_port_range(self):
        """Test that "1-1" yields just port 1."""
        assert parse_port_spec("1-1") == [1]

    def test_highest_port_is_valid(self):
        """Test the upper bound 65535."""
        assert parse_port_spec("65535") == [65535]

    def test_port_above_max_only_token_raises(self):
        """Test that 65536 alone leaves nothing to scan."""
        with pytest.raises(InvalidPortSpec):
            parse_port_spec("65536")

    def test_empty_spec_raises(self):
        """Test empty and whitespace-only specs."""
        for spec in ["", "   ", ",,,", None]:
            with pytest.raises(InvalidPortSpec):
                parse_port_spec(spec)

    def test_too_many_ports_raises(self):
        """Test that 101 distinct ports exceed the default cap."""
        with pytest.raises(TooManyPorts) as exc_info:
            parse_port_spec("1-101")
        assert "maximum of 100 ports" in str(exc_info.value)

    def test_exactly_max_ports_is_valid(self):
        """Test that the cap itself is allowed."""
        assert len(parse_port_spec("1-100")) == 100

    def test_cap_counts_across_tokens(self):
        """Test that the cap applies to the combined expansion."""
        with pytest.raises(TooManyPorts):
            parse_port_spec("1-60,1000-1041")

    def test_custom_max_ports(self):
        """Test an injected cap."""
        assert parse_port_spec("1-5", max_ports=5) == [1, 2, 3, 4, 5]
        with pytest.raises(TooManyPorts) as exc_info:
            parse_port_spec("1-6", max_ports=5)
        assert "maximum of 5 ports" in str(exc_info.value)

    def test_huge_range_rejected(self):
        """Test that the full port range is rejected as too many."""
        with pytest.raises(TooManyPorts):
            parse_port_spec("1-65535")

    def test_parsing_is_idempotent(self):
        """Test that parsing the same port list twice gives the same list."""
        spec = "22, 80, 8000-8010, 443"
        assert parse_port_spec(spec) == parse_port_spec(spec)

    def test_every_port_in_range(self):
        """Test that every parsed port lies in 1..65535."""
        ports = parse_port_spec("0-3,65534-65535,99999,7")
        assert ports == [65534, 65535, 7]
        assert all(1 <= p <= 65535 for p in ports)


class TestConcurrentPortProbe:
    """Test cases for the concurrent TCP probe."""

    def test_open_port_connection_is_closed(self):
        """Test that an accepted connection is recorded open and closed right away."""
        connector = make_connector(open_set={80})
        probe = ConcurrentPortProbe(timeout_s=1.0, connector=connector)

        result = asyncio.run(probe.probe("example.com", 80))

        assert result == ProbeResult(80, PortStatus.OPEN)
        connector.connections[80].close.assert_called_once()

    def test_refused_port_is_closed(self):
        """Test that a refused connection is recorded closed."""
        probe = ConcurrentPortProbe(timeout_s=1.0, connector=make_connector())

        result = asyncio.run(probe.probe("example.com", 81))

        assert result.status is PortStatus.CLOSED

    def test_dns_failure_is_closed(self):
        """Test that a resolution error folds into closed."""
        async def connector(host, port):
            raise socket.gaierror(-2, "Name or service not known")

        probe = ConcurrentPortProbe(timeout_s=1.0, connector=connector)

        assert asyncio.run(probe.probe("no-such-host.invalid", 80)).status is PortStatus.CLOSED

    def test_hanging_port_times_out(self):
        """Test that no answer within the timeout is recorded as timeout."""
        probe = ConcurrentPortProbe(timeout_s=0.05, connector=make_connector(hang_set={22}))

        result = asyncio.run(probe.probe("example.com", 22))

        assert result == ProbeResult(22, PortStatus.TIMEOUT)

    def test_late_connection_does_not_override_timeout(self):
        """Test that a connect finishing after the timeout is discarded."""
        late = MagicMock()

        async def connector(host, port):
            await asyncio.sleep(0.3)
            return late

        probe = ConcurrentPortProbe(timeout_s=0.05, connector=connector)

        async def run():
            result = await probe.probe("example.com", 8080)
            await asyncio.sleep(0.35)
            return result

        assert asyncio.run(run()).status is PortStatus.TIMEOUT
        late.close.assert_not_called()

    def test_wait_closed_is_awaited(self):
        """Test that stream-style connections are fully closed."""
        conn = MagicMock()
        waited = []

        async def wait_closed():
            waited.append(True)

        conn.wait_closed = wait_closed

        async def connector(host, port):
            return conn

        probe = ConcurrentPortProbe(timeout_s=1.0, connector=connector)

        assert asyncio.run(probe.probe("example.com", 443)).status is PortStatus.OPEN
        conn.close.assert_called_once()
        assert waited == [True]

    def test_error_while_closing_still_open(self):
        """Test that a failing close does not change an open result."""
        conn = MagicMock()
        conn.close.side_effect = OSError("already closed")
        conn.wait_closed = None

        async def connector(host, port):
            return conn

        probe = ConcurrentPortProbe(timeout_s=1.0, connector=connector)

        assert asyncio.run(probe.probe("example.com", 443)).status is PortStatus.OPEN

    def test_scan_totality_and_order(self):
        """Test one result per requested port, in input order."""
        ports = [443, 22, 80, 8080, 21, 25]
        connector = make_connector(open_set={22, 8080}, hang_set={25})
        probe = ConcurrentPortProbe(timeout_s=0.1, connector=connector)

        report = asyncio.run(probe.scan("example.com", ports))

        assert [r.port for r in report] == ports
        assert {r.port: r.status for r in report} == {
            443: PortStatus.CLOSED,
            22: PortStatus.OPEN,
            80: PortStatus.CLOSED,
            8080: PortStatus.OPEN,
            21: PortStatus.CLOSED,
            25: PortStatus.TIMEOUT,
        }

    def test_failing_probe_is_isolated(self):
        """Test that an exception on one port leaves the other results intact."""
        connector = make_connector(open_set={80, 443}, broken_set={81})
        probe = ConcurrentPortProbe(timeout_s=0.5, connector=connector)

        report = asyncio.run(probe.scan("example.com", [80, 81, 443, 444]))

        assert [(r.port, r.status) for r in report] == [
            (80, PortStatus.OPEN),
            (81, PortStatus.CLOSED),
            (443, PortStatus.OPEN),
            (444, PortStatus.CLOSED),
        ]

    def test_exception_escaping_probe_maps_to_closed(self):
        """Test that a probe task that raises does not cancel its siblings."""
        probe = ConcurrentPortProbe(timeout_s=0.5, connector=make_connector(open_set={1, 3}))
        original = probe.probe

        async def flaky_probe(host, port):
            if port == 2:
                raise RuntimeError("boom")
            return await original(host, port)

        with patch.object(probe, "probe", side_effect=flaky_probe):
            report = asyncio.run(probe.scan("example.com", [1, 2, 3]))

        assert [r.status for r in report] == [PortStatus.OPEN, PortStatus.CLOSED, PortStatus.OPEN]

    def test_scan_runs_concurrently(self):
        """Test that 50 hanging ports take about one timeout, not fifty."""
        ports = list(range(1000, 1050))
        probe = ConcurrentPortProbe(timeout_s=0.2, connector=make_connector(hang_set=set(ports)))

        start = time.monotonic()
        report = asyncio.run(probe.scan("example.com", ports))
        elapsed = time.monotonic() - start

        assert len(report) == 50
        assert all(r.status is PortStatus.TIMEOUT for r in report)
        assert elapsed < 2.0

    def test_limiter_caps_in_flight_connects(self):
        """Test that a shared semaphore bounds concurrent connect attempts."""
        in_flight = 0
        peak = 0

        async def connector(host, port):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return MagicMock()

        async def run():
            probe = ConcurrentPortProbe(timeout_s=1.0, connector=connector, limiter=asyncio.Semaphore(3))
            return await probe.scan("example.com", list(range(1, 21)))

        report = asyncio.run(run())

        assert peak <= 3
        assert all(r.status is PortStatus.OPEN for r in report)

    def test_empty_scan(self):
        """Test that scanning no ports returns an empty report."""
        probe = ConcurrentPortProbe(timeout_s=0.1, connector=make_connector())
        assert asyncio.run(probe.scan("example.com", [])) == []

    def test_invalid_timeout_rejected(self):
        """Test that a non-positive timeout is refused at construction."""
        with pytest.raises(ValueError):
            ConcurrentPortProbe(timeout_s=0)

    def test_open_ports_keeps_scan_order(self):
        """Test the open-port filter."""
        report = [
            ProbeResult(8080, PortStatus.OPEN),
            ProbeResult(22, PortStatus.TIMEOUT),
            ProbeResult(80, PortStatus.OPEN),
            ProbeResult(21, PortStatus.CLOSED),
        ]
        assert open_ports(report) == [8080, 80]


class TestRealSockets:
    """Probes against loopback sockets with the default connector."""

    def test_listening_port_is_open(self):
        """Test a real listener is reported open."""
        with listening_socket() as srv:
            port = srv.getsockname()[1]
            probe = ConcurrentPortProbe(timeout_s=1.0)
            result = asyncio.run(probe.probe("127.0.0.1", port))
        assert result.status is PortStatus.OPEN

    def test_unused_port_is_closed(self):
        """Test a port with no listener is reported closed."""
        port = unused_port()
        probe = ConcurrentPortProbe(timeout_s=1.0)
        assert asyncio.run(probe.probe("127.0.0.1", port)).status is PortStatus.CLOSED

    def test_port_scan_end_to_end(self):
        """Test parsing plus scanning returns only the listening port."""
        closed = unused_port()
        with listening_socket() as srv:
            port = srv.getsockname()[1]
            probe = ConcurrentPortProbe(timeout_s=1.0)
            result = asyncio.run(port_scan("127.0.0.1", f"{port},{closed}", probe))
        assert result == [port]

    def test_port_scan_rejects_before_network(self):
        """Test that an oversized port list never reaches the connector."""
        connector = MagicMock()
        probe = ConcurrentPortProbe(timeout_s=1.0, connector=connector)

        with pytest.raises(TooManyPorts):
            asyncio.run(port_scan("127.0.0.1", "1-500", probe))
        connector.assert_not_called()

"""Tests for forensics/sources/network.py."""

from __future__ import annotations

from pathlib import Path

from forensics.core.types import SourceStatus
from forensics.sources.base import CollectionContext
from forensics.sources.capabilities import Capabilities
from forensics.sources.exceptions import CommandFailedError
from forensics.sources.network import (
    InterfaceErrorSource,
    TcpRetransmitSource,
    TcpStateSource,
    parse_retransmissions,
    parse_tcp_states,
)

SS_TAN = """\
State      Recv-Q Send-Q Local Address:Port  Peer Address:Port
LISTEN     0      128    0.0.0.0:22          0.0.0.0:*
ESTAB      0      0      10.0.0.1:22         10.0.0.2:50000
TIME-WAIT  0      0      10.0.0.1:80         10.0.0.3:50001
TIME-WAIT  0      0      10.0.0.1:80         10.0.0.3:50002
CLOSE-WAIT 1      0      10.0.0.1:3306       10.0.0.4:50003
"""

NETSTAT_ANT = """\
Active Internet connections (servers and established)
Proto Recv-Q Send-Q Local Address           Foreign Address         State
tcp        0      0 0.0.0.0:22              0.0.0.0:*               LISTEN
tcp        0      0 10.0.0.1:80             10.0.0.3:50001          TIME_WAIT
tcp6       0      0 :::443                  :::*                    LISTEN
"""

SS_TI = """\
State Recv-Q Send-Q Local Address:Port Peer Address:Port
ESTAB 0      0      10.0.0.1:22        10.0.0.2:50000
	 cubic wscale:7,7 rto:204 rtt:0.5/0.25 retrans:0/3 cwnd:10
ESTAB 0      0      10.0.0.1:443       10.0.0.5:50010
	 cubic wscale:7,7 rto:408 rtt:80/40 retrans:2/57 cwnd:4
"""


def _iface(root: Path, name: str, rx: int, tx: int) -> None:
    stats = root / name / "statistics"
    stats.mkdir(parents=True)
    (stats / "rx_errors").write_text(f"{rx}\n")
    (stats / "tx_errors").write_text(f"{tx}\n")


class TestParsers:
    def test_parse_ss_states(self) -> None:
        states = parse_tcp_states(SS_TAN)
        assert states["TIME_WAIT"] == 2
        assert states["CLOSE_WAIT"] == 1
        assert states["ESTABLISHED"] == 1
        assert states["LISTEN"] == 1

    def test_parse_netstat_states(self) -> None:
        states = parse_tcp_states(NETSTAT_ANT)
        assert states["TIME_WAIT"] == 1
        assert states["LISTEN"] == 2

    def test_parse_retransmissions_sums_current(self) -> None:
        assert parse_retransmissions(SS_TI) == 2
        assert parse_retransmissions("") == 0


class TestTcpStateSource:
    async def test_prefers_ss(self, runner) -> None:
        runner.on(["ss", "-tan"], stdout=SS_TAN)
        result = await TcpStateSource().collect(CollectionContext(runner))
        values = {r.name: r.value for r in result.readings}
        assert values == {"time_wait_count": 2.0, "close_wait_count": 1.0}
        assert runner.calls == [["ss", "-tan"]]

    async def test_falls_back_to_netstat(self, runner) -> None:
        runner.on(["netstat", "-ant"], stdout=NETSTAT_ANT)
        caps = Capabilities({"ss": None, "netstat": "/bin/netstat"})
        result = await TcpStateSource().collect(CollectionContext(runner, caps))
        assert result.succeeded
        assert runner.calls == [["netstat", "-ant"]]

    async def test_neither_tool(self, runner) -> None:
        caps = Capabilities({"ss": None, "netstat": None})
        result = await TcpStateSource().collect(CollectionContext(runner, caps))
        assert result.status == SourceStatus.UNAVAILABLE
        assert "ss, netstat" in result.reason


class TestTcpRetransmitSource:
    async def test_retransmissions(self, runner) -> None:
        runner.on(["ss", "-ti"], stdout=SS_TI)
        result = await TcpRetransmitSource().collect(CollectionContext(runner))
        assert result.readings[0].value == 2.0


class TestInterfaceErrorSource:
    async def test_counts_per_interface(self, runner, tmp_path: Path) -> None:
        _iface(tmp_path, "lo", 0, 0)
        _iface(tmp_path, "eth0", 150, 3)
        runner.on(["ip", "-br", "addr"], stdout="eth0  UP  10.0.0.1/24\n")

        result = await InterfaceErrorSource(sys_net=tmp_path).collect(
            CollectionContext(runner)
        )

        assert [(r.name, r.entity, r.value) for r in result.readings] == [
            ("rx_errors", "eth0", 150.0),
            ("tx_errors", "eth0", 3.0),
        ]
        assert "  eth0  UP  10.0.0.1/24" in result.lines

    async def test_ip_failure_does_not_lose_counters(self, runner, tmp_path: Path) -> None:
        _iface(tmp_path, "ens5", 0, 0)
        runner.on(["ip"], exc=CommandFailedError(["ip"], 1, "bad"))
        result = await InterfaceErrorSource(sys_net=tmp_path).collect(
            CollectionContext(runner)
        )
        assert result.succeeded
        assert len(result.readings) == 2

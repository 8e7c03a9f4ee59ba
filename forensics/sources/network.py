"""Network metric sources."""

from __future__ import annotations

import re
from collections import Counter
from pathlib import Path

import structlog

from forensics.core.types import Category, MetricReading
from forensics.sources.base import CollectionContext, MetricSource
from forensics.sources.exceptions import SourceError, SourceParseError, ToolNotFoundError
from forensics.sources.parsing import read_int

logger = structlog.stdlib.get_logger()

_DEFAULT_SYS_NET = Path("/sys/class/net")

_RETRANS = re.compile(r"\bretrans:(\d+)/(\d+)")

_STATE_ALIASES = {"ESTAB": "ESTABLISHED"}


# ── Parsers ──────────────────────────────────────────────────────


def parse_tcp_states(text: str) -> Counter[str]:
    """Count sockets per TCP state from ``ss -tan`` or ``netstat -ant``.

    State names are normalised to netstat spelling (TIME_WAIT, ESTABLISHED).
    """
    states: Counter[str] = Counter()
    lines = text.splitlines()
    if not lines:
        raise SourceParseError("empty socket listing")
    for line in lines:
        fields = line.split()
        if not fields:
            continue
        if fields[0] == "State":
            continue
        if fields[0].startswith("tcp"):
            # netstat -ant: Proto Recv-Q Send-Q Local Foreign State
            if len(fields) < 6:
                continue
            state = fields[5]
        elif fields[0].isupper():
            state = fields[0]
        else:
            continue
        state = state.replace("-", "_")
        states[_STATE_ALIASES.get(state, state)] += 1
    return states


def parse_retransmissions(text: str) -> int:
    """Sum the in-flight retransmit counters from ``ss -ti``."""
    return sum(int(match.group(1)) for match in _RETRANS.finditer(text))


# ── Sources ──────────────────────────────────────────────────────


class TcpStateSource(MetricSource):
    """TIME_WAIT / CLOSE_WAIT socket counts, via ss or netstat."""

    category = Category.NETWORK
    name = "tcp_states"
    metrics = ("time_wait_count", "close_wait_count")

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        if ctx.capabilities.has("ss"):
            argv = ["ss", "-tan"]
        elif ctx.capabilities.has("netstat"):
            argv = ["netstat", "-ant"]
        else:
            raise ToolNotFoundError("tool not installed: ss, netstat")
        result = await ctx.runner.run(argv, timeout=self.timeout, check=True)
        states = parse_tcp_states(result.stdout)

        ctx.line("")
        ctx.line("TCP Connection States:")
        for state, count in states.most_common():
            ctx.line(f"  {count:>7} {state}")
        time_wait = states.get("TIME_WAIT", 0)
        close_wait = states.get("CLOSE_WAIT", 0)
        ctx.line("")
        ctx.line(f"Established Connections: {states.get('ESTABLISHED', 0)}")
        ctx.line(f"TIME_WAIT Connections: {time_wait}")
        ctx.line(f"CLOSE_WAIT Connections: {close_wait}")
        return [
            MetricReading.numeric(self.category, "time_wait_count", time_wait),
            MetricReading.numeric(self.category, "close_wait_count", close_wait),
        ]


class TcpRetransmitSource(MetricSource):
    """Outstanding TCP retransmissions across all sockets."""

    category = Category.NETWORK
    name = "tcp_retransmissions"
    metrics = ("tcp_retransmissions",)
    required_tools = ("ss",)

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        result = await ctx.runner.run(["ss", "-ti"], timeout=self.timeout, check=True)
        retrans = parse_retransmissions(result.stdout)
        ctx.line(f"TCP Retransmissions: {retrans}")
        return [MetricReading.numeric(self.category, "tcp_retransmissions", retrans)]


class InterfaceErrorSource(MetricSource):
    """Receive/transmit error counters per network interface."""

    category = Category.NETWORK
    name = "interface_errors"
    metrics = ("rx_errors", "tx_errors")

    def __init__(self, timeout: float = 10.0, sys_net: Path = _DEFAULT_SYS_NET) -> None:
        super().__init__(timeout=timeout)
        self._sys_net = sys_net

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        ctx.line("Network Interfaces:")
        if ctx.capabilities.has("ip"):
            try:
                result = await ctx.runner.run(
                    ["ip", "-br", "addr"], timeout=self.timeout, check=True,
                )
                for line in result.stdout.splitlines():
                    ctx.line(f"  {line}")
            except SourceError as exc:
                logger.info("interface_listing_failed", error=str(exc))

        readings: list[MetricReading] = []
        ctx.line("")
        ctx.line("Network Interface Errors:")
        for iface in sorted(self._sys_net.iterdir()):
            if iface.name == "lo":
                continue
            stats = iface / "statistics"
            if not stats.is_dir():
                continue
            rx = read_int(stats / "rx_errors")
            tx = read_int(stats / "tx_errors")
            ctx.line(f"  {iface.name:<16} RX errors: {rx:<10} TX errors: {tx}")
            readings.append(
                MetricReading.numeric(self.category, "rx_errors", rx, entity=iface.name)
            )
            readings.append(
                MetricReading.numeric(self.category, "tx_errors", tx, entity=iface.name)
            )
        return readings

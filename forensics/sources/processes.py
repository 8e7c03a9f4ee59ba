"""Top process listings. These only add report context and produce no readings."""

from __future__ import annotations

import abc
from typing import ClassVar

from forensics.core.types import Category, MetricReading
from forensics.sources.base import CollectionContext, MetricSource
from forensics.sources.exceptions import SourceParseError


def parse_ps_aux(text: str, limit: int = 10) -> list[dict[str, str]]:
    """Parse ``ps aux`` output into at most *limit* process rows."""
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines or not lines[0].split()[0] == "USER":
        raise SourceParseError("ps output has no header")
    procs: list[dict[str, str]] = []
    for line in lines[1 : limit + 1]:
        fields = line.split(None, 10)
        if len(fields) < 11:
            continue
        procs.append({
            "user": fields[0],
            "pid": fields[1],
            "cpu": fields[2],
            "mem": fields[3],
            "command": fields[10].split()[0],
        })
    return procs


class _TopProcessesSource(MetricSource):
    required_tools = ("ps",)
    sort_key: ClassVar[str]
    title: ClassVar[str]

    def __init__(self, timeout: float = 10.0, limit: int = 10) -> None:
        super().__init__(timeout=timeout)
        self._limit = limit

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        result = await ctx.runner.run(
            ["ps", "aux", f"--sort=-{self.sort_key}"],
            timeout=self.timeout,
            check=True,
        )
        ctx.line("")
        ctx.line(f"Top {self._limit} {self.title} processes:")
        for proc in parse_ps_aux(result.stdout, self._limit):
            ctx.line(self._format(proc))
        return []

    @abc.abstractmethod
    def _format(self, proc: dict[str, str]) -> str:
        """One report line for a process row."""


class TopCpuProcessesSource(_TopProcessesSource):
    category = Category.CPU
    name = "top_cpu_processes"
    sort_key = "%cpu"
    title = "CPU-consuming"

    def _format(self, proc: dict[str, str]) -> str:
        return (
            f"  {proc['command']:<20} PID: {proc['pid']:<8}"
            f" CPU: {proc['cpu']:>5}% MEM: {proc['mem']:>5}%"
        )


class TopMemoryProcessesSource(_TopProcessesSource):
    category = Category.MEMORY
    name = "top_memory_processes"
    sort_key = "%mem"
    title = "memory-consuming"

    def _format(self, proc: dict[str, str]) -> str:
        return (
            f"  {proc['command']:<20} PID: {proc['pid']:<8}"
            f" MEM: {proc['mem']:>5}% CPU: {proc['cpu']:>5}%"
        )

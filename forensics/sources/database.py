"""Database health sources — connection load, long queries, DMS readiness.

Each engine is probed through its own command-line client. A missing
client makes the source unavailable; so does a server that refuses the
connection.
"""

from __future__ import annotations

import abc
from typing import ClassVar

from forensics.core.types import Category, MetricReading, display_number
from forensics.sources.base import CollectionContext, MetricSource
from forensics.sources.exceptions import SourceParseError
from forensics.sources.parsing import to_float


def first_value(text: str) -> str:
    """First non-empty output line, last tab/space-separated field."""
    for line in text.splitlines():
        if line.strip():
            return line.split()[-1]
    raise SourceParseError("query returned no rows")


class _DatabaseSource(MetricSource):
    category = Category.DATABASE
    engine: ClassVar[str]

    def __init__(self, timeout: float = 30.0, run_as: str | None = None) -> None:
        super().__init__(timeout=timeout)
        self._run_as = run_as

    def _prefix(self) -> list[str]:
        if self._run_as:
            return ["runuser", "-u", self._run_as, "--"]
        return []

    @abc.abstractmethod
    async def query(self, ctx: CollectionContext, sql: str) -> str:
        """Run one scalar query and return its raw output."""

    async def scalar(self, ctx: CollectionContext, sql: str) -> str:
        return first_value(await self.query(ctx, sql))


class MySqlSource(_DatabaseSource):
    """MySQL / MariaDB connections, long-running queries, binary logging."""

    name = "mysql"
    engine = "mysql"
    metrics = ("connection_count", "long_running_query_seconds", "binlog_enabled")
    required_tools = ("mysql",)

    async def query(self, ctx: CollectionContext, sql: str) -> str:
        result = await ctx.runner.run(
            [*self._prefix(), "mysql", "-N", "-B", "-e", sql],
            timeout=self.timeout,
            check=True,
        )
        return result.stdout

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        connections = to_float(
            await self.scalar(ctx, "SHOW GLOBAL STATUS LIKE 'Threads_connected'"),
            "Threads_connected",
        )
        longest = to_float(
            await self.scalar(
                ctx,
                "SELECT COALESCE(MAX(TIME), 0) FROM information_schema.PROCESSLIST"
                " WHERE COMMAND = 'Query'",
            ),
            "longest query",
        )
        log_bin = await self.scalar(ctx, "SELECT @@GLOBAL.log_bin")
        binlog = log_bin.strip().upper() in ("1", "ON")

        ctx.line("MySQL:")
        ctx.line(f"  Connections: {display_number(connections)}")
        ctx.line(f"  Longest running query: {display_number(longest)}s")
        ctx.line(f"  Binary logging: {'ON' if binlog else 'OFF'}")
        return [
            MetricReading.numeric(
                self.category, "connection_count", connections, entity=self.engine,
            ),
            MetricReading.numeric(
                self.category, "long_running_query_seconds", longest, "s",
                entity=self.engine,
            ),
            MetricReading.flag(self.category, "binlog_enabled", binlog, entity=self.engine),
        ]


class PostgresSource(_DatabaseSource):
    """PostgreSQL connections, long-running queries, logical WAL level."""

    name = "postgresql"
    engine = "postgresql"
    metrics = (
        "postgresql_connection_count",
        "long_running_query_seconds",
        "wal_logical",
    )
    required_tools = ("psql",)

    async def query(self, ctx: CollectionContext, sql: str) -> str:
        result = await ctx.runner.run(
            [*self._prefix(), "psql", "-tA", "-c", sql],
            timeout=self.timeout,
            check=True,
        )
        return result.stdout

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        connections = to_float(
            await self.scalar(ctx, "SELECT count(*) FROM pg_stat_activity"),
            "pg_stat_activity count",
        )
        longest = to_float(
            await self.scalar(
                ctx,
                "SELECT COALESCE(MAX(EXTRACT(EPOCH FROM now() - query_start)), 0)"
                " FROM pg_stat_activity"
                " WHERE state = 'active' AND pid <> pg_backend_pid()",
            ),
            "longest query",
        )
        wal_level = await self.scalar(ctx, "SHOW wal_level")
        logical = wal_level.strip().lower() == "logical"
        longest = round(longest, 2)

        ctx.line("PostgreSQL:")
        ctx.line(f"  Connections: {display_number(connections)}")
        ctx.line(f"  Longest running query: {display_number(longest)}s")
        ctx.line(f"  wal_level: {wal_level}")
        return [
            MetricReading.numeric(
                self.category, "postgresql_connection_count", connections,
                entity=self.engine,
            ),
            MetricReading.numeric(
                self.category, "long_running_query_seconds", longest, "s",
                entity=self.engine,
            ),
            MetricReading.flag(self.category, "wal_logical", logical, entity=self.engine),
        ]


class MongoSource(_DatabaseSource):
    """MongoDB current connections."""

    name = "mongodb"
    engine = "mongodb"
    metrics = ("mongodb_connection_count",)
    required_tools = ("mongosh",)

    async def query(self, ctx: CollectionContext, sql: str) -> str:
        result = await ctx.runner.run(
            ["mongosh", "--quiet", "--eval", sql],
            timeout=self.timeout,
            check=True,
        )
        return result.stdout

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        connections = to_float(
            await self.scalar(ctx, "db.serverStatus().connections.current"),
            "mongodb connections",
        )
        ctx.line("MongoDB:")
        ctx.line(f"  Connections: {display_number(connections)}")
        return [
            MetricReading.numeric(
                self.category, "mongodb_connection_count", connections, entity=self.engine,
            ),
        ]


class OracleSource(_DatabaseSource):
    """Oracle archive log mode (required for change data capture)."""

    name = "oracle"
    engine = "oracle"
    metrics = ("archivelog",)
    required_tools = ("sqlplus",)

    async def query(self, ctx: CollectionContext, sql: str) -> str:
        script = f"set heading off feedback off pagesize 0\n{sql};\nexit;\n"
        result = await ctx.runner.run(
            [*self._prefix(), "sqlplus", "-S", "/", "as", "sysdba"],
            timeout=self.timeout,
            check=True,
            stdin_data=script,
        )
        return result.stdout

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        log_mode = await self.scalar(ctx, "select log_mode from v$database")
        archivelog = log_mode.strip().upper() == "ARCHIVELOG"
        ctx.line("Oracle:")
        ctx.line(f"  Log mode: {log_mode}")
        return [MetricReading.flag(self.category, "archivelog", archivelog, entity=self.engine)]


class SqlServerSource(_DatabaseSource):
    """SQL Server Agent state (required for CDC capture jobs)."""

    name = "sqlserver"
    engine = "sqlserver"
    metrics = ("agent_running",)
    required_tools = ("sqlcmd",)

    async def query(self, ctx: CollectionContext, sql: str) -> str:
        result = await ctx.runner.run(
            ["sqlcmd", "-S", "localhost", "-E", "-h", "-1", "-W", "-Q", sql],
            timeout=self.timeout,
            check=True,
        )
        return result.stdout

    async def gather(self, ctx: CollectionContext) -> list[MetricReading]:
        status = await self.scalar(
            ctx,
            "SET NOCOUNT ON; SELECT status_desc FROM sys.dm_server_services"
            " WHERE servicename LIKE 'SQL Server Agent%'",
        )
        running = status.strip().lower() == "running"
        ctx.line("SQL Server:")
        ctx.line(f"  SQL Server Agent: {status}")
        return [
            MetricReading.flag(self.category, "agent_running", running, entity=self.engine),
        ]

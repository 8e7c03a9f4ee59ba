"""Host identity — OS facts from /proc and /etc, EC2 identity from instance metadata."""

from __future__ import annotations

import os
import platform
import socket
from pathlib import Path

import httpx
import structlog

from forensics.core.config import MetadataConfig
from forensics.core.types import SystemInfo
from forensics.sources.exceptions import SourceParseError
from forensics.sources.memory import parse_meminfo
from forensics.sources.parsing import parse_key_values

logger = structlog.stdlib.get_logger()

_METADATA_PATHS: dict[str, str] = {
    "instance_id": "meta-data/instance-id",
    "instance_type": "meta-data/instance-type",
    "availability_zone": "meta-data/placement/availability-zone",
}

_TOKEN_TTL_SECS = "21600"


def format_uptime(seconds: float) -> str:
    """Render seconds the way ``uptime -p`` does: 'up 3 days, 4 hours, 5 minutes'."""
    minutes_total = int(seconds // 60)
    days, rem = divmod(minutes_total, 60 * 24)
    hours, minutes = divmod(rem, 60)
    parts: list[str] = []
    for value, unit in ((days, "day"), (hours, "hour"), (minutes, "minute")):
        if value:
            parts.append(f"{value} {unit}{'s' if value != 1 else ''}")
    return "up " + (", ".join(parts) if parts else "0 minutes")


def parse_os_release(text: str) -> str:
    """PRETTY_NAME from /etc/os-release."""
    values = parse_key_values(text, sep="=")
    return values.get("PRETTY_NAME", values.get("NAME", "")).strip('"')


def parse_cpu_model(text: str) -> str:
    for line in text.splitlines():
        if line.startswith("model name") and ":" in line:
            return line.split(":", 1)[1].strip()
    return ""


class InstanceMetadataClient:
    """Reads EC2 identity from the instance metadata service.

    Tries an IMDSv2 session token first and falls back to IMDSv1. Any
    failure (not on EC2, timeout, HTTP error) yields None silently.
    """

    def __init__(
        self,
        config: MetadataConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or MetadataConfig()
        self._transport = transport

    async def fetch(self) -> dict[str, str] | None:
        if not self._config.enabled:
            return None
        try:
            async with httpx.AsyncClient(
                base_url=self._config.base_url,
                timeout=httpx.Timeout(self._config.timeout_secs),
                transport=self._transport,
            ) as http:
                headers: dict[str, str] = {}
                token = await self._token(http)
                if token:
                    headers["X-aws-ec2-metadata-token"] = token
                values: dict[str, str] = {}
                for key, path in _METADATA_PATHS.items():
                    response = await http.get(path, headers=headers)
                    response.raise_for_status()
                    values[key] = response.text.strip()
        except httpx.HTTPError as exc:
            logger.debug("instance_metadata_unavailable", error=str(exc))
            return None
        return values

    async def _token(self, http: httpx.AsyncClient) -> str | None:
        try:
            response = await http.put(
                "api/token",
                headers={"X-aws-ec2-metadata-token-ttl-seconds": _TOKEN_TTL_SECS},
            )
        except httpx.TimeoutException:
            raise
        except httpx.HTTPError:
            return None
        if response.status_code != 200:
            return None
        return response.text.strip() or None


class SystemInfoCollector:
    """Gathers the host identity printed at the top of the report."""

    def __init__(
        self,
        metadata: InstanceMetadataClient | None = None,
        proc_root: Path = Path("/proc"),
        os_release: Path = Path("/etc/os-release"),
    ) -> None:
        self._metadata = metadata or InstanceMetadataClient()
        self._proc_root = proc_root
        self._os_release = os_release

    async def collect(self) -> SystemInfo:
        uname = platform.uname()
        info = SystemInfo(
            hostname=socket.gethostname(),
            kernel=uname.release,
            architecture=uname.machine,
            os_name=self._read(self._os_release, parse_os_release),
            uptime=self._read(
                self._proc_root / "uptime",
                lambda text: format_uptime(float(text.split()[0])),
            ),
            cpu_model=self._read(self._proc_root / "cpuinfo", parse_cpu_model),
            cpu_cores=os.cpu_count() or 0,
            total_memory_mb=self._read_total_memory(),
        )
        ec2 = await self._metadata.fetch()
        if ec2:
            info = info.model_copy(update=ec2)
        logger.info(
            "system_info_collected",
            hostname=info.hostname,
            kernel=info.kernel,
            on_ec2=info.on_ec2,
        )
        return info

    def _read(self, path: Path, parse) -> str:  # type: ignore[no-untyped-def]
        try:
            return parse(path.read_text(errors="replace"))
        except (OSError, ValueError, IndexError) as exc:
            logger.debug("system_info_read_failed", path=str(path), error=str(exc))
            return ""

    def _read_total_memory(self) -> int:
        try:
            info = parse_meminfo((self._proc_root / "meminfo").read_text())
        except (OSError, SourceParseError) as exc:
            logger.debug("system_info_read_failed", path="meminfo", error=str(exc))
            return 0
        return info["MemTotal"] // 1024

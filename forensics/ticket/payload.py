"""Support case payloads — request models and the case body text."""

from __future__ import annotations

import base64
import datetime
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from forensics.core.config import TicketConfig
from forensics.core.types import DiagnosticRun, Finding, TicketSeverity
from forensics.report.formatters import render_finding_detail

ATTACHMENT_NOTE = "Complete forensics diagnostic report attached."


class CaseMetadata(BaseModel):
    """Host and run details quoted in the case body."""

    hostname: str = ""
    os_name: str = ""
    kernel: str = ""
    instance_id: str | None = None
    mode: str = ""
    generated_at: float = 0.0

    @classmethod
    def from_run(cls, run: DiagnosticRun) -> CaseMetadata:
        info = run.system_info
        return cls(
            hostname=info.hostname,
            os_name=info.os_name,
            kernel=info.kernel,
            instance_id=info.instance_id,
            mode=run.mode.value,
            generated_at=run.finished_at or run.start_time,
        )


class CasePayload(BaseModel):
    """Request body for ``create-case``; serialises with the API's camelCase keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    subject: str
    service_code: str = Field(alias="serviceCode")
    severity_code: TicketSeverity = Field(alias="severityCode")
    category_code: str = Field(alias="categoryCode")
    communication_body: str = Field(alias="communicationBody")
    language: str = "en"
    issue_type: str = Field(default="technical", alias="issueType")

    def to_request(self) -> dict[str, str]:
        return self.model_dump(by_alias=True, mode="json")


class Attachment(BaseModel):
    """One file for ``add-attachments-to-set``; ``data`` is base64."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    file_name: str = Field(alias="fileName")
    data: str

    def to_request(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


def build_subject(hostname: str) -> str:
    return f"Linux Performance Issues Detected - {hostname}"


def build_case_body(findings: Sequence[Finding], metadata: CaseMetadata) -> str:
    """Plain-text case description: summary, findings, then host details."""
    generated = datetime.datetime.fromtimestamp(
        metadata.generated_at, tz=datetime.UTC,
    ).strftime("%Y-%m-%d %H:%M:%S UTC")

    lines = [
        "AUTOMATED LINUX FORENSICS REPORT",
        "",
        "EXECUTIVE SUMMARY:",
        f"Comprehensive diagnostics detected {len(findings)} performance issue(s)"
        " requiring attention.",
        "",
        "BOTTLENECKS DETECTED:",
        *(render_finding_detail(f) for f in findings),
        "",
        "SYSTEM INFORMATION:",
        f"- Hostname: {metadata.hostname}",
        f"- OS: {metadata.os_name or 'unknown'}",
        f"- Kernel: {metadata.kernel}",
        f"- Instance ID: {metadata.instance_id or 'Not EC2'}",
        f"- Diagnostic Mode: {metadata.mode}",
        f"- Timestamp: {generated}",
        "",
        "Detailed forensics data is attached in the diagnostic report file.",
    ]
    return "\n".join(lines)


def build_case_payload(
    findings: Sequence[Finding],
    severity: TicketSeverity,
    metadata: CaseMetadata,
    config: TicketConfig,
) -> CasePayload:
    return CasePayload(
        subject=build_subject(metadata.hostname),
        service_code=config.service_code,
        severity_code=severity,
        category_code=config.category_code,
        communication_body=build_case_body(findings, metadata),
        language=config.language,
        issue_type=config.issue_type,
    )


def build_attachment(report_path: Path) -> Attachment:
    """Read the report file and encode it for upload."""
    data = base64.b64encode(report_path.read_bytes()).decode("ascii")
    return Attachment(file_name=report_path.name, data=data)

"""Pure functions that render findings and runs into report lines."""

from __future__ import annotations

import datetime

from forensics.core.types import DiagnosticRun, Finding, Severity, SystemInfo

RULE = "=" * 80

_GROUP_TITLES: dict[Severity, str] = {
    Severity.CRITICAL: "CRITICAL ISSUES",
    Severity.HIGH: "HIGH PRIORITY",
    Severity.MEDIUM: "MEDIUM PRIORITY",
    Severity.LOW: "LOW PRIORITY",
}


def report_filename(start_time: float) -> str:
    """``linux-forensics-YYYYMMDD-HHMMSS.txt`` in local time."""
    stamp = datetime.datetime.fromtimestamp(start_time).strftime("%Y%m%d-%H%M%S")
    return f"linux-forensics-{stamp}.txt"


def timestamp(when: float | None = None) -> str:
    """``[HH:MM:SS]`` prefix used on progress lines."""
    moment = datetime.datetime.fromtimestamp(when) if when else datetime.datetime.now()
    return f"[{moment.strftime('%H:%M:%S')}]"


def render_header(title: str) -> list[str]:
    return ["", RULE, f"  {title}", RULE, ""]


def render_finding(finding: Finding) -> str:
    return (
        f"BOTTLENECK FOUND: {finding.category.value} - {finding.issue}"
        f" (Current: {finding.current}, Threshold: {finding.threshold})"
    )


def render_finding_detail(finding: Finding) -> str:
    """One-line form used in ticket bodies: ``[High] CPU: issue (Current: .., Threshold: ..)``."""
    return (
        f"[{finding.severity.label}] {finding.category.value}: {finding.issue}"
        f" (Current: {finding.current}, Threshold: {finding.threshold})"
    )


def render_system_info(info: SystemInfo) -> list[str]:
    lines = [
        f"Hostname: {info.hostname}",
        f"Kernel: {info.kernel}",
        f"OS: {info.os_name or 'unknown'}",
        f"Architecture: {info.architecture}",
        f"Uptime: {info.uptime or 'unknown'}",
        f"CPU: {info.cpu_model or 'unknown'}",
        f"CPU Cores: {info.cpu_cores}",
        f"Total Memory: {info.total_memory_mb} MB",
    ]
    if info.on_ec2:
        lines.append(f"Instance ID: {info.instance_id}")
        lines.append(f"Instance Type: {info.instance_type}")
        lines.append(f"Availability Zone: {info.availability_zone}")
    else:
        lines.append("Instance ID: Not EC2")
    return lines


def render_summary(run: DiagnosticRun) -> list[str]:
    """Severity-grouped summary: Critical, High, Medium, Low.

    Coverage gaps are listed in their own section so degraded coverage is
    visible without reading as a finding.
    """
    lines = [f"Analysis completed in {run.duration_secs:.0f} seconds", ""]

    if not run.findings:
        lines.append("NO BOTTLENECKS FOUND! System performance looks healthy.")
    else:
        lines.append(
            f"BOTTLENECKS DETECTED: {len(run.findings)} performance issue(s) found"
        )
        lines.append("")
        for severity, findings in run.findings_by_severity().items():
            if not findings:
                continue
            lines.append(f"  {_GROUP_TITLES[severity]} ({len(findings)}):")
            for finding in findings:
                lines.append(f"    • {finding.category.value}: {finding.issue}")

    unavailable = run.unavailable_sources
    if run.coverage_gaps or unavailable:
        lines.append("")
        lines.append(
            f"Coverage gaps: {len(run.coverage_gaps)} metric(s) could not be collected"
            f" ({len(unavailable)} source(s) unavailable)"
        )
        for gap in run.coverage_gaps:
            target = f"{gap.metric}[{gap.entity}]" if gap.entity else gap.metric
            tag = "timeout" if gap.timed_out else gap.reason
            lines.append(f"    - {gap.category.value}: {target} ({tag})")
    return lines

"""Report output: the persisted text artifact and its summary."""

from forensics.report.formatters import (
    render_finding,
    render_finding_detail,
    render_header,
    render_summary,
    render_system_info,
    report_filename,
)
from forensics.report.sink import ReportSink

__all__ = [
    "ReportSink",
    "render_finding",
    "render_finding_detail",
    "render_header",
    "render_summary",
    "render_system_info",
    "report_filename",
]

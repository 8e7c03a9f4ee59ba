#!/usr/bin/env python3
"""Linux forensics entrypoint — collects diagnostics and reports bottlenecks.

Usage::

    # Standard diagnostics (must run as root)
    sudo python scripts/run.py

    # Quick CPU/memory check, report in /var/tmp
    sudo python scripts/run.py --mode quick --output /var/tmp

    # Deep run that opens an AWS Support case if anything is found
    sudo python scripts/run.py --mode deep --support --severity high
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
import time
from collections.abc import Callable, Sequence
from pathlib import Path

import structlog

from forensics.collector import PROBED_TOOLS, CollectorPipeline, build_sources
from forensics.core.config import Settings, load_settings
from forensics.core.exceptions import ConfigError, PrivilegeError
from forensics.core.logging import bind_run_context, clear_run_context, setup_logging
from forensics.core.types import DiagnosticMode, DiagnosticRun, TicketSeverity
from forensics.report import ReportSink, report_filename
from forensics.sources import (
    Capabilities,
    CommandRunner,
    InstanceMetadataClient,
    MetricSource,
    SystemInfoCollector,
)
from forensics.ticket import (
    AwsCliSupportClient,
    CaseMetadata,
    DispatchResult,
    DispatchStatus,
    SupportClient,
    TicketDispatcher,
)

logger = structlog.get_logger(__name__)

SUPPORT_TIP = "Tip: Run with --support to automatically open an AWS Support case"


def _require_root(geteuid: Callable[[], int]) -> None:
    if geteuid() != 0:
        raise PrivilegeError("This tool must be run as root (use sudo)")


def _output_dir(value: str | None) -> Path:
    directory = Path(value) if value else Path.cwd()
    if not directory.is_dir():
        raise ConfigError(f"Output directory does not exist: {directory}")
    return directory


def _write_banner(sink: ReportSink, run: DiagnosticRun) -> None:
    sink.header("LINUX PERFORMANCE FORENSICS")
    sink.line(f"Mode: {run.mode.value}")
    sink.line(f"Report: {run.output_path}")
    sink.line(f"Started: {time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(run.start_time))}")


def _write_remediation(sink: ReportSink, hints: Sequence[str]) -> None:
    if not hints:
        return
    sink.info("Ensure you have:")
    for i, hint in enumerate(hints, start=1):
        sink.info(f"  {i}. {hint}")


def _write_dispatch(sink: ReportSink, result: DispatchResult) -> None:
    if result.status == DispatchStatus.SKIPPED:
        sink.info("No bottlenecks detected - skipping support case creation")
        return
    if result.status == DispatchStatus.FAILED:
        sink.info(f"Failed to create support case: {result.error}")
        _write_remediation(sink, result.remediation)
        return

    sink.info("Support case created successfully!")
    sink.info(f"Case ID: {result.case_id}")
    if result.status == DispatchStatus.CREATED:
        sink.info("Diagnostic report attached successfully")
    else:
        sink.info(f"Failed to attach diagnostic report: {result.error}")
        _write_remediation(sink, result.remediation)
    sink.info(f"View your case: {result.case_url}")


async def collect(
    settings: Settings,
    mode: DiagnosticMode,
    output_dir: Path,
    support: bool = False,
    severity: TicketSeverity = TicketSeverity.NORMAL,
    sources: Sequence[MetricSource] | None = None,
    system_collector: SystemInfoCollector | None = None,
    support_client: SupportClient | None = None,
) -> DiagnosticRun:
    """Run one diagnostic pass and write its report under *output_dir*."""
    started = time.time()
    run = DiagnosticRun(
        mode=mode,
        output_path=output_dir / report_filename(started),
        start_time=started,
        concurrent=settings.collection.concurrent,
    )
    capabilities = Capabilities.probe(PROBED_TOOLS)
    runner = CommandRunner(default_timeout=settings.collection.command_timeout_secs)
    if sources is None:
        sources = build_sources(
            settings.collection,
            as_root=True,
            can_switch_user=capabilities.has("runuser"),
        )

    bind_run_context(mode.value, run.output_path.name)
    logger.info("forensics_starting", output_dir=str(output_dir))

    with ReportSink(run.output_path, echo=sys.stdout) as sink:
        _write_banner(sink, run)

        collector = system_collector or SystemInfoCollector(
            InstanceMetadataClient(settings.metadata)
        )
        run.system_info = await collector.collect()
        sink.write_system_info(run.system_info)

        pipeline = CollectorPipeline(
            sources,
            sink,
            runner,
            capabilities=capabilities,
            deadline_secs=settings.collection.deadline_for(mode.value),
            concurrent=settings.collection.concurrent,
        )
        await pipeline.run(run)

        sink.write_summary(run)
        sink.line("")
        sink.line(f"Report saved to: {run.output_path}")

        if support:
            sink.header("AWS SUPPORT CASE CREATION")
            client = support_client or AwsCliSupportClient(settings.ticket)
            dispatcher = TicketDispatcher(client, settings.ticket)
            result = await dispatcher.dispatch(
                run.display_findings(),
                severity,
                CaseMetadata.from_run(run),
                run.output_path,
            )
            _write_dispatch(sink, result)
        elif run.findings:
            sink.line("")
            sink.info(SUPPORT_TIP)

    logger.info(
        "forensics_finished",
        findings=len(run.findings),
        unavailable_sources=len(run.unavailable_sources),
    )
    clear_run_context()
    return run


async def run(
    args: argparse.Namespace,
    geteuid: Callable[[], int] = os.geteuid,
    **overrides: object,
) -> int:
    """Validate arguments, check privileges, then collect. Returns the exit code."""
    try:
        settings = load_settings(args.config)
        setup_logging(level=args.log_level)
        mode = DiagnosticMode.parse(args.mode)
        severity = TicketSeverity.parse(args.severity)
        output_dir = _output_dir(args.output)
        _require_root(geteuid)
    except PrivilegeError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    await collect(
        settings,
        mode,
        output_dir,
        support=args.support,
        severity=severity,
        **overrides,  # type: ignore[arg-type]
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Diagnose Linux performance bottlenecks and optionally open an"
        " AWS Support case.",
    )
    parser.add_argument(
        "-m", "--mode",
        default="standard",
        help="Diagnostic mode: quick, standard, deep, disk, cpu, memory (default: standard)",
    )
    parser.add_argument(
        "-s", "--support",
        action="store_true",
        help="Create an AWS Support case if bottlenecks are found",
    )
    parser.add_argument(
        "-v", "--severity",
        default="normal",
        help="Support case severity: low, normal, high, urgent, critical (default: normal)",
    )
    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Directory for the report file (default: current directory)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()

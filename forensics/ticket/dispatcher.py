"""Ticket dispatcher — files an AWS Support case for a run's findings."""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

from forensics.core.config import TicketConfig
from forensics.core.types import Finding, TicketSeverity
from forensics.ticket.client import SupportClient
from forensics.ticket.exceptions import DispatchError, SupportCliMissingError
from forensics.ticket.payload import (
    ATTACHMENT_NOTE,
    CaseMetadata,
    build_attachment,
    build_case_payload,
)

logger = structlog.stdlib.get_logger()

CASE_URL = "https://console.aws.amazon.com/support/home#/case/?displayId={case_id}"

_CREDENTIALS_HINT = "AWS CLI configured with credentials (aws configure)"
_PLAN_HINT = "Active AWS Support plan (Business or Enterprise)"
_IAM_HINT = (
    "IAM permissions for support:CreateCase, support:AddAttachmentsToSet"
    " and support:AddCommunicationToCase"
)
_INSTALL_HINT = "Install the AWS CLI: https://aws.amazon.com/cli/"
_REPORT_HINT = "Readable report file at {path}"


class DispatchStatus(StrEnum):
    SKIPPED = "SKIPPED"
    CREATED = "CREATED"
    ATTACHMENT_FAILED = "ATTACHMENT_FAILED"
    FAILED = "FAILED"


class DispatchResult(BaseModel):
    """Outcome of one dispatch attempt."""

    status: DispatchStatus
    case_id: str | None = None
    attachment_set_id: str | None = None
    error: str = ""
    remediation: list[str] = Field(default_factory=list)

    @property
    def case_url(self) -> str | None:
        if self.case_id is None:
            return None
        return CASE_URL.format(case_id=self.case_id)


def remediation_for(error: DispatchError) -> list[str]:
    """Operator hints for a failed dispatch, most specific first."""
    if isinstance(error, SupportCliMissingError):
        return [_INSTALL_HINT]
    text = str(error)
    lowered = text.lower()
    if "subscriptionrequired" in lowered or "support plan" in lowered:
        return [_PLAN_HINT]
    if "accessdenied" in lowered or "not authorized" in lowered:
        return [_IAM_HINT]
    if "credentials" in lowered or "expiredtoken" in lowered:
        return [_CREDENTIALS_HINT]
    return [_CREDENTIALS_HINT, _PLAN_HINT, _IAM_HINT]


class TicketDispatcher:
    """Creates a support case, then attaches the report to it.

    - Zero findings: SKIPPED, the client is never called.
    - Case creation fails: FAILED, with remediation hints.
    - Case created but the attachment step fails: ATTACHMENT_FAILED; the
      case ID is still returned along with remediation hints.
    """

    def __init__(self, client: SupportClient, config: TicketConfig | None = None) -> None:
        self._client = client
        self._config = config if config is not None else TicketConfig()

    async def dispatch(
        self,
        findings: Sequence[Finding],
        severity: TicketSeverity,
        metadata: CaseMetadata,
        report_path: Path,
    ) -> DispatchResult:
        if not findings:
            logger.info("ticket_skipped", reason="no findings")
            return DispatchResult(status=DispatchStatus.SKIPPED)

        payload = build_case_payload(findings, severity, metadata, self._config)
        try:
            case_id = await self._client.create_case(payload)
        except DispatchError as exc:
            logger.error("ticket_create_failed", error=str(exc))
            return DispatchResult(
                status=DispatchStatus.FAILED,
                error=str(exc),
                remediation=remediation_for(exc),
            )
        logger.info("ticket_case_created", case_id=case_id, severity=severity.value)

        attachment_set_id: str | None = None
        try:
            attachment_set_id = await self._client.add_attachments_to_set(
                [build_attachment(report_path)]
            )
            await self._client.add_communication_to_case(
                case_id, ATTACHMENT_NOTE, attachment_set_id,
            )
        except (DispatchError, OSError) as exc:
            logger.warning("ticket_attachment_failed", case_id=case_id, error=str(exc))
            if isinstance(exc, DispatchError):
                remediation = remediation_for(exc)
            else:
                remediation = [_REPORT_HINT.format(path=report_path)]
            return DispatchResult(
                status=DispatchStatus.ATTACHMENT_FAILED,
                case_id=case_id,
                attachment_set_id=attachment_set_id,
                error=str(exc),
                remediation=remediation,
            )

        logger.info("ticket_report_attached", case_id=case_id)
        return DispatchResult(
            status=DispatchStatus.CREATED,
            case_id=case_id,
            attachment_set_id=attachment_set_id,
        )

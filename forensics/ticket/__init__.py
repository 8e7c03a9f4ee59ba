"""AWS Support case creation for detected bottlenecks."""

from forensics.ticket.client import AwsCliSupportClient, SupportClient
from forensics.ticket.dispatcher import (
    DispatchResult,
    DispatchStatus,
    TicketDispatcher,
    remediation_for,
)
from forensics.ticket.exceptions import (
    AttachmentError,
    CaseCreationError,
    DispatchError,
    SupportCliMissingError,
)
from forensics.ticket.payload import (
    Attachment,
    CaseMetadata,
    CasePayload,
    build_attachment,
    build_case_body,
    build_case_payload,
    build_subject,
)

__all__ = [
    "Attachment",
    "AttachmentError",
    "AwsCliSupportClient",
    "CaseCreationError",
    "CaseMetadata",
    "CasePayload",
    "DispatchError",
    "DispatchResult",
    "DispatchStatus",
    "SupportCliMissingError",
    "SupportClient",
    "TicketDispatcher",
    "build_attachment",
    "build_case_body",
    "build_case_payload",
    "build_subject",
    "remediation_for",
]

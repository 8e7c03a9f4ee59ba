"""Support API clients — the abstract interface and the AWS CLI transport."""

from __future__ import annotations

import abc
import contextlib
import json
import os
import tempfile
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any

import structlog

from forensics.core.config import TicketConfig
from forensics.sources.exceptions import (
    CommandFailedError,
    CommandTimeoutError,
    ToolNotFoundError,
)
from forensics.sources.exec import CommandRunner
from forensics.ticket.exceptions import (
    AttachmentError,
    CaseCreationError,
    DispatchError,
    SupportCliMissingError,
)
from forensics.ticket.payload import Attachment, CasePayload

logger = structlog.stdlib.get_logger()


class SupportClient(abc.ABC):
    """The three AWS Support operations needed to file a case with a report."""

    @abc.abstractmethod
    async def create_case(self, payload: CasePayload) -> str:
        """Create a case. Returns the case ID."""

    @abc.abstractmethod
    async def add_attachments_to_set(self, attachments: Sequence[Attachment]) -> str:
        """Upload attachments. Returns the attachment set ID."""

    @abc.abstractmethod
    async def add_communication_to_case(
        self,
        case_id: str,
        body: str,
        attachment_set_id: str | None = None,
    ) -> None:
        """Post a message (optionally with attachments) to an existing case."""


@contextlib.contextmanager
def _request_file(request: dict[str, Any]) -> Iterator[Path]:
    """Write *request* to a private temp file, removed on exit.

    Request bodies carry the base64 report, which is too large for argv.
    """
    fd, name = tempfile.mkstemp(prefix="forensics-support-", suffix=".json")
    path = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(request, f)
        yield path
    finally:
        path.unlink(missing_ok=True)


class AwsCliSupportClient(SupportClient):
    """Drives ``aws support`` through the CommandRunner.

    Usage::

        client = AwsCliSupportClient(settings.ticket)
        case_id = await client.create_case(payload)
    """

    def __init__(self, config: TicketConfig, runner: CommandRunner | None = None) -> None:
        self._config = config
        self._runner = runner or CommandRunner(default_timeout=config.command_timeout_secs)

    async def create_case(self, payload: CasePayload) -> str:
        response = await self._call("create-case", payload.to_request(), CaseCreationError)
        return _require(response, "caseId", CaseCreationError)

    async def add_attachments_to_set(self, attachments: Sequence[Attachment]) -> str:
        request = {"attachments": [a.to_request() for a in attachments]}
        response = await self._call("add-attachments-to-set", request, AttachmentError)
        return _require(response, "attachmentSetId", AttachmentError)

    async def add_communication_to_case(
        self,
        case_id: str,
        body: str,
        attachment_set_id: str | None = None,
    ) -> None:
        request = {"caseId": case_id, "communicationBody": body}
        if attachment_set_id:
            request["attachmentSetId"] = attachment_set_id
        await self._call("add-communication-to-case", request, AttachmentError)

    async def _call(
        self,
        operation: str,
        request: dict[str, Any],
        error_cls: type[DispatchError],
    ) -> dict[str, Any]:
        with _request_file(request) as path:
            argv = [
                self._config.aws_cli, "support", operation,
                "--cli-input-json", f"file://{path}",
                "--region", self._config.region,
                "--output", "json",
            ]
            try:
                result = await self._runner.run(
                    argv, timeout=self._config.command_timeout_secs, check=True,
                )
            except ToolNotFoundError as exc:
                raise SupportCliMissingError(
                    f"AWS CLI not found: {self._config.aws_cli}"
                ) from exc
            except CommandTimeoutError as exc:
                raise error_cls(f"aws support {operation} timed out") from exc
            except CommandFailedError as exc:
                raise error_cls(exc.stderr.strip() or str(exc)) from exc

        logger.debug("support_call_ok", operation=operation)
        if not result.stdout.strip():
            return {}
        try:
            response = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise error_cls(f"unparseable response from aws support {operation}") from exc
        if not isinstance(response, dict):
            raise error_cls(f"unexpected response from aws support {operation}")
        return response


def _require(response: dict[str, Any], key: str, error_cls: type[DispatchError]) -> str:
    value = response.get(key)
    if not isinstance(value, str) or not value:
        raise error_cls(f"response is missing {key}")
    return value

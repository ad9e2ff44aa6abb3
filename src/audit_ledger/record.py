# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Helpers for constructing and decoding ledger entries.

Writing goes through two stages:

1. ``build_entry`` sanitizes caller input and assembles an unsigned AuditEntry.
2. ``entry_payload`` returns the exact mapping that is signed and written to disk.

Reading is the reverse: ``decode_line`` turns one NDJSON line into either a
``DecodedLine`` or a ``LineError``, so that callers scanning a segment branch
on an explicit result instead of suppressing exceptions.
"""

from __future__ import annotations

import json
import os
import secrets
import socket
import time
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from audit_ledger.sanitize import sanitize_context, sanitize_details
from audit_ledger.types import (
    AuditEntry,
    EntryContext,
    EntryMetadata,
    EventType,
    parse_timestamp,
    severity_for,
)

SCHEMA_VERSION = "1.1"
TRUNCATION_WARNING = "Entry was truncated due to size"

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits: list[str] = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def generate_entry_id() -> str:
    """Return ``al-<epoch ms in base 36>-<8 random hex chars>``."""
    return f"al-{_to_base36(time.time_ns() // 1_000_000)}-{secrets.token_hex(4)}"


def current_timestamp() -> str:
    """Return the current UTC time as an ISO 8601 string with millisecond precision."""
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def format_timestamp(moment: datetime) -> str:
    """Format an aware datetime the same way ``current_timestamp`` does."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def _process_metadata() -> EntryMetadata:
    return EntryMetadata(version=SCHEMA_VERSION, hostname=socket.gethostname(), pid=os.getpid())


def build_entry(
    event_type: EventType | str,
    details: Mapping[str, Any] | None = None,
    context: EntryContext | Mapping[str, Any] | None = None,
    *,
    entry_id: str | None = None,
    timestamp: str | None = None,
) -> AuditEntry:
    """
    Assemble an unsigned entry from caller input.

    Severity is derived from ``event_type``; details and context are
    sanitized. ``entry_id`` and ``timestamp`` override the generated values
    (useful in tests and when replaying events).

    Raises:
        ValueError: If ``event_type`` is not a known :class:`EventType`.
    """
    kind = EventType(event_type)
    return AuditEntry(
        id=entry_id or generate_entry_id(),
        timestamp=timestamp or current_timestamp(),
        event_type=kind,
        severity=severity_for(kind),
        details=sanitize_details(details),
        context=sanitize_context(context),
        metadata=_process_metadata(),
    )


def entry_payload(entry: AuditEntry) -> dict[str, Any]:
    """
    Return the mapping that is signed and serialized for ``entry``.

    Absent optional fields (context members, the metadata warning, the
    signature fields) are omitted so the on-disk line stays compact.
    """
    payload: dict[str, Any] = {
        "id": entry.id,
        "timestamp": entry.timestamp,
        "event_type": entry.event_type.value,
        "severity": entry.severity.value,
        "details": entry.details,
        "context": entry.context.model_dump(exclude_none=True),
        "metadata": entry.metadata.model_dump(exclude_none=True),
    }
    return payload


def truncated_payload(payload: Mapping[str, Any], original_size: int) -> dict[str, Any]:
    """Replace the details of an oversized payload with a truncation marker."""
    metadata = dict(payload.get("metadata") or {})
    metadata["warning"] = TRUNCATION_WARNING
    return {
        **payload,
        "details": {"_truncated": True, "_original_size": original_size},
        "metadata": metadata,
    }


def serialize_payload(payload: Mapping[str, Any]) -> str:
    """Serialize a payload to a single NDJSON line (without the newline)."""
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


@dataclass(frozen=True)
class DecodedLine:
    """A segment line that parsed as a JSON object."""

    line_number: int
    payload: dict[str, Any]
    occurred_at: datetime | None

    def to_entry(self) -> AuditEntry | None:
        """Validate the payload into an AuditEntry, or None when it does not fit the schema."""
        try:
            return AuditEntry.model_validate(self.payload)
        except ValidationError:
            return None


@dataclass(frozen=True)
class LineError:
    """A segment line that could not be decoded."""

    line_number: int
    error: str


LineResult = DecodedLine | LineError


def decode_line(line: str, line_number: int) -> LineResult:
    """Decode one NDJSON line. ``line_number`` is 1-based."""
    try:
        payload = json.loads(line)
    except json.JSONDecodeError as exc:
        return LineError(line_number=line_number, error=f"Invalid JSON: {exc.msg}")
    if not isinstance(payload, dict):
        return LineError(line_number=line_number, error="Invalid JSON: not an object")
    return DecodedLine(
        line_number=line_number,
        payload=payload,
        occurred_at=parse_timestamp(payload.get("timestamp")),
    )


def decode_lines(lines: list[str]) -> list[LineResult]:
    """Decode every non-blank line of a segment, numbering lines from 1."""
    return [
        decode_line(line, number)
        for number, line in enumerate(lines, start=1)
        if line.strip()
    ]

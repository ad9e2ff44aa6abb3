# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Export helpers that serialise ledger entries to JSON, CSV, and CEF.

- JSON: a JSON array with 2-space indentation.
- CSV:  a header row, then one row per entry; nested values are JSON-encoded.
- CEF:  ArcSight Common Event Format, one event per line, for SIEM ingestion.
"""

from __future__ import annotations

import csv
import io
import json

from audit_ledger.types import AuditEntry, Severity

# ---------------------------------------------------------------------------
# JSON export
# ---------------------------------------------------------------------------


def export_json(entries: list[AuditEntry]) -> str:
    """Serialise entries to a JSON array string with 2-space indentation."""
    return json.dumps(
        [entry.model_dump(mode="json", exclude_none=True) for entry in entries],
        indent=2,
        ensure_ascii=False,
    )


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------

CSV_COLUMNS: list[str] = [
    "id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "session_id",
    "command",
    "source_ip",
    "details",
    "hostname",
    "pid",
    "signature",
]


def _entry_to_csv_row(entry: AuditEntry) -> list[str]:
    raw = entry.model_dump(mode="json")
    flat = {
        **{key: value for key, value in raw.items() if key not in ("context", "metadata")},
        **raw["context"],
        "hostname": raw["metadata"]["hostname"],
        "pid": raw["metadata"]["pid"],
    }
    row: list[str] = []
    for column in CSV_COLUMNS:
        value = flat.get(column)
        if value is None:
            row.append("")
        elif isinstance(value, (dict, list)):
            row.append(json.dumps(value, ensure_ascii=False, sort_keys=True))
        else:
            row.append(str(value))
    return row


def export_csv(entries: list[AuditEntry]) -> str:
    """
    Serialise entries to CSV.

    Context fields are flattened into their own columns; absent values are
    left empty.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for entry in entries:
        writer.writerow(_entry_to_csv_row(entry))
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# CEF export
# ---------------------------------------------------------------------------

CEF_SEVERITY: dict[Severity, int] = {
    Severity.DEBUG: 1,
    Severity.INFO: 3,
    Severity.WARNING: 5,
    Severity.ERROR: 7,
    Severity.CRITICAL: 10,
}


def _escape_cef_extension(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace("=", "\\=")
        .replace("\r", "\\r")
        .replace("\n", "\\n")
    )


def _escape_cef_header(value: str) -> str:
    return value.replace("\\", "\\\\").replace("|", "\\|")


def _entry_to_cef_line(entry: AuditEntry) -> str:
    """
    Serialise one entry as
    ``CEF:0|AuditLedger|AuditLedger|1.0|<event_type>|<name>|<severity>|<extension>``.
    """
    event_type = entry.event_type.value
    name = _escape_cef_header(f"Audit Event: {event_type}")

    extensions: list[str] = [
        f"rt={_escape_cef_extension(entry.timestamp)}",
        "cs1Label=entryId",
        f"cs1={_escape_cef_extension(entry.id)}",
        f"dvchost={_escape_cef_extension(entry.metadata.hostname)}",
        f"dvcpid={entry.metadata.pid}",
    ]
    if entry.signature is not None:
        extensions += ["cs3Label=signature", f"cs3={_escape_cef_extension(entry.signature)}"]
    context = entry.context
    if context.source_ip is not None:
        extensions.append(f"src={_escape_cef_extension(context.source_ip)}")
    if context.user_id is not None:
        extensions.append(f"suser={_escape_cef_extension(context.user_id)}")
    if context.session_id is not None:
        extensions += ["cs2Label=sessionId", f"cs2={_escape_cef_extension(context.session_id)}"]
    if context.command is not None:
        extensions.append(f"act={_escape_cef_extension(context.command)}")
    if entry.details:
        details = json.dumps(entry.details, ensure_ascii=False, sort_keys=True)
        extensions.append(f"msg={_escape_cef_extension(details)}")

    return (
        f"CEF:0|AuditLedger|AuditLedger|1.0|{_escape_cef_header(event_type)}|{name}|"
        f"{CEF_SEVERITY[entry.severity]}|{' '.join(extensions)}"
    )


def export_cef(entries: list[AuditEntry]) -> str:
    """Serialise entries to CEF, one event per line."""
    return "\n".join(_entry_to_cef_line(entry) for entry in entries)


# ---------------------------------------------------------------------------
# Unified dispatcher
# ---------------------------------------------------------------------------


def export_entries(entries: list[AuditEntry], export_format: str) -> str:
    """
    Route export to the appropriate format handler.

    Parameters
    ----------
    entries:
        The entries to export.
    export_format:
        One of ``"json"``, ``"csv"``, or ``"cef"``.

    Raises
    ------
    ValueError
        When an unsupported format string is supplied.
    """
    if export_format == "json":
        return export_json(entries)
    if export_format == "csv":
        return export_csv(entries)
    if export_format == "cef":
        return export_cef(entries)
    raise ValueError(f"Unsupported export format: {export_format!r}")

# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation
"""
Tests for JSON, CSV and CEF export.
"""

from __future__ import annotations

import asyncio
import csv
import io
import json

import pytest

from audit_ledger.export_formats import CSV_COLUMNS, export_cef, export_csv, export_json
from audit_ledger.ledger import AuditLedger
from audit_ledger.record import build_entry
from audit_ledger.types import EventType, LedgerFilter


def _entries():
    return [
        build_entry(
            EventType.AUTH_FAILURE,
            {"reason": "bad=password"},
            {"user_id": "alice", "source_ip": "10.0.0.5"},
            entry_id="al-1",
            timestamp="2026-01-01T00:00:00.000Z",
        ),
        build_entry(
            EventType.AUDIT_INTEGRITY_FAILURE,
            {"invalid_count": 1},
            entry_id="al-2",
            timestamp="2026-01-01T00:01:00.000Z",
        ),
    ]


class TestExportFormats:
    def test_json_is_an_array_of_entries(self) -> None:
        data = json.loads(export_json(_entries()))
        assert [item["id"] for item in data] == ["al-1", "al-2"]
        assert data[0]["context"] == {"user_id": "alice", "source_ip": "10.0.0.5"}

    def test_csv_has_header_and_flattened_rows(self) -> None:
        rows = list(csv.reader(io.StringIO(export_csv(_entries()))))
        assert rows[0] == CSV_COLUMNS
        first = dict(zip(CSV_COLUMNS, rows[1]))
        assert first["event_type"] == "AUTH_FAILURE"
        assert first["user_id"] == "alice"
        assert first["session_id"] == ""
        assert json.loads(first["details"]) == {"reason": "bad=password"}

    def test_cef_header_and_severity(self) -> None:
        lines = export_cef(_entries()).split("\n")
        assert lines[0].startswith("CEF:0|AuditLedger|AuditLedger|1.0|AUTH_FAILURE|")
        assert lines[0].split("|")[6] == "5"
        assert lines[1].split("|")[6] == "10"
        assert "src=10.0.0.5" in lines[0]
        assert "bad\\=password" in lines[0]


class TestLedgerExport:
    def test_export_through_facade(self, ledger: AuditLedger) -> None:
        asyncio.run(ledger.record(EventType.HEALTH_CHECK))
        asyncio.run(ledger.record(EventType.AUTH_SUCCESS))

        exported = json.loads(
            asyncio.run(
                ledger.export_entries("json", LedgerFilter(event_type=EventType.AUTH_SUCCESS))
            )
        )
        assert [item["event_type"] for item in exported] == ["AUTH_SUCCESS"]
        assert "signature" in exported[0]

    def test_unknown_format_raises(self, ledger: AuditLedger) -> None:
        with pytest.raises(ValueError, match="Unsupported export format"):
            asyncio.run(ledger.export_entries("xml"))

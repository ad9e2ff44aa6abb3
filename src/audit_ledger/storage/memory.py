# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Volatile in-memory segment storage backend.

Segments are plain lists of lines keyed by the same names the file backend
uses, and rotation shifts them exactly as the file backend renames files.
Suitable for tests and short-lived processes; data is lost when the process
exits.
"""

from __future__ import annotations

from audit_ledger.config import LedgerConfig
from audit_ledger.storage.interface import LedgerStorage


class MemoryStorage(LedgerStorage):
    """In-memory, non-persistent LedgerStorage implementation."""

    def __init__(self, config: LedgerConfig | None = None) -> None:
        self._config = config or LedgerConfig()
        self._segments: dict[str, list[str]] = {}

    def segment_names(self) -> list[str]:
        return self._config.segment_names()

    async def ensure_ready(self) -> None:
        return None

    async def active_size(self) -> int:
        lines = self._segments.get(self._config.active_segment, [])
        return sum(len(line.encode("utf-8")) + 1 for line in lines)

    async def append_line(self, line: str) -> None:
        self._segments.setdefault(self._config.active_segment, []).append(line)

    async def rotate(self) -> None:
        retention = self._config.max_segments
        self._segments.pop(self._config.rotated_segment(retention), None)
        for index in range(retention - 1, 0, -1):
            lines = self._segments.pop(self._config.rotated_segment(index), None)
            if lines is not None:
                self._segments[self._config.rotated_segment(index + 1)] = lines
        active = self._segments.pop(self._config.active_segment, None)
        if active is not None:
            self._segments[self._config.rotated_segment(1)] = active

    async def read_lines(self, segment_name: str) -> list[str] | None:
        lines = self._segments.get(segment_name)
        return list(lines) if lines is not None else None

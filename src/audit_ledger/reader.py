# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Read-only query interface over the ledger segments.

Segments are scanned active-first, then rotated segments from newest to
oldest. Each line is decoded on its own; undecodable lines are skipped and
never abort a scan. The reader re-reads the backend on every call so that
concurrent consumers (the detectors) share no mutable state.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from audit_ledger.errors import LedgerPersistenceError
from audit_ledger.record import DecodedLine, decode_lines, format_timestamp
from audit_ledger.storage.interface import LedgerStorage
from audit_ledger.types import (
    AuditEntry,
    EventType,
    LedgerFilter,
    LedgerSummary,
    Severity,
    TimeRange,
)

logger = logging.getLogger("audit_ledger.reader")

DEFAULT_SUMMARY_LIMIT = 1000

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class LedgerReader:
    """
    Filtered, time-bounded access to ledger entries.

    Parameters
    ----------
    storage:
        The segment backend to read.
    summary_limit:
        Maximum number of entries tabulated by :meth:`summarize`.
    clock:
        Returns the current aware datetime; injectable for tests.
    """

    def __init__(
        self,
        storage: LedgerStorage,
        summary_limit: int = DEFAULT_SUMMARY_LIMIT,
        clock: Clock | None = None,
    ) -> None:
        self._storage = storage
        self._summary_limit = summary_limit
        self._clock = clock or _utcnow

    def now(self) -> datetime:
        return self._clock()

    async def query(self, ledger_filter: LedgerFilter | None = None) -> list[AuditEntry]:
        """
        Return entries matching ``ledger_filter``, most recent first.

        Scanning stops as soon as ``limit`` matching entries have been
        collected, so with a small limit older segments are never read. The
        final ordering is a sort over the collected entries, independent of
        on-disk order.
        """
        effective = ledger_filter or LedgerFilter()
        cutoff = self.now() - timedelta(hours=effective.hours_back)
        matches: list[tuple[datetime, AuditEntry]] = []

        for segment_name in self._storage.segment_names():
            for decoded in await self._decoded_lines(segment_name):
                if decoded.occurred_at is None or decoded.occurred_at < cutoff:
                    continue
                entry = decoded.to_entry()
                if entry is None:
                    continue
                if effective.event_type is not None and entry.event_type != effective.event_type:
                    continue
                if effective.severity is not None and entry.severity != effective.severity:
                    continue
                matches.append((decoded.occurred_at, entry))
                if len(matches) >= effective.limit:
                    break
            if len(matches) >= effective.limit:
                break

        matches.sort(key=lambda match: match[0], reverse=True)
        return [entry for _, entry in matches]

    async def summarize(self, hours_back: float = 24) -> LedgerSummary:
        """Tabulate recent entries by severity and type."""
        now = self.now()
        entries = await self.query(
            LedgerFilter(hours_back=hours_back, limit=self._summary_limit)
        )
        by_severity: Counter[str] = Counter(entry.severity.value for entry in entries)
        by_type: Counter[str] = Counter(entry.event_type.value for entry in entries)
        return LedgerSummary(
            total_events=len(entries),
            by_severity=dict(by_severity),
            by_type=dict(by_type),
            security_violations=by_type.get(EventType.SECURITY_VIOLATION.value, 0),
            failed_authentications=by_type.get(EventType.AUTH_FAILURE.value, 0),
            time_range=TimeRange(
                start=format_timestamp(now - timedelta(hours=hours_back)),
                end=format_timestamp(now),
            ),
        )

    async def _decoded_lines(self, segment_name: str) -> list[DecodedLine]:
        try:
            lines = await self._storage.read_lines(segment_name)
        except LedgerPersistenceError as exc:
            logger.error(
                "audit_segment_read_failed",
                extra={"segment": segment_name, "error": exc.message},
            )
            return []
        if lines is None:
            return []
        return [result for result in decode_lines(lines) if isinstance(result, DecodedLine)]


def count_by_severity(entries: list[AuditEntry], severity: Severity) -> int:
    return sum(1 for entry in entries if entry.severity == severity)

# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Grouping and windowing helpers shared by the detectors.

All helpers order entries by their parsed timestamp, oldest first; entries
whose timestamp cannot be parsed are ignored.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from collections.abc import Iterable, Iterator
from datetime import datetime, timedelta

from audit_ledger.types import AuditEntry


def group_by_source(entries: Iterable[AuditEntry]) -> dict[str, list[AuditEntry]]:
    """
    Bucket entries by source address, else user id, else session id, else
    ``'unknown'``. Insertion order of both keys and entries is preserved.
    """
    grouped: dict[str, list[AuditEntry]] = {}
    for entry in entries:
        grouped.setdefault(entry.source, []).append(entry)
    return grouped


def chronological(entries: Iterable[AuditEntry]) -> list[tuple[datetime, AuditEntry]]:
    """Pair entries with their timestamps and sort oldest first (stable)."""
    timed = [(entry.occurred_at, entry) for entry in entries]
    return sorted(
        ((moment, entry) for moment, entry in timed if moment is not None),
        key=lambda pair: pair[0],
    )


def sliding_windows(
    entries: Iterable[AuditEntry],
    window_minutes: float,
) -> Iterator[list[AuditEntry]]:
    """
    Yield, for every entry taken as a window start, all entries whose
    timestamp lies in ``[start, start + window_minutes]``.

    Bounds are inclusive, so entries sharing the start timestamp are part of
    the window even when they sort before it.
    """
    ordered = chronological(entries)
    moments = [moment for moment, _ in ordered]
    span = timedelta(minutes=window_minutes)
    for start in moments:
        low = bisect_left(moments, start)
        high = bisect_right(moments, start + span)
        yield [entry for _, entry in ordered[low:high]]


def first_window_at_least(
    entries: Iterable[AuditEntry],
    threshold: int,
    window_minutes: float,
) -> list[AuditEntry] | None:
    """Return the earliest sliding window holding at least ``threshold`` entries."""
    for window in sliding_windows(entries, window_minutes):
        if len(window) >= threshold:
            return window
    return None


def time_buckets(
    entries: Iterable[AuditEntry],
    window_minutes: float,
) -> list[list[AuditEntry]]:
    """
    Split entries into non-overlapping buckets.

    Each bucket starts at its first entry and holds every following entry no
    more than ``window_minutes`` later; the next entry opens a new bucket.
    """
    span = timedelta(minutes=window_minutes)
    buckets: list[list[AuditEntry]] = []
    bucket_start: datetime | None = None
    for moment, entry in chronological(entries):
        if bucket_start is None or moment - bucket_start > span:
            buckets.append([entry])
            bucket_start = moment
        else:
            buckets[-1].append(entry)
    return buckets

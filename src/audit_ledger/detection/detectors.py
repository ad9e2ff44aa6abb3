# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
The five ledger threat detectors.

Every detector comes in two halves: a pure ``analyze_*`` function over a list
of entries, and an async ``detect_*`` wrapper that pulls the relevant window
of the ledger through a LedgerReader. Detectors share no state; each wrapper
performs its own query so they can run concurrently.

Per source, a detector reports only the first qualifying window rather than
every overlapping one.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping
from typing import Any

from audit_ledger.config import DetectionThresholds
from audit_ledger.detection.threats import Threat, ThreatLevel, ThreatType, create_threat
from audit_ledger.detection.windows import (
    chronological,
    first_window_at_least,
    group_by_source,
    time_buckets,
)
from audit_ledger.errors import ConfigurationError
from audit_ledger.reader import LedgerReader
from audit_ledger.types import (
    COMMAND_EVENT_TYPES,
    AuditEntry,
    EventType,
    LedgerFilter,
    Severity,
)

logger = logging.getLogger("audit_ledger.detection")

AUTH_QUERY_LIMIT = 1000
COMMAND_QUERY_LIMIT = 2000
ERROR_QUERY_LIMIT = 2000
ESCALATION_QUERY_LIMIT = 1000

LOW_DIVERSITY_RATIO = 0.3
HIGH_ERROR_RATE = 0.5
MIN_BUCKET_EVENTS = 10

RECON_KEYWORDS: tuple[str, ...] = ("ps", "top", "inspect", "logs", "config", "version")
RECON_POOL_MINIMUM = 10
RECON_SOURCE_MINIMUM = 5

# Inclusive local hours. With an end of 23 only 00:00-05:59 counts as after
# hours, and the upper comparison in _is_after_hours never matches.
BUSINESS_HOURS_START = 6
BUSINESS_HOURS_END = 23
AFTER_HOURS_SOURCE_MINIMUM = 5

_ERROR_SEVERITIES = frozenset({Severity.ERROR, Severity.CRITICAL})
_SENSITIVE_EVENT_TYPES = frozenset(
    {EventType.CONFIG_WRITE, EventType.PERMISSION_DENIED, EventType.SECURITY_VIOLATION}
)

ThresholdOverrides = DetectionThresholds | Mapping[str, Any] | None


def resolve_thresholds(
    overrides: ThresholdOverrides,
    base: DetectionThresholds | None = None,
    log: logging.Logger = logger,
) -> DetectionThresholds:
    """
    Apply per-call ``overrides`` on top of ``base`` without raising.

    Unknown keys and values that fail validation are logged on ``log`` and
    dropped; every other override still applies.
    """
    base = base or DetectionThresholds()
    if overrides is None:
        return base
    if isinstance(overrides, DetectionThresholds):
        return overrides

    fields = DetectionThresholds.model_fields
    accepted: dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in fields:
            log.warning(
                "detection_threshold_ignored",
                extra={"threshold": str(key), "reason": "unknown"},
            )
            continue
        try:
            base.with_overrides({key: value})
        except ConfigurationError:
            log.warning(
                "detection_threshold_ignored",
                extra={"threshold": key, "value": repr(value), "reason": "invalid"},
            )
            continue
        accepted[key] = value
    return base.with_overrides(accepted)


def _ids(entries: list[AuditEntry]) -> list[str]:
    return [entry.id for entry in entries]


def _command_of(entry: AuditEntry) -> str | None:
    command = entry.details.get("command")
    return command if isinstance(command, str) else None


def _command_entries(entries: list[AuditEntry]) -> list[AuditEntry]:
    return [entry for entry in entries if entry.event_type in COMMAND_EVENT_TYPES]


# ---------------------------------------------------------------------------
# Brute force
# ---------------------------------------------------------------------------


def analyze_brute_force(
    entries: list[AuditEntry],
    thresholds: ThresholdOverrides = None,
) -> list[Threat]:
    """Flag sources with a dense window of AUTH_FAILURE entries."""
    limits = resolve_thresholds(thresholds)
    failures = [entry for entry in entries if entry.event_type == EventType.AUTH_FAILURE]
    threats: list[Threat] = []

    for source, source_entries in group_by_source(failures).items():
        window = first_window_at_least(
            source_entries, limits.failed_auth_threshold, limits.failed_auth_window_minutes
        )
        if window is None:
            continue
        critical = len(window) >= limits.failed_auth_threshold * 2
        threats.append(
            create_threat(
                ThreatType.BRUTE_FORCE,
                ThreatLevel.CRITICAL if critical else ThreatLevel.HIGH,
                source,
                {
                    "failed_attempts": len(window),
                    "window_minutes": limits.failed_auth_window_minutes,
                    "first_attempt": window[0].timestamp,
                    "last_attempt": window[-1].timestamp,
                },
                _ids(window),
            )
        )
    return threats


async def detect_brute_force(
    reader: LedgerReader,
    hours_back: float = 24,
    thresholds: ThresholdOverrides = None,
) -> list[Threat]:
    entries = await reader.query(
        LedgerFilter(
            event_type=EventType.AUTH_FAILURE, hours_back=hours_back, limit=AUTH_QUERY_LIMIT
        )
    )
    return analyze_brute_force(entries, thresholds)


# ---------------------------------------------------------------------------
# Rate-limit violations
# ---------------------------------------------------------------------------


def analyze_rate_limit(
    entries: list[AuditEntry],
    thresholds: ThresholdOverrides = None,
) -> list[Threat]:
    """
    Flag sources issuing too many commands in a short window.

    Low command diversity (mostly the same command repeated) suggests scripted
    abuse and raises the level from medium to high.
    """
    limits = resolve_thresholds(thresholds)
    threats: list[Threat] = []

    for source, source_entries in group_by_source(_command_entries(entries)).items():
        window = first_window_at_least(
            source_entries, limits.command_rate_threshold, limits.command_rate_window_minutes
        )
        if window is None:
            continue
        unique_commands = len({_command_of(entry) for entry in window})
        diversity = unique_commands / len(window)
        threats.append(
            create_threat(
                ThreatType.RATE_LIMIT_VIOLATION,
                ThreatLevel.HIGH if diversity < LOW_DIVERSITY_RATIO else ThreatLevel.MEDIUM,
                source,
                {
                    "command_count": len(window),
                    "window_minutes": limits.command_rate_window_minutes,
                    "unique_commands": unique_commands,
                    "command_diversity": round(diversity, 2),
                    "start_time": window[0].timestamp,
                    "end_time": window[-1].timestamp,
                },
                _ids(window),
            )
        )
    return threats


async def detect_rate_limit_violations(
    reader: LedgerReader,
    hours_back: float = 24,
    thresholds: ThresholdOverrides = None,
) -> list[Threat]:
    entries = await reader.query(LedgerFilter(hours_back=hours_back, limit=COMMAND_QUERY_LIMIT))
    return analyze_rate_limit(entries, thresholds)


# ---------------------------------------------------------------------------
# Error spikes
# ---------------------------------------------------------------------------


def _is_error(entry: AuditEntry) -> bool:
    return entry.severity in _ERROR_SEVERITIES or entry.event_type == EventType.SECURITY_VIOLATION


def analyze_error_spikes(
    entries: list[AuditEntry],
    thresholds: ThresholdOverrides = None,
) -> list[Threat]:
    """
    Flag time buckets in which a large share of entries are errors.

    Buckets with fewer than ten entries are ignored so a couple of isolated
    failures never count as a spike.
    """
    limits = resolve_thresholds(thresholds)
    threats: list[Threat] = []

    for bucket in time_buckets(entries, limits.error_rate_window_minutes):
        total = len(bucket)
        errors = [entry for entry in bucket if _is_error(entry)]
        error_rate = len(errors) / total
        if error_rate < limits.error_rate_threshold or total < MIN_BUCKET_EVENTS:
            continue
        error_types = Counter(entry.event_type.value for entry in errors)
        threats.append(
            create_threat(
                ThreatType.ERROR_SPIKE,
                ThreatLevel.HIGH if error_rate >= HIGH_ERROR_RATE else ThreatLevel.MEDIUM,
                "system",
                {
                    "total_events": total,
                    "error_events": len(errors),
                    "error_rate": round(error_rate, 4),
                    "window_start": bucket[0].timestamp,
                    "window_end": bucket[-1].timestamp,
                    "error_types": dict(error_types),
                },
                _ids(errors),
            )
        )
    return threats


async def detect_error_spikes(
    reader: LedgerReader,
    hours_back: float = 24,
    thresholds: ThresholdOverrides = None,
) -> list[Threat]:
    entries = await reader.query(LedgerFilter(hours_back=hours_back, limit=ERROR_QUERY_LIMIT))
    return analyze_error_spikes(entries, thresholds)


# ---------------------------------------------------------------------------
# Privilege escalation
# ---------------------------------------------------------------------------


def analyze_privilege_escalation(
    entries: list[AuditEntry],
    thresholds: ThresholdOverrides = None,
) -> list[Threat]:
    """
    Flag sources producing a burst of sensitive events.

    A window that contains both a PERMISSION_DENIED and a CONFIG_WRITE is the
    classic escalation pattern (denied, then rewrote the configuration) and is
    reported as critical.
    """
    limits = resolve_thresholds(thresholds)
    sensitive = [entry for entry in entries if entry.event_type in _SENSITIVE_EVENT_TYPES]
    threats: list[Threat] = []

    for source, source_entries in group_by_source(sensitive).items():
        window = first_window_at_least(
            source_entries, limits.config_change_threshold, limits.config_change_window_minutes
        )
        if window is None:
            continue
        kinds = {entry.event_type for entry in window}
        has_permission_denied = EventType.PERMISSION_DENIED in kinds
        has_config_change = EventType.CONFIG_WRITE in kinds
        escalation = has_permission_denied and has_config_change
        threats.append(
            create_threat(
                ThreatType.PRIVILEGE_ESCALATION,
                ThreatLevel.CRITICAL if escalation else ThreatLevel.HIGH,
                source,
                {
                    "event_count": len(window),
                    "window_minutes": limits.config_change_window_minutes,
                    "escalation_pattern": escalation,
                    "has_permission_denied": has_permission_denied,
                    "has_config_change": has_config_change,
                    "start_time": window[0].timestamp,
                    "events": [
                        {"type": entry.event_type.value, "timestamp": entry.timestamp}
                        for entry in window
                    ],
                },
                _ids(window),
            )
        )
    return threats


async def detect_privilege_escalation(
    reader: LedgerReader,
    hours_back: float = 24,
    thresholds: ThresholdOverrides = None,
) -> list[Threat]:
    entries = await reader.query(
        LedgerFilter(hours_back=hours_back, limit=ESCALATION_QUERY_LIMIT)
    )
    return analyze_privilege_escalation(entries, thresholds)


# ---------------------------------------------------------------------------
# Suspicious patterns
# ---------------------------------------------------------------------------


def _is_recon(entry: AuditEntry) -> bool:
    command = (_command_of(entry) or "").lower()
    return any(keyword in command for keyword in RECON_KEYWORDS)


def _is_after_hours(entry: AuditEntry) -> bool:
    moment = entry.occurred_at
    if moment is None:
        return False
    hour = moment.astimezone().hour
    return hour < BUSINESS_HOURS_START or hour > BUSINESS_HOURS_END


def analyze_suspicious_patterns(entries: list[AuditEntry]) -> list[Threat]:
    """
    Flag reconnaissance (many information-gathering commands) and command
    activity during unusual local hours.
    """
    commands = [entry for _, entry in chronological(_command_entries(entries))]
    threats: list[Threat] = []

    recon = [entry for entry in commands if _is_recon(entry)]
    if len(recon) >= RECON_POOL_MINIMUM:
        for source, source_entries in group_by_source(recon).items():
            if len(source_entries) < RECON_SOURCE_MINIMUM:
                continue
            threats.append(
                create_threat(
                    ThreatType.SUSPICIOUS_PATTERN,
                    ThreatLevel.MEDIUM,
                    source,
                    {
                        "pattern": "reconnaissance",
                        "description": "Multiple information gathering commands detected",
                        "command_count": len(source_entries),
                        "commands": sorted(
                            {c for c in map(_command_of, source_entries) if c is not None}
                        ),
                        "first_seen": source_entries[0].timestamp,
                        "last_seen": source_entries[-1].timestamp,
                    },
                    _ids(source_entries),
                )
            )

    after_hours = [entry for entry in commands if _is_after_hours(entry)]
    for source, source_entries in group_by_source(after_hours).items():
        if len(source_entries) < AFTER_HOURS_SOURCE_MINIMUM:
            continue
        local_times = [entry.occurred_at.astimezone() for entry in source_entries]
        threats.append(
            create_threat(
                ThreatType.SUSPICIOUS_PATTERN,
                ThreatLevel.LOW,
                source,
                {
                    "pattern": "after_hours_activity",
                    "description": "Activity detected during unusual hours",
                    "event_count": len(source_entries),
                    "hours": sorted({moment.hour for moment in local_times}),
                    "dates": sorted({moment.date().isoformat() for moment in local_times}),
                },
                _ids(source_entries),
            )
        )
    return threats


async def detect_suspicious_patterns(
    reader: LedgerReader,
    hours_back: float = 24,
) -> list[Threat]:
    entries = await reader.query(LedgerFilter(hours_back=hours_back, limit=COMMAND_QUERY_LIMIT))
    return analyze_suspicious_patterns(entries)

# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
ScanOrchestrator runs every detector and the drift monitor as one scan.

The detectors and the drift check run concurrently via ``asyncio.gather``.
They share the reader but no mutable state, and a detector that fails is
logged and contributes no threats instead of failing the scan. High and
critical findings are recorded back into the ledger as security violations.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from collections.abc import Mapping
from datetime import timedelta
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from audit_ledger.config import DetectionThresholds
from audit_ledger.detection import (
    Threat,
    ThreatLevel,
    detect_brute_force,
    detect_error_spikes,
    detect_privilege_escalation,
    detect_rate_limit_violations,
    detect_suspicious_patterns,
    resolve_thresholds,
)
from audit_ledger.detection.threats import ESCALATED_LEVELS
from audit_ledger.drift import ConfigDriftMonitor, ConfigStatus
from audit_ledger.reader import LedgerReader, count_by_severity
from audit_ledger.record import build_entry, current_timestamp, format_timestamp
from audit_ledger.types import EventType, LedgerFilter, Severity
from audit_ledger.writer import LedgerWriter

logger = logging.getLogger("audit_ledger.scan")

QUICK_STATUS_LIMIT = 100


class LevelCounts(BaseModel):
    model_config = ConfigDict(frozen=True)

    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


class TimeWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    hours: float
    since: str


class ScanResult(BaseModel):
    """
    Outcome of a full threat scan.

    ``threats`` is ordered by level, most severe first; threats of the same
    level keep the order in which their detectors reported them.
    """

    model_config = ConfigDict(frozen=True)

    scan_id: str
    timestamp: str
    scan_duration_ms: int
    time_window: TimeWindow
    summary: LevelCounts
    config_healthy: bool
    config_issues: list[str] = Field(default_factory=list)
    threats: list[Threat] = Field(default_factory=list)


class LastHourStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_events: int
    critical_events: int
    security_violations: int


class QuickStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["ok", "warning"]
    last_hour: LastHourStats
    config_secure: bool
    timestamp: str


class ScanOrchestrator:
    """
    Aggregates detector findings into a single ranked report.

    Parameters
    ----------
    reader:
        Shared read path for every detector.
    writer:
        Used to record high and critical findings.
    drift_monitor:
        Optional configuration monitor. Without one the configuration is
        reported as healthy and no drift check runs.
    thresholds:
        Baseline thresholds; per-scan overrides are applied on top.
    """

    def __init__(
        self,
        reader: LedgerReader,
        writer: LedgerWriter,
        drift_monitor: ConfigDriftMonitor | None = None,
        thresholds: DetectionThresholds | None = None,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._drift_monitor = drift_monitor
        self._thresholds = thresholds or DetectionThresholds()

    async def run_scan(
        self,
        hours_back: float = 24,
        thresholds: DetectionThresholds | Mapping[str, Any] | None = None,
        include_config: bool = True,
    ) -> ScanResult:
        """
        Run all detectors over the last ``hours_back`` hours.

        Unknown or invalid ``thresholds`` keys are logged and ignored; the
        configured value is used in their place.
        """
        started = time.monotonic()
        limits = resolve_thresholds(thresholds, self._thresholds, logger)
        scan_id = f"scan-{time.time_ns() // 1_000_000}"
        since = format_timestamp(self._reader.now() - timedelta(hours=hours_back))

        detector_names = [
            "brute_force",
            "rate_limit",
            "error_spike",
            "privilege_escalation",
            "suspicious_patterns",
        ]
        tasks = [
            detect_brute_force(self._reader, hours_back, limits),
            detect_rate_limit_violations(self._reader, hours_back, limits),
            detect_error_spikes(self._reader, hours_back, limits),
            detect_privilege_escalation(self._reader, hours_back, limits),
            detect_suspicious_patterns(self._reader, hours_back),
        ]
        run_config = include_config and self._drift_monitor is not None
        if run_config:
            detector_names.append("config_drift")
            tasks.append(self._drift_monitor.check())

        results = await asyncio.gather(*tasks, return_exceptions=True)

        threats: list[Threat] = []
        config_status: ConfigStatus | None = None
        for name, result in zip(detector_names, results):
            if isinstance(result, BaseException):
                logger.error(
                    "threat_detector_failed",
                    extra={"scan_id": scan_id, "detector": name, "error": str(result)},
                )
                continue
            if isinstance(result, ConfigStatus):
                config_status = result
                threats.extend(result.threats)
            else:
                threats.extend(result)

        threats.sort(key=lambda threat: threat.level.rank, reverse=True)

        for threat in threats:
            if threat.level in ESCALATED_LEVELS:
                await self._record_threat(threat)

        levels = Counter(threat.level for threat in threats)
        result = ScanResult(
            scan_id=scan_id,
            timestamp=current_timestamp(),
            scan_duration_ms=int((time.monotonic() - started) * 1000),
            time_window=TimeWindow(hours=hours_back, since=since),
            summary=LevelCounts(
                critical=levels[ThreatLevel.CRITICAL],
                high=levels[ThreatLevel.HIGH],
                medium=levels[ThreatLevel.MEDIUM],
                low=levels[ThreatLevel.LOW],
            ),
            config_healthy=config_status.healthy if config_status is not None else True,
            config_issues=list(config_status.issues) if config_status is not None else [],
            threats=threats,
        )
        logger.info(
            "threat_scan_completed",
            extra={
                "scan_id": scan_id,
                "threat_count": len(threats),
                "duration_ms": result.scan_duration_ms,
            },
        )
        return result

    async def quick_status(self) -> QuickStatus:
        """Summarize the last hour without running the detectors."""
        entries = await self._reader.query(LedgerFilter(hours_back=1, limit=QUICK_STATUS_LIMIT))
        critical_events = count_by_severity(entries, Severity.CRITICAL)
        security_violations = sum(
            1 for entry in entries if entry.event_type == EventType.SECURITY_VIOLATION
        )

        config_secure = True
        if self._drift_monitor is not None:
            config_secure = (await self._drift_monitor.check_permissions()).secure

        warning = critical_events > 0 or security_violations > 0 or not config_secure
        return QuickStatus(
            status="warning" if warning else "ok",
            last_hour=LastHourStats(
                total_events=len(entries),
                critical_events=critical_events,
                security_violations=security_violations,
            ),
            config_secure=config_secure,
            timestamp=current_timestamp(),
        )

    async def _record_threat(self, threat: Threat) -> None:
        entry = build_entry(
            EventType.SECURITY_VIOLATION,
            {
                "violation_type": "THREAT_DETECTED",
                "threat_id": threat.id,
                "threat_type": threat.type.value,
                "threat_level": threat.level.value,
                "source": threat.source,
                "details": threat.details,
            },
        )
        await self._writer.append(entry)

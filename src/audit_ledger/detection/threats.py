# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Threat findings produced by the detectors and the configuration monitor.
"""

from __future__ import annotations

import secrets
import time
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from audit_ledger.record import current_timestamp


class ThreatType(str, Enum):
    BRUTE_FORCE = "brute_force"
    RATE_LIMIT_VIOLATION = "rate_limit_violation"
    ERROR_SPIKE = "error_spike"
    PRIVILEGE_ESCALATION = "privilege_escalation"
    CONFIG_DRIFT = "config_drift"
    SUSPICIOUS_PATTERN = "suspicious_pattern"
    PERMISSION_CHANGE = "permission_change"
    AUDIT_TAMPERING = "audit_tampering"


class ThreatLevel(str, Enum):
    """Threat level of a finding, scaled independently of entry severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return LEVEL_RANK[self]


LEVEL_RANK: dict[ThreatLevel, int] = {
    ThreatLevel.CRITICAL: 4,
    ThreatLevel.HIGH: 3,
    ThreatLevel.MEDIUM: 2,
    ThreatLevel.LOW: 1,
}

ESCALATED_LEVELS: frozenset[ThreatLevel] = frozenset({ThreatLevel.HIGH, ThreatLevel.CRITICAL})

ThreatStatus = Literal["active", "acknowledged", "resolved"]


class Threat(BaseModel):
    """
    A single detection finding.

    ``source`` is a best-effort attribution key (source address, user id,
    session id, ``'system'``, ``'filesystem'`` or ``'unknown'``) and
    ``related_events`` lists the ids of the entries that make up the evidence,
    oldest first.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: str
    type: ThreatType
    level: ThreatLevel
    source: str
    details: dict[str, Any] = Field(default_factory=dict)
    related_events: list[str] = Field(default_factory=list)
    status: ThreatStatus = "active"


def generate_threat_id() -> str:
    return f"threat-{time.time_ns() // 1_000_000}-{secrets.token_hex(4)}"


def create_threat(
    threat_type: ThreatType,
    level: ThreatLevel,
    source: str,
    details: dict[str, Any],
    related_events: list[str] | None = None,
) -> Threat:
    """Build an active Threat with a fresh id and timestamp."""
    return Threat(
        id=generate_threat_id(),
        timestamp=current_timestamp(),
        type=threat_type,
        level=level,
        source=source,
        details=details,
        related_events=related_events or [],
    )

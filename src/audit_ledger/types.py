# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Shared type definitions for the audit ledger.

Entries are frozen Pydantic v2 models. The signed, on-disk form of an entry is
the plain mapping produced by :func:`audit_ledger.record.entry_payload`; the
models here are the typed view handed to callers of the query interface.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    """Closed set of event types accepted by the ledger."""

    # Authentication
    AUTH_SUCCESS = "AUTH_SUCCESS"
    AUTH_FAILURE = "AUTH_FAILURE"
    AUTH_LOGOUT = "AUTH_LOGOUT"
    TOKEN_VALIDATION = "TOKEN_VALIDATION"

    # Configuration
    CONFIG_READ = "CONFIG_READ"
    CONFIG_WRITE = "CONFIG_WRITE"
    CONFIG_DELETE = "CONFIG_DELETE"

    # Deployment
    DEPLOY_START = "DEPLOY_START"
    DEPLOY_SUCCESS = "DEPLOY_SUCCESS"
    DEPLOY_FAILURE = "DEPLOY_FAILURE"
    DEPLOY_ROLLBACK = "DEPLOY_ROLLBACK"

    # Security
    SECURITY_VIOLATION = "SECURITY_VIOLATION"
    PATH_VALIDATION_FAILURE = "PATH_VALIDATION_FAILURE"
    COMMAND_REJECTED = "COMMAND_REJECTED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    AUDIT_INTEGRITY_FAILURE = "AUDIT_INTEGRITY_FAILURE"

    # Container
    DOCKER_EXEC = "DOCKER_EXEC"
    DOCKER_COMPOSE = "DOCKER_COMPOSE"
    CONTAINER_ACCESS = "CONTAINER_ACCESS"

    # Data
    BACKUP_CREATE = "BACKUP_CREATE"
    BACKUP_RESTORE = "BACKUP_RESTORE"
    EXPORT_DATA = "EXPORT_DATA"
    LOG_ACCESS = "LOG_ACCESS"

    # System
    SERVICE_START = "SERVICE_START"
    SERVICE_STOP = "SERVICE_STOP"
    HEALTH_CHECK = "HEALTH_CHECK"


class Severity(str, Enum):
    """Severity of a single ledger entry."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# Event types not listed here are recorded at INFO.
EVENT_SEVERITY: dict[EventType, Severity] = {
    EventType.AUTH_FAILURE: Severity.WARNING,
    EventType.SECURITY_VIOLATION: Severity.ERROR,
    EventType.PATH_VALIDATION_FAILURE: Severity.WARNING,
    EventType.COMMAND_REJECTED: Severity.WARNING,
    EventType.PERMISSION_DENIED: Severity.ERROR,
    EventType.DEPLOY_FAILURE: Severity.ERROR,
    EventType.AUDIT_INTEGRITY_FAILURE: Severity.CRITICAL,
}

COMMAND_EVENT_TYPES: frozenset[EventType] = frozenset(
    {EventType.DOCKER_EXEC, EventType.DOCKER_COMPOSE}
)


def severity_for(event_type: EventType) -> Severity:
    """Return the static severity of ``event_type``."""
    return EVENT_SEVERITY.get(event_type, Severity.INFO)


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse an ISO 8601 timestamp into an aware UTC datetime.

    Returns ``None`` for anything that is not a parseable string. Naive values
    are taken to be UTC.
    """
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class EntryContext(BaseModel):
    """
    Who or what caused an event. Only these four fields are recognised;
    every value is sanitized before it reaches the model.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str | None = None
    session_id: str | None = None
    command: str | None = None
    source_ip: str | None = None


class EntryMetadata(BaseModel):
    """Informational metadata about the process that wrote an entry."""

    model_config = ConfigDict(frozen=True)

    version: str = "1.1"
    hostname: str
    pid: int
    warning: str | None = None


class AuditEntry(BaseModel):
    """
    A single ledger record.

    ``signature`` is the HMAC-SHA256 of the canonical serialization of every
    other field. It is ``None`` on freshly built entries and on legacy lines
    written before signing was introduced.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: str
    event_type: EventType
    severity: Severity
    details: dict[str, Any] = Field(default_factory=dict)
    context: EntryContext = Field(default_factory=EntryContext)
    metadata: EntryMetadata
    signature: str | None = None
    signature_algorithm: str | None = None

    @property
    def occurred_at(self) -> datetime | None:
        return parse_timestamp(self.timestamp)

    @property
    def source(self) -> str:
        """Best-effort attribution key: source address, user, session or ``'unknown'``."""
        return (
            self.context.source_ip
            or self.context.user_id
            or self.context.session_id
            or "unknown"
        )


class LedgerFilter(BaseModel):
    """
    Filter parameters for querying the ledger.

    ``event_type`` and ``severity`` are equality filters; omit them to match
    every entry. Only entries newer than ``hours_back`` hours are returned, at
    most ``limit`` of them.
    """

    model_config = ConfigDict(frozen=True)

    event_type: EventType | None = None
    severity: Severity | None = None
    limit: int = Field(default=100, gt=0)
    hours_back: float = Field(default=24, gt=0)


class TimeRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: str
    end: str


class LedgerSummary(BaseModel):
    """Tabulation of recent ledger activity returned by ``summarize``."""

    model_config = ConfigDict(frozen=True)

    total_events: int
    by_severity: dict[str, int]
    by_type: dict[str, int]
    security_violations: int
    failed_authentications: int
    time_range: TimeRange


IssueKind = Literal["unsigned", "invalid_signature", "invalid_json", "verification_failed"]


class IntegrityIssue(BaseModel):
    """One itemized finding of an integrity verification pass."""

    model_config = ConfigDict(frozen=True)

    file: str
    line: int
    kind: IssueKind
    error: str
    entry_id: str | None = None
    timestamp: str | None = None
    possible_key_discontinuity: bool = False


class IntegrityReport(BaseModel):
    """
    Result of verifying every signed entry in the ledger.

    ``valid`` is False only when at least one signature failed to verify (or
    the pass itself could not run). Unsigned entries and unparseable lines are
    itemized but do not flip validity.
    """

    model_config = ConfigDict(frozen=True)

    valid: bool
    total_entries: int
    valid_signatures: int
    invalid_signatures: int
    unsigned_entries: int
    files_checked: list[str]
    errors: list[IntegrityIssue]
    possible_key_discontinuity: bool = False

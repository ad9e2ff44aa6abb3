# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
audit-ledger: a tamper-evident, HMAC-signed security audit ledger with
threat detection.

Public API surface:

    Classes:
        AuditLedger         - Facade: record(), query(), summarize(), verify_integrity(),
                              rotate_signing_key(), run_scan(), quick_status(), export_entries()
        LedgerWriter        - Signs and appends entries; owns segment rotation
        LedgerReader        - Filtered, time-bounded queries over all segments
        IntegrityVerifier   - Re-derives every entry signature
        SigningKeyStore     - Owner-only persistence of the HMAC key
        ConfigDriftMonitor  - Content and permission drift of a watched config file
        ScanOrchestrator    - Runs every detector and ranks the findings
        MemoryStorage       - Volatile in-memory segment backend
        FileStorage         - Rotating NDJSON segment files

    Functions:
        sign, verify                - HMAC-SHA256 over the canonical payload
        sanitize_details            - Bounded, injection-safe detail structures
        export_json, export_csv, export_cef, export_entries
        format_integrity_report

    Types:
        AuditEntry, EventType, Severity, EntryContext, LedgerFilter,
        LedgerSummary, IntegrityReport, IntegrityIssue, Threat, ThreatType,
        ThreatLevel, ScanResult, QuickStatus, AuditLedgerConfig, LedgerConfig,
        DetectionThresholds, MonitorConfig
"""

from audit_ledger.codec import canonicalize, sign, verify
from audit_ledger.config import AuditLedgerConfig, DetectionThresholds, LedgerConfig, MonitorConfig
from audit_ledger.detection import Threat, ThreatLevel, ThreatType
from audit_ledger.drift import ConfigDriftMonitor, ConfigStatus, PermissionCheck
from audit_ledger.errors import AuditLedgerError, ConfigurationError, LedgerPersistenceError
from audit_ledger.export_formats import export_cef, export_csv, export_entries, export_json
from audit_ledger.keystore import SigningKeyStore
from audit_ledger.ledger import AuditLedger
from audit_ledger.reader import LedgerReader
from audit_ledger.record import build_entry
from audit_ledger.sanitize import sanitize_details, sanitize_for_log
from audit_ledger.scan import QuickStatus, ScanOrchestrator, ScanResult
from audit_ledger.storage.file import FileStorage
from audit_ledger.storage.interface import LedgerStorage
from audit_ledger.storage.memory import MemoryStorage
from audit_ledger.types import (
    AuditEntry,
    EntryContext,
    EventType,
    IntegrityIssue,
    IntegrityReport,
    LedgerFilter,
    LedgerSummary,
    Severity,
)
from audit_ledger.verifier import IntegrityVerifier, format_integrity_report
from audit_ledger.writer import LedgerWriter

__all__ = [
    # Core classes
    "AuditLedger",
    "LedgerWriter",
    "LedgerReader",
    "IntegrityVerifier",
    "SigningKeyStore",
    "ConfigDriftMonitor",
    "ScanOrchestrator",
    # Storage
    "LedgerStorage",
    "MemoryStorage",
    "FileStorage",
    # Helpers
    "build_entry",
    "canonicalize",
    "sign",
    "verify",
    "sanitize_details",
    "sanitize_for_log",
    "format_integrity_report",
    # Export helpers
    "export_json",
    "export_csv",
    "export_cef",
    "export_entries",
    # Configuration
    "AuditLedgerConfig",
    "LedgerConfig",
    "DetectionThresholds",
    "MonitorConfig",
    # Errors
    "AuditLedgerError",
    "LedgerPersistenceError",
    "ConfigurationError",
    # Types
    "AuditEntry",
    "EntryContext",
    "EventType",
    "Severity",
    "LedgerFilter",
    "LedgerSummary",
    "IntegrityIssue",
    "IntegrityReport",
    "Threat",
    "ThreatType",
    "ThreatLevel",
    "ScanResult",
    "QuickStatus",
    "ConfigStatus",
    "PermissionCheck",
]

# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
AuditLedger is the primary entry point for recording, querying, verifying and
scanning security audit events.

AuditLedger wires the components together:

1. Record construction: sanitizing caller input into an AuditEntry.
2. Signing and persistence: the writer signs each entry with the key from the
   shared key store and appends it to the segment backend.
3. Analysis: the reader, the integrity verifier and the scan orchestrator all
   read the same backend.

Usage::

    from audit_ledger import AuditLedger, EventType

    ledger = AuditLedger()
    await ledger.record(EventType.AUTH_FAILURE, {"reason": "bad password"},
                        {"source_ip": "10.0.0.5"})
    report = await ledger.verify_integrity()
    scan = await ledger.run_scan(hours_back=1)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from audit_ledger.config import AuditLedgerConfig, DetectionThresholds
from audit_ledger.drift import ConfigDriftMonitor
from audit_ledger.export_formats import export_entries
from audit_ledger.keystore import SigningKeyStore
from audit_ledger.reader import LedgerReader
from audit_ledger.record import build_entry
from audit_ledger.sanitize import sanitize_for_log
from audit_ledger.scan import QuickStatus, ScanOrchestrator, ScanResult
from audit_ledger.storage.file import FileStorage
from audit_ledger.storage.interface import LedgerStorage
from audit_ledger.types import (
    AuditEntry,
    EntryContext,
    EventType,
    IntegrityReport,
    LedgerFilter,
    LedgerSummary,
)
from audit_ledger.verifier import IntegrityVerifier
from audit_ledger.writer import LedgerWriter

logger = logging.getLogger("audit_ledger.ledger")

ContextInput = EntryContext | Mapping[str, Any] | None

_CONFIG_ACTIONS: dict[str, EventType] = {
    "read": EventType.CONFIG_READ,
    "write": EventType.CONFIG_WRITE,
    "delete": EventType.CONFIG_DELETE,
}

_DEPLOY_STATUSES: dict[str, EventType] = {
    "start": EventType.DEPLOY_START,
    "success": EventType.DEPLOY_SUCCESS,
    "failure": EventType.DEPLOY_FAILURE,
    "rollback": EventType.DEPLOY_ROLLBACK,
}


class AuditLedger:
    """
    Facade over the ledger components.

    Parameters
    ----------
    config:
        Paths, size limits, detection thresholds and the watched config file.
        Defaults to :class:`AuditLedgerConfig` defaults under
        ``~/.audit-ledger``.
    storage:
        Segment backend. Defaults to :class:`FileStorage` in the configured
        ledger directory.
    key_store:
        Signing key holder. Defaults to a store at the configured key path.
    """

    def __init__(
        self,
        config: AuditLedgerConfig | None = None,
        storage: LedgerStorage | None = None,
        key_store: SigningKeyStore | None = None,
    ) -> None:
        self._config = config or AuditLedgerConfig()
        ledger_config = self._config.ledger
        self._storage: LedgerStorage = storage or FileStorage(ledger_config)
        self._key_store = key_store or SigningKeyStore(ledger_config.key_path)
        self._writer = LedgerWriter(self._storage, self._key_store, ledger_config)
        self._reader = LedgerReader(self._storage, summary_limit=ledger_config.summary_limit)
        self._verifier = IntegrityVerifier(self._storage, self._key_store, self._writer)
        self._drift_monitor = ConfigDriftMonitor(
            self._config.monitor.config_file, self._config.hash_path
        )
        self._scanner = ScanOrchestrator(
            self._reader, self._writer, self._drift_monitor, self._config.thresholds
        )

    @property
    def config(self) -> AuditLedgerConfig:
        return self._config

    @property
    def key_store(self) -> SigningKeyStore:
        return self._key_store

    @property
    def reader(self) -> LedgerReader:
        return self._reader

    @property
    def drift_monitor(self) -> ConfigDriftMonitor:
        return self._drift_monitor

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    async def record(
        self,
        event_type: EventType | str,
        details: Mapping[str, Any] | None = None,
        context: ContextInput = None,
    ) -> bool:
        """
        Sanitize, sign and append one event.

        Never raises: an unknown event type or a persistence failure is
        logged and reported as False.
        """
        try:
            entry = build_entry(event_type, details, context)
        except ValueError as exc:
            logger.error(
                "audit_record_rejected",
                extra={"event_type": sanitize_for_log(event_type, 100), "error": str(exc)},
            )
            return False
        return await self._writer.append(entry)

    async def log_security_violation(
        self,
        violation_type: str,
        details: Mapping[str, Any] | None = None,
        context: ContextInput = None,
    ) -> bool:
        return await self.record(
            EventType.SECURITY_VIOLATION,
            {"violation_type": violation_type, **(details or {})},
            context,
        )

    async def log_command(
        self,
        command: str,
        details: Mapping[str, Any] | None = None,
        context: ContextInput = None,
    ) -> bool:
        """Record a command execution as DOCKER_EXEC."""
        return await self.record(
            EventType.DOCKER_EXEC, {"command": command, **(details or {})}, context
        )

    async def log_config_access(
        self,
        action: str,
        key: str,
        context: ContextInput = None,
    ) -> bool:
        """
        Record access to a configuration key.

        ``action`` is one of ``"read"``, ``"write"`` or ``"delete"``; anything
        else is recorded as a read.
        """
        return await self.record(
            _CONFIG_ACTIONS.get(action, EventType.CONFIG_READ),
            {"action": action, "key": sanitize_for_log(key, 100)},
            context,
        )

    async def log_deployment(
        self,
        status: str,
        details: Mapping[str, Any] | None = None,
        context: ContextInput = None,
    ) -> bool:
        """
        Record a deployment transition.

        ``status`` is one of ``"start"``, ``"success"``, ``"failure"`` or
        ``"rollback"``; anything else is recorded as a start.
        """
        return await self.record(
            _DEPLOY_STATUSES.get(status, EventType.DEPLOY_START),
            {"status": status, **(details or {})},
            context,
        )

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def query(self, ledger_filter: LedgerFilter | None = None) -> list[AuditEntry]:
        """Return matching entries, most recent first."""
        return await self._reader.query(ledger_filter)

    async def summarize(self, hours_back: float = 24) -> LedgerSummary:
        return await self._reader.summarize(hours_back)

    async def export_entries(
        self,
        export_format: str,
        ledger_filter: LedgerFilter | None = None,
    ) -> str:
        """
        Export entries to ``"json"``, ``"csv"`` or ``"cef"``.

        Raises
        ------
        ValueError
            When an unsupported format string is supplied.
        """
        entries = await self._reader.query(ledger_filter)
        return export_entries(entries, export_format)

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    async def verify_integrity(
        self, hours_back: float = 168, verbose: bool = False
    ) -> IntegrityReport:
        """
        Verify every signed entry in the retention window.

        Finding an invalid signature appends an AUDIT_INTEGRITY_FAILURE entry.
        """
        return await self._verifier.verify(hours_back=hours_back, verbose=verbose)

    async def rotate_signing_key(self) -> bool:
        """
        Replace the signing key and record the rotation.

        Entries signed with the previous key no longer verify; the verifier
        reports them as a possible key discontinuity. Returns False when the
        new key could not be persisted.
        """
        await self._key_store.rotate_key()
        persisted = self._key_store.origin == "generated"
        logger.info(
            "audit_key_rotated",
            extra={"key_path": str(self._key_store.key_path), "persisted": persisted},
        )
        await self.record(
            EventType.CONFIG_WRITE,
            {"action": "audit_key_rotation", "key_file": str(self._key_store.key_path)},
        )
        return persisted

    # ------------------------------------------------------------------
    # Threat detection
    # ------------------------------------------------------------------

    async def run_scan(
        self,
        hours_back: float = 24,
        thresholds: DetectionThresholds | Mapping[str, Any] | None = None,
        include_config: bool = True,
    ) -> ScanResult:
        return await self._scanner.run_scan(
            hours_back=hours_back, thresholds=thresholds, include_config=include_config
        )

    async def quick_status(self) -> QuickStatus:
        return await self._scanner.quick_status()

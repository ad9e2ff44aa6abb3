# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from pathlib import Path


class AuditLedgerError(Exception):
    """Base class for all audit-ledger errors."""

    def __init__(self, message: str, code: str = "AUDIT_LEDGER_ERROR") -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class LedgerPersistenceError(AuditLedgerError):
    """
    Raised by storage backends when a segment or key file cannot be read or
    written.

    The writer, key store, reader and verifier absorb this error and degrade;
    it never reaches code that emits events.

    Attributes:
        path: The file or directory involved.
        operation: Short name of the failed operation (``'append'``, ``'read'``...).
    """

    def __init__(self, path: str | Path, operation: str, reason: str) -> None:
        super().__init__(
            f"Ledger {operation} failed for '{path}': {reason}",
            code="LEDGER_PERSISTENCE_FAILED",
        )
        self.path = str(path)
        self.operation = operation
        self.reason = reason


class ConfigurationError(AuditLedgerError):
    """Raised when the ledger is misconfigured."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR")

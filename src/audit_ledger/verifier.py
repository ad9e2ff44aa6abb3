# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Integrity verification of every signed entry in the ledger.

The verifier re-derives each entry's HMAC with the current signing key and
reports every mismatch individually. Finding an invalid signature is the one
condition that is elevated automatically: an ``AUDIT_INTEGRITY_FAILURE`` entry
is appended to the ledger, so running a verification pass can itself write.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from audit_ledger.codec import SIGNATURE_FIELD, verify
from audit_ledger.errors import LedgerPersistenceError
from audit_ledger.keystore import SigningKeyStore
from audit_ledger.record import DecodedLine, build_entry, decode_lines
from audit_ledger.storage.interface import LedgerStorage
from audit_ledger.types import EventType, IntegrityIssue, IntegrityReport
from audit_ledger.writer import LedgerWriter

logger = logging.getLogger("audit_ledger.verifier")

DEFAULT_VERIFY_HOURS = 168


class IntegrityVerifier:
    """
    Checks entry signatures across the active and all retained segments.

    Parameters
    ----------
    storage:
        The segment backend to scan.
    key_store:
        Source of the current signing key.
    writer:
        Used to record an ``AUDIT_INTEGRITY_FAILURE`` entry when tampering is
        found.
    """

    def __init__(
        self,
        storage: LedgerStorage,
        key_store: SigningKeyStore,
        writer: LedgerWriter,
    ) -> None:
        self._storage = storage
        self._key_store = key_store
        self._writer = writer

    async def verify(
        self,
        hours_back: float = DEFAULT_VERIFY_HOURS,
        verbose: bool = False,
    ) -> IntegrityReport:
        """
        Verify every entry newer than ``hours_back`` hours.

        Entries whose timestamp cannot be parsed are always verified, so an
        edit to the timestamp itself cannot move an entry out of the window.
        Unsigned entries are itemized only when ``verbose`` is True.
        """
        total = valid = invalid = unsigned = 0
        files_checked: list[str] = []
        errors: list[IntegrityIssue] = []

        key = await self._key_store.get_key()
        key_created_at = self._discontinuity_cutoff()
        cutoff = datetime.now(tz=timezone.utc) - timedelta(hours=hours_back)

        for segment_name in self._storage.segment_names():
            try:
                lines = await self._storage.read_lines(segment_name)
            except LedgerPersistenceError as exc:
                errors.append(
                    IntegrityIssue(
                        file=segment_name,
                        line=0,
                        kind="verification_failed",
                        error=f"Verification failed: {exc.message}",
                    )
                )
                continue
            if lines is None:
                continue
            files_checked.append(segment_name)

            for result in decode_lines(lines):
                if not isinstance(result, DecodedLine):
                    errors.append(
                        IntegrityIssue(
                            file=segment_name,
                            line=result.line_number,
                            kind="invalid_json",
                            error=result.error,
                        )
                    )
                    continue
                if result.occurred_at is not None and result.occurred_at < cutoff:
                    continue

                total += 1
                payload = result.payload
                entry_id = payload.get("id") if isinstance(payload.get("id"), str) else None
                timestamp = (
                    payload.get("timestamp") if isinstance(payload.get("timestamp"), str) else None
                )

                if not payload.get(SIGNATURE_FIELD):
                    unsigned += 1
                    if verbose:
                        errors.append(
                            IntegrityIssue(
                                file=segment_name,
                                line=result.line_number,
                                kind="unsigned",
                                error="Entry is not signed",
                                entry_id=entry_id,
                                timestamp=timestamp,
                            )
                        )
                    continue

                if verify(payload, key):
                    valid += 1
                    continue

                invalid += 1
                discontinuity = (
                    key_created_at is not None
                    and result.occurred_at is not None
                    and result.occurred_at < key_created_at
                )
                errors.append(
                    IntegrityIssue(
                        file=segment_name,
                        line=result.line_number,
                        kind="invalid_signature",
                        error=(
                            "Invalid signature - entry predates the current signing key "
                            "(possible key discontinuity)"
                            if discontinuity
                            else "Invalid signature - entry may have been tampered with"
                        ),
                        entry_id=entry_id,
                        timestamp=timestamp,
                        possible_key_discontinuity=discontinuity,
                    )
                )

        if invalid > 0:
            logger.error(
                "audit_integrity_failure",
                extra={"invalid_count": invalid, "total_checked": total, "files": files_checked},
            )
            await self._writer.append(
                build_entry(
                    EventType.AUDIT_INTEGRITY_FAILURE,
                    {
                        "invalid_count": invalid,
                        "total_checked": total,
                        "files": files_checked,
                    },
                )
            )

        read_failed = any(issue.kind == "verification_failed" for issue in errors)
        return IntegrityReport(
            valid=invalid == 0 and not read_failed,
            total_entries=total,
            valid_signatures=valid,
            invalid_signatures=invalid,
            unsigned_entries=unsigned,
            files_checked=files_checked,
            errors=errors,
            possible_key_discontinuity=any(
                issue.possible_key_discontinuity for issue in errors
            ),
        )

    def _discontinuity_cutoff(self) -> datetime | None:
        # A key loaded from disk has been in use all along; only a key created
        # in this process can leave earlier entries unverifiable.
        if self._key_store.origin in ("generated", "ephemeral"):
            return self._key_store.generated_at
        return None


def format_integrity_report(report: IntegrityReport) -> str:
    """
    Format an IntegrityReport as a human-readable string suitable for CLI
    output.
    """
    lines: list[str] = []
    lines.append("=== Audit Ledger Verification ===")
    lines.append(f"Files checked:     {len(report.files_checked)}")
    lines.append(f"Total entries:     {report.total_entries}")
    lines.append(f"Valid signatures:  {report.valid_signatures}")
    if report.unsigned_entries:
        lines.append(f"Unsigned entries:  {report.unsigned_entries}")
    if report.invalid_signatures:
        lines.append(f"INVALID signatures: {report.invalid_signatures}")

    if report.invalid_signatures:
        lines.append("Status:            TAMPER DETECTED")
        if report.possible_key_discontinuity:
            lines.append(
                "Hint:              some entries predate the current signing key; "
                "the key may have been rotated or lost"
            )
    elif report.valid:
        lines.append("Status:            INTACT")
    else:
        lines.append("Status:            COMPLETED WITH WARNINGS")

    for issue in report.errors:
        lines.append(f"  {issue.file}:{issue.line} - {issue.error}")

    return "\n".join(lines)

# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
LedgerWriter is the single write path into the ledger.

An append rotates the active segment when it has outgrown its size limit,
signs the entry, truncates oversized details and appends one NDJSON line.
Failures are reported through the return value and the
``audit_ledger.writer`` logger; an audit outage must never crash the
subsystem that emitted the event.
"""

from __future__ import annotations

import asyncio
import logging

from audit_ledger.codec import signed_payload
from audit_ledger.config import LedgerConfig
from audit_ledger.errors import AuditLedgerError
from audit_ledger.keystore import SigningKeyStore
from audit_ledger.record import entry_payload, serialize_payload, truncated_payload
from audit_ledger.storage.interface import LedgerStorage
from audit_ledger.types import AuditEntry

logger = logging.getLogger("audit_ledger.writer")


class LedgerWriter:
    """
    Appends signed entries to the active segment and owns rotation.

    Appends from the same process are serialized with an ``asyncio.Lock`` so
    a size check and the rotation it triggers cannot interleave with another
    coroutine's append. Writers in other processes are not coordinated.

    Parameters
    ----------
    storage:
        Segment backend to append to.
    key_store:
        Source of the signing key.
    config:
        Size limits. Defaults to :class:`LedgerConfig` defaults.
    """

    def __init__(
        self,
        storage: LedgerStorage,
        key_store: SigningKeyStore,
        config: LedgerConfig | None = None,
    ) -> None:
        self._storage = storage
        self._key_store = key_store
        self._config = config or LedgerConfig()
        self._lock = asyncio.Lock()

    async def append(self, entry: AuditEntry) -> bool:
        """
        Sign ``entry`` and append it to the active segment.

        Returns
        -------
        bool
            True when the line was written, False on any persistence failure.
        """
        async with self._lock:
            try:
                await self._storage.ensure_ready()
                if await self._storage.active_size() > self._config.max_segment_bytes:
                    await self._storage.rotate()
                line = await self._encode(entry)
                await self._storage.append_line(line)
            except (OSError, ValueError, TypeError, AuditLedgerError) as exc:
                logger.error(
                    "audit_write_failed",
                    extra={
                        "entry_id": entry.id,
                        "event_type": entry.event_type.value,
                        "error": str(exc),
                    },
                )
                return False
        return True

    async def rotate(self) -> None:
        """Rotate segments now, regardless of the active segment's size."""
        async with self._lock:
            await self._storage.rotate()

    async def _encode(self, entry: AuditEntry) -> str:
        key = await self._key_store.get_key()
        payload = entry_payload(entry)
        line = serialize_payload(signed_payload(payload, key))
        size = len(line.encode("utf-8"))
        if size > self._config.max_entry_bytes:
            logger.warning(
                "audit_entry_truncated",
                extra={"entry_id": entry.id, "size": size, "limit": self._config.max_entry_bytes},
            )
            line = serialize_payload(signed_payload(truncated_payload(payload, size), key))
        return line

# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation
"""Shared fixtures for audit-ledger tests."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from audit_ledger.config import AuditLedgerConfig, LedgerConfig, MonitorConfig
from audit_ledger.keystore import SigningKeyStore
from audit_ledger.ledger import AuditLedger
from audit_ledger.reader import LedgerReader
from audit_ledger.record import build_entry, format_timestamp
from audit_ledger.storage.file import FileStorage
from audit_ledger.types import AuditEntry, EventType
from audit_ledger.writer import LedgerWriter

EntryFactory = Callable[..., AuditEntry]


@pytest.fixture
def ledger_config(tmp_path: Path) -> LedgerConfig:
    """Ledger configuration rooted in the test's temporary directory."""
    return LedgerConfig(directory=tmp_path / "audit")


@pytest.fixture
def key_store(ledger_config: LedgerConfig) -> SigningKeyStore:
    return SigningKeyStore(ledger_config.key_path)


@pytest.fixture
def storage(ledger_config: LedgerConfig) -> FileStorage:
    return FileStorage(ledger_config)


@pytest.fixture
def writer(
    storage: FileStorage, key_store: SigningKeyStore, ledger_config: LedgerConfig
) -> LedgerWriter:
    return LedgerWriter(storage, key_store, ledger_config)


@pytest.fixture
def reader(storage: FileStorage) -> LedgerReader:
    return LedgerReader(storage)


@pytest.fixture
def ledger(tmp_path: Path) -> AuditLedger:
    """A facade whose ledger and watched config file live under tmp_path."""
    config = AuditLedgerConfig(
        ledger=LedgerConfig(directory=tmp_path / "audit"),
        monitor=MonitorConfig(config_file=tmp_path / "settings" / "config.json"),
    )
    return AuditLedger(config)


@pytest.fixture
def now() -> datetime:
    return datetime.now(tz=timezone.utc)


@pytest.fixture
def make_entry(now: datetime) -> EntryFactory:
    """
    Build an unsigned entry ``minutes_ago`` minutes before ``now``.

    ``at`` overrides the timestamp with an explicit aware datetime.
    """

    def _make(
        event_type: EventType,
        minutes_ago: float = 0,
        details: Mapping[str, Any] | None = None,
        context: Mapping[str, Any] | None = None,
        at: datetime | None = None,
    ) -> AuditEntry:
        moment = at if at is not None else now - timedelta(minutes=minutes_ago)
        return build_entry(event_type, details, context, timestamp=format_timestamp(moment))

    return _make

# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation
"""
Tests for the segment storage backends and writer-driven rotation.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from audit_ledger.codec import verify
from audit_ledger.config import LedgerConfig
from audit_ledger.errors import LedgerPersistenceError
from audit_ledger.keystore import SigningKeyStore
from audit_ledger.record import TRUNCATION_WARNING, build_entry
from audit_ledger.storage.file import FileStorage
from audit_ledger.storage.memory import MemoryStorage
from audit_ledger.types import EventType
from audit_ledger.writer import LedgerWriter


def _lines(path: Path) -> list[str]:
    return [line for line in path.read_text(encoding="utf-8").split("\n") if line]


# ---------------------------------------------------------------------------
# TestFileStorage
# ---------------------------------------------------------------------------


class TestFileStorage:
    def test_rotation_shifts_every_segment_by_one(self, tmp_path: Path) -> None:
        config = LedgerConfig(directory=tmp_path, max_segments=3)
        storage = FileStorage(config)
        (tmp_path / "audit.log").write_text("active\n")
        for index in range(1, 4):
            (tmp_path / f"audit.{index}.log").write_text(f"segment-{index}\n")

        asyncio.run(storage.rotate())

        assert not (tmp_path / "audit.log").exists()
        assert (tmp_path / "audit.1.log").read_text() == "active\n"
        assert (tmp_path / "audit.2.log").read_text() == "segment-1\n"
        assert (tmp_path / "audit.3.log").read_text() == "segment-2\n"
        assert not (tmp_path / "audit.4.log").exists()

    def test_rotation_with_gaps_and_no_active_segment(self, tmp_path: Path) -> None:
        config = LedgerConfig(directory=tmp_path, max_segments=3)
        storage = FileStorage(config)
        (tmp_path / "audit.1.log").write_text("segment-1\n")

        asyncio.run(storage.rotate())

        assert not (tmp_path / "audit.1.log").exists()
        assert (tmp_path / "audit.2.log").read_text() == "segment-1\n"

    def test_read_lines_of_missing_segment_is_none(self, tmp_path: Path) -> None:
        storage = FileStorage(LedgerConfig(directory=tmp_path))
        assert asyncio.run(storage.read_lines("audit.log")) is None

    def test_undecodable_bytes_are_replaced_per_line(self, tmp_path: Path) -> None:
        storage = FileStorage(LedgerConfig(directory=tmp_path))
        (tmp_path / "audit.log").write_bytes(b'{"a":1}\n\xff\xfe not utf-8\n{"b":2}\n')

        lines = asyncio.run(storage.read_lines("audit.log"))

        assert lines == ['{"a":1}', "\ufffd\ufffd not utf-8", '{"b":2}', ""]

    def test_unreadable_segment_raises_persistence_error(self, tmp_path: Path) -> None:
        storage = FileStorage(LedgerConfig(directory=tmp_path))
        (tmp_path / "audit.log").mkdir()
        with pytest.raises(LedgerPersistenceError) as exc_info:
            asyncio.run(storage.read_lines("audit.log"))
        assert exc_info.value.operation == "read"

    def test_active_size_of_missing_segment_is_zero(self, tmp_path: Path) -> None:
        storage = FileStorage(LedgerConfig(directory=tmp_path / "absent"))
        assert asyncio.run(storage.active_size()) == 0


# ---------------------------------------------------------------------------
# TestMemoryStorage
# ---------------------------------------------------------------------------


class TestMemoryStorage:
    def test_rotation_matches_file_backend(self) -> None:
        storage = MemoryStorage(LedgerConfig(max_segments=2))

        async def _scenario() -> dict[str, list[str] | None]:
            for label in ("a", "b", "c"):
                await storage.append_line(label)
                await storage.rotate()
            return {name: await storage.read_lines(name) for name in storage.segment_names()}

        segments = asyncio.run(_scenario())
        assert segments == {"audit.log": None, "audit.1.log": ["c"], "audit.2.log": ["b"]}

    def test_active_size_counts_newlines(self) -> None:
        storage = MemoryStorage()
        asyncio.run(storage.append_line("abc"))
        assert asyncio.run(storage.active_size()) == 4


# ---------------------------------------------------------------------------
# TestLedgerWriter
# ---------------------------------------------------------------------------


class TestLedgerWriter:
    def test_append_writes_one_signed_line(
        self, writer: LedgerWriter, key_store: SigningKeyStore, ledger_config: LedgerConfig
    ) -> None:
        entry = build_entry(EventType.AUTH_SUCCESS, {"method": "password"}, {"user_id": "alice"})

        assert asyncio.run(writer.append(entry)) is True

        lines = _lines(ledger_config.directory / "audit.log")
        assert len(lines) == 1
        payload = json.loads(lines[0])
        assert payload["id"] == entry.id
        assert payload["severity"] == "info"
        assert verify(payload, asyncio.run(key_store.get_key())) is True

    def test_append_is_append_only(
        self, writer: LedgerWriter, ledger_config: LedgerConfig
    ) -> None:
        async def _write(count: int) -> None:
            for index in range(count):
                await writer.append(build_entry(EventType.HEALTH_CHECK, {"n": index}))

        asyncio.run(_write(5))
        before = _lines(ledger_config.directory / "audit.log")
        asyncio.run(_write(5))
        after = _lines(ledger_config.directory / "audit.log")

        assert after[: len(before)] == before
        assert [json.loads(line)["details"]["n"] for line in after] == [0, 1, 2, 3, 4] * 2

    def test_rotates_when_active_segment_is_too_large(self, tmp_path: Path) -> None:
        config = LedgerConfig(directory=tmp_path, max_segment_bytes=100, max_segments=2)
        writer = LedgerWriter(FileStorage(config), SigningKeyStore(config.key_path), config)

        async def _write() -> None:
            for index in range(4):
                await writer.append(build_entry(EventType.HEALTH_CHECK, {"n": index}))

        asyncio.run(_write())

        def _numbers(name: str) -> list[int]:
            return [json.loads(line)["details"]["n"] for line in _lines(tmp_path / name)]

        assert _numbers("audit.log") == [3]
        assert _numbers("audit.1.log") == [2]
        assert _numbers("audit.2.log") == [1]
        assert not (tmp_path / "audit.3.log").exists()

    def test_oversized_entry_is_truncated_and_still_signed(self, tmp_path: Path) -> None:
        config = LedgerConfig(directory=tmp_path, max_entry_bytes=1024)
        key_store = SigningKeyStore(config.key_path)
        writer = LedgerWriter(FileStorage(config), key_store, config)
        entry = build_entry(EventType.EXPORT_DATA, {f"k{i}": "x" * 400 for i in range(10)})

        assert asyncio.run(writer.append(entry)) is True

        payload = json.loads(_lines(tmp_path / "audit.log")[0])
        assert payload["details"]["_truncated"] is True
        assert payload["details"]["_original_size"] > 1024
        assert payload["metadata"]["warning"] == TRUNCATION_WARNING
        assert verify(payload, asyncio.run(key_store.get_key())) is True

    def test_persistence_failure_returns_false(self, tmp_path: Path) -> None:
        blocker = tmp_path / "occupied"
        blocker.write_text("file, not a directory")
        config = LedgerConfig(directory=blocker / "audit")
        writer = LedgerWriter(FileStorage(config), SigningKeyStore(tmp_path / ".key"), config)

        result = asyncio.run(writer.append(build_entry(EventType.HEALTH_CHECK)))
        assert result is False

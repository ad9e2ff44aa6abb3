# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation
"""
Tests for ConfigDriftMonitor: content hashing, baselines and permissions.
"""

from __future__ import annotations

import asyncio
import stat
from pathlib import Path

import pytest

from audit_ledger.detection import ThreatLevel, ThreatType
from audit_ledger.drift import ConfigDriftMonitor


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    directory = tmp_path / "settings"
    directory.mkdir()
    directory.chmod(0o700)
    path = directory / "config.json"
    path.write_text('{"mode": "safe"}')
    path.chmod(0o600)
    return path


@pytest.fixture
def monitor(config_file: Path, tmp_path: Path) -> ConfigDriftMonitor:
    return ConfigDriftMonitor(config_file, tmp_path / "ledger" / ".config.hash")


class TestConfigDriftMonitor:
    def test_first_check_records_baseline(self, monitor: ConfigDriftMonitor, tmp_path: Path) -> None:
        status = asyncio.run(monitor.check())

        assert status.healthy is True
        assert status.threats == []
        hash_file = tmp_path / "ledger" / ".config.hash"
        assert hash_file.read_text() == asyncio.run(monitor.compute_hash())
        assert stat.S_IMODE(hash_file.stat().st_mode) == 0o600

    def test_content_change_is_reported_once(
        self, monitor: ConfigDriftMonitor, config_file: Path
    ) -> None:
        asyncio.run(monitor.check())
        config_file.write_text('{"mode": "unsafe"}')

        changed = asyncio.run(monitor.check())
        settled = asyncio.run(monitor.check())

        assert [threat.type for threat in changed.threats] == [ThreatType.PERMISSION_CHANGE]
        assert changed.threats[0].level == ThreatLevel.MEDIUM
        assert changed.issues == ["Configuration file has been modified"]
        assert changed.healthy is True
        assert settled.threats == []

    def test_missing_file_is_reported_and_baseline_removed(
        self, monitor: ConfigDriftMonitor, config_file: Path
    ) -> None:
        asyncio.run(monitor.check())
        config_file.unlink()

        status = asyncio.run(monitor.check())

        assert [threat.type for threat in status.threats] == [ThreatType.PERMISSION_CHANGE]
        assert status.threats[0].details["current_hash"] is None
        assert asyncio.run(monitor.load_baseline()) is None

    def test_world_writable_file_is_critical(
        self, monitor: ConfigDriftMonitor, config_file: Path
    ) -> None:
        config_file.chmod(0o666)

        permissions = asyncio.run(monitor.check_permissions())
        status = asyncio.run(monitor.check())

        assert permissions.secure is False
        assert permissions.writable_by_others is True
        assert any("writable by other users" in issue for issue in permissions.issues)
        assert status.healthy is False
        drift = [threat for threat in status.threats if threat.type == ThreatType.CONFIG_DRIFT]
        assert [threat.level for threat in drift] == [ThreatLevel.CRITICAL]

    def test_readable_file_is_high(self, monitor: ConfigDriftMonitor, config_file: Path) -> None:
        config_file.chmod(0o644)

        permissions = asyncio.run(monitor.check_permissions())
        status = asyncio.run(monitor.check())

        assert permissions.writable_by_others is False
        assert permissions.warnings == ["Config file may be readable by other users"]
        assert [threat.level for threat in status.threats] == [ThreatLevel.HIGH]

    def test_open_directory_is_an_issue(
        self, monitor: ConfigDriftMonitor, config_file: Path
    ) -> None:
        config_file.parent.chmod(0o755)

        permissions = asyncio.run(monitor.check_permissions())

        assert permissions.secure is False
        assert permissions.issues[0].startswith("Config directory has permissive permissions")

    def test_missing_config_is_not_a_permission_issue(self, tmp_path: Path) -> None:
        monitor = ConfigDriftMonitor(tmp_path / "absent" / "config.json", tmp_path / ".hash")

        permissions = asyncio.run(monitor.check_permissions())
        status = asyncio.run(monitor.check())

        assert permissions.secure is True
        assert status.healthy is True
        assert status.threats == []

# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Configuration drift monitoring.

The monitor hashes a watched configuration file and compares the digest with
the baseline saved by the previous check, and inspects the permissions of the
file and its directory. The baseline is rewritten at the end of every check,
so each change is reported once.
"""

from __future__ import annotations

import hashlib
import logging
import os
import stat
from pathlib import Path

import aiofiles
import aiofiles.os
from pydantic import BaseModel, ConfigDict, Field

from audit_ledger.detection.threats import Threat, ThreatLevel, ThreatType, create_threat
from audit_ledger.record import current_timestamp

logger = logging.getLogger("audit_ledger.drift")

SECURE_DIR_MODE = 0o700
SECURE_FILE_MODE = 0o600
HASH_FILE_MODE = 0o600


class PermissionCheck(BaseModel):
    """Outcome of inspecting the configuration file and directory modes."""

    model_config = ConfigDict(frozen=True)

    secure: bool
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    writable_by_others: bool = False


class ConfigStatus(BaseModel):
    """Outcome of a full drift check."""

    model_config = ConfigDict(frozen=True)

    healthy: bool
    issues: list[str] = Field(default_factory=list)
    threats: list[Threat] = Field(default_factory=list)
    last_check: str


def _hash_opener(path: str, flags: int) -> int:
    return os.open(path, flags, HASH_FILE_MODE)


class ConfigDriftMonitor:
    """
    Watches one configuration file for content and permission drift.

    Parameters
    ----------
    config_file:
        The file to watch.
    hash_file:
        Where the baseline SHA-256 digest is persisted (mode ``0o600``).
    """

    def __init__(self, config_file: str | Path, hash_file: str | Path) -> None:
        self._config_file = Path(config_file)
        self._hash_file = Path(hash_file)

    @property
    def config_file(self) -> Path:
        return self._config_file

    async def compute_hash(self) -> str | None:
        """SHA-256 hex digest of the watched file, or None when it cannot be read."""
        try:
            async with aiofiles.open(self._config_file, mode="rb") as config_handle:
                content = await config_handle.read()
        except OSError:
            return None
        return hashlib.sha256(content).hexdigest()

    async def load_baseline(self) -> str | None:
        try:
            async with aiofiles.open(self._hash_file, mode="r", encoding="utf-8") as hash_handle:
                baseline = (await hash_handle.read()).strip()
        except OSError:
            return None
        return baseline or None

    async def save_baseline(self, digest: str | None) -> None:
        """
        Persist ``digest`` as the new baseline; None removes the baseline.

        Failures are logged and otherwise ignored.
        """
        try:
            if digest is None:
                await aiofiles.os.remove(self._hash_file)
                return
            await aiofiles.os.makedirs(self._hash_file.parent, exist_ok=True)
            async with aiofiles.open(
                self._hash_file, mode="w", encoding="utf-8", opener=_hash_opener
            ) as hash_handle:
                await hash_handle.write(digest)
            os.chmod(self._hash_file, HASH_FILE_MODE)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning(
                "config_baseline_save_failed",
                extra={"hash_file": str(self._hash_file), "error": str(exc)},
            )

    async def check_permissions(self) -> PermissionCheck:
        """
        Compare the directory and file modes with ``0o700`` and ``0o600``.

        Group- or world-writable files are reported separately because they
        let another account rewrite the configuration.
        """
        issues: list[str] = []
        warnings: list[str] = []
        writable_by_others = False
        directory = self._config_file.parent

        try:
            if await aiofiles.os.path.exists(directory):
                dir_mode = stat.S_IMODE((await aiofiles.os.stat(directory)).st_mode)
                if dir_mode != SECURE_DIR_MODE:
                    issues.append(
                        f"Config directory has permissive permissions: "
                        f"{dir_mode:o} (expected {SECURE_DIR_MODE:o})"
                    )

            if await aiofiles.os.path.exists(self._config_file):
                file_mode = stat.S_IMODE((await aiofiles.os.stat(self._config_file)).st_mode)
                if file_mode & 0o022:
                    writable_by_others = True
                    issues.append(
                        f"Config file is writable by other users: {file_mode:o} "
                        f"(expected {SECURE_FILE_MODE:o})"
                    )
                elif file_mode != SECURE_FILE_MODE:
                    issues.append(
                        f"Config file has permissive permissions: "
                        f"{file_mode:o} (expected {SECURE_FILE_MODE:o})"
                    )
                if file_mode & 0o044:
                    warnings.append("Config file may be readable by other users")
        except OSError as exc:
            warnings.append(f"Could not check permissions: {exc}")

        return PermissionCheck(
            secure=not issues,
            issues=issues,
            warnings=warnings,
            writable_by_others=writable_by_others,
        )

    async def check(self) -> ConfigStatus:
        """
        Run the permission and content checks and advance the baseline.

        Insecure permissions yield a ``config_drift`` threat (critical when the
        file is writable by others, otherwise high). A digest that differs from
        the saved baseline, including the file having disappeared, yields a
        medium ``permission_change`` threat.
        """
        issues: list[str] = []
        threats: list[Threat] = []

        permissions = await self.check_permissions()
        if not permissions.secure:
            issues.extend(permissions.issues)
            threats.append(
                create_threat(
                    ThreatType.CONFIG_DRIFT,
                    ThreatLevel.CRITICAL if permissions.writable_by_others else ThreatLevel.HIGH,
                    "filesystem",
                    {
                        "issues": permissions.issues,
                        "config_path": str(self._config_file),
                        "config_dir": str(self._config_file.parent),
                    },
                )
            )

        current = await self.compute_hash()
        baseline = await self.load_baseline()
        if baseline is not None and current != baseline:
            issues.append(
                "Configuration file has been modified"
                if current is not None
                else "Configuration file is missing"
            )
            threats.append(
                create_threat(
                    ThreatType.PERMISSION_CHANGE,
                    ThreatLevel.MEDIUM,
                    "filesystem",
                    {
                        "previous_hash": baseline,
                        "current_hash": current,
                        "config_path": str(self._config_file),
                    },
                )
            )

        await self.save_baseline(current)

        return ConfigStatus(
            healthy=permissions.secure,
            issues=issues,
            threats=threats,
            last_check=current_timestamp(),
        )

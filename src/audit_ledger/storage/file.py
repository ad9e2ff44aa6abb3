# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Append-only, size-rotated NDJSON file storage backend.

The active segment ``<base>.log`` is only ever opened in append mode.
Rotation works purely by renaming: ``<base>.<N>.log`` is removed,
``<base>.<i>.log`` becomes ``<base>.<i+1>.log`` for i = N-1 down to 1, and the
active segment becomes ``<base>.1.log``. The next append recreates the
active segment.

There is no inter-process lock around rotation. Two processes that rotate at
the same moment can interleave their renames; callers that run several
writer processes against one directory must serialize rotation themselves.

Reading always parses from disk so the in-process view stays consistent with
anything written by other processes. Undecodable bytes are replaced with
U+FFFD, so a corrupt line fails JSON decoding on its own.
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiofiles
import aiofiles.os

from audit_ledger.config import LedgerConfig
from audit_ledger.errors import LedgerPersistenceError
from audit_ledger.storage.interface import LedgerStorage

logger = logging.getLogger("audit_ledger.storage")


class FileStorage(LedgerStorage):
    """
    Persistent segment storage in a single directory.

    Parameters
    ----------
    config:
        Ledger configuration supplying the directory, segment naming and
        retention count.
    """

    def __init__(self, config: LedgerConfig) -> None:
        self._config = config
        self._directory = Path(config.directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def segment_path(self, segment_name: str) -> Path:
        return self._directory / segment_name

    def segment_names(self) -> list[str]:
        return self._config.segment_names()

    async def ensure_ready(self) -> None:
        try:
            await aiofiles.os.makedirs(self._directory, exist_ok=True)
        except OSError as exc:
            raise LedgerPersistenceError(self._directory, "mkdir", str(exc)) from exc

    async def active_size(self) -> int:
        try:
            stat_result = await aiofiles.os.stat(self.segment_path(self._config.active_segment))
        except OSError:
            return 0
        return stat_result.st_size

    async def append_line(self, line: str) -> None:
        path = self.segment_path(self._config.active_segment)
        try:
            async with aiofiles.open(path, mode="a", encoding="utf-8") as file_handle:
                await file_handle.write(line + "\n")
        except OSError as exc:
            raise LedgerPersistenceError(path, "append", str(exc)) from exc

    async def rotate(self) -> None:
        retention = self._config.max_segments
        oldest = self.segment_path(self._config.rotated_segment(retention))
        try:
            await aiofiles.os.remove(oldest)
        except OSError as exc:
            self._log_rotation_step("remove", oldest, exc)

        for index in range(retention - 1, 0, -1):
            await self._rename(
                self.segment_path(self._config.rotated_segment(index)),
                self.segment_path(self._config.rotated_segment(index + 1)),
            )

        await self._rename(
            self.segment_path(self._config.active_segment),
            self.segment_path(self._config.rotated_segment(1)),
        )

    async def read_lines(self, segment_name: str) -> list[str] | None:
        path = self.segment_path(segment_name)
        try:
            async with aiofiles.open(
                path, mode="r", encoding="utf-8", errors="replace"
            ) as file_handle:
                content = await file_handle.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise LedgerPersistenceError(path, "read", str(exc)) from exc
        return content.split("\n")

    async def _rename(self, source: Path, target: Path) -> None:
        try:
            await aiofiles.os.rename(source, target)
        except OSError as exc:
            self._log_rotation_step("rename", source, exc)

    @staticmethod
    def _log_rotation_step(step: str, path: Path, exc: OSError) -> None:
        if isinstance(exc, FileNotFoundError):
            return
        logger.debug(
            "audit_rotation_step_failed",
            extra={"step": step, "path": str(path), "error": str(exc)},
        )

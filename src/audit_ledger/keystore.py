# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Owner-only persistence of the ledger signing key.

The key is 32 random bytes stored raw in its own file with mode ``0o600``.
It is loaded (or created) once per SigningKeyStore instance and cached;
callers share one store by injecting it into the writer and verifier. The
first load-or-create and every rotation run under an ``asyncio.Lock`` so
concurrent first callers all receive the key that ends up on disk.

Persistence failures never propagate. When the key cannot be written, the
freshly generated key is still returned so signing keeps working for the life
of the process; entries signed with it will not verify after a restart. The
store records this as ``origin == "ephemeral"`` so verification reports can
tell key discontinuity apart from tampering.
"""

from __future__ import annotations

import asyncio
import logging
import os
import secrets
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

import aiofiles
import aiofiles.os

logger = logging.getLogger("audit_ledger.keystore")

KEY_SIZE_BYTES = 32
KEY_FILE_MODE = 0o600

KeyOrigin = Literal["loaded", "generated", "ephemeral"]


def _owner_only_opener(path: str, flags: int) -> int:
    return os.open(path, flags, KEY_FILE_MODE)


class SigningKeyStore:
    """
    Load-or-create holder of the HMAC signing key.

    Parameters
    ----------
    key_path:
        File holding the raw key bytes. Its parent directory is created on
        first write.
    """

    def __init__(self, key_path: str | Path) -> None:
        self._key_path = Path(key_path)
        self._key: bytes | None = None
        self._origin: KeyOrigin | None = None
        self._generated_at: datetime | None = None
        self._lock = asyncio.Lock()

    @property
    def key_path(self) -> Path:
        return self._key_path

    @property
    def origin(self) -> KeyOrigin | None:
        """How the cached key was obtained, or None before first use."""
        return self._origin

    @property
    def generated_at(self) -> datetime | None:
        """When the cached key was generated in this process; None for loaded keys."""
        return self._generated_at

    async def get_key(self) -> bytes:
        """
        Return the signing key, creating and persisting it on first use.

        Owner-only permissions are re-applied on every call while the key
        file exists.
        """
        if self._key is not None:
            await self._enforce_permissions()
            return self._key

        async with self._lock:
            if self._key is not None:
                return self._key

            loaded = await self._load()
            if loaded is not None:
                self._key, self._origin = loaded, "loaded"
                return loaded

            return await self._generate()

    async def rotate_key(self) -> bytes:
        """
        Delete the stored key and generate a new one.

        Every signature made with the previous key stops verifying.
        """
        async with self._lock:
            try:
                await aiofiles.os.remove(self._key_path)
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.error(
                    "audit_key_remove_failed",
                    extra={"key_path": str(self._key_path), "error": str(exc)},
                )
            self._key = None
            self._origin = None
            return await self._generate()

    async def _load(self) -> bytes | None:
        try:
            async with aiofiles.open(self._key_path, mode="rb") as key_file:
                key = await key_file.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning(
                "audit_key_read_failed",
                extra={"key_path": str(self._key_path), "error": str(exc)},
            )
            return None
        if len(key) != KEY_SIZE_BYTES:
            logger.warning(
                "audit_key_malformed",
                extra={"key_path": str(self._key_path), "size": len(key)},
            )
            return None
        await self._enforce_permissions()
        return key

    async def _generate(self) -> bytes:
        key = secrets.token_bytes(KEY_SIZE_BYTES)
        self._key = key
        self._generated_at = datetime.now(tz=timezone.utc)
        try:
            await aiofiles.os.makedirs(self._key_path.parent, exist_ok=True)
            async with aiofiles.open(
                self._key_path, mode="wb", opener=_owner_only_opener
            ) as key_file:
                await key_file.write(key)
            os.chmod(self._key_path, KEY_FILE_MODE)
        except OSError as exc:
            self._origin = "ephemeral"
            logger.error(
                "audit_key_persist_failed",
                extra={"key_path": str(self._key_path), "error": str(exc)},
            )
        else:
            self._origin = "generated"
        return key

    async def _enforce_permissions(self) -> None:
        try:
            os.chmod(self._key_path, KEY_FILE_MODE)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning(
                "audit_key_chmod_failed",
                extra={"key_path": str(self._key_path), "error": str(exc)},
            )

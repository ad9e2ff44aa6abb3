# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Abstract base class that every segment storage backend must implement.

A backend holds one active segment plus numbered rotated segments. The only
mutations it offers are appending a line to the active segment and rotating;
nothing written through ``append_line`` is ever edited in place.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class LedgerStorage(ABC):
    """
    Contract for ledger segment persistence.

    Segment names are opaque strings; ``segment_names`` lists them in the order
    readers must scan them (active first, then rotated segments from newest to
    oldest).
    """

    @abstractmethod
    def segment_names(self) -> list[str]:
        """Every segment name the backend may hold, whether or not it exists yet."""
        ...

    @abstractmethod
    async def ensure_ready(self) -> None:
        """
        Prepare the backend for writing (for example, create the directory).

        Raises:
            LedgerPersistenceError: If the backend cannot be prepared.
        """
        ...

    @abstractmethod
    async def active_size(self) -> int:
        """Size of the active segment in bytes; 0 when it does not exist."""
        ...

    @abstractmethod
    async def append_line(self, line: str) -> None:
        """
        Append ``line`` plus a newline to the active segment.

        Raises:
            LedgerPersistenceError: If the line could not be written.
        """
        ...

    @abstractmethod
    async def rotate(self) -> None:
        """
        Shift every rotated segment one index older, dropping the oldest, and
        make the active segment rotated segment 1.

        Individual step failures are absorbed so a partial rotation never
        aborts the append that triggered it.
        """
        ...

    @abstractmethod
    async def read_lines(self, segment_name: str) -> list[str] | None:
        """
        Return the raw lines of a segment, or None when it does not exist.

        Raises:
            LedgerPersistenceError: If the segment exists but cannot be read.
        """
        ...

# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

from .interface import LedgerStorage
from .memory import MemoryStorage
from .file import FileStorage

__all__ = ["LedgerStorage", "MemoryStorage", "FileStorage"]

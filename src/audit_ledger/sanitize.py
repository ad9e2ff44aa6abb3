# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Sanitization of caller-supplied event data.

Everything a collaborator hands to the ledger passes through here before it
is signed: strings lose control characters and ANSI colour codes, line breaks
are escaped so a value can never forge a second NDJSON line, nested mappings
are bounded in depth and width, and keys that are known injection vectors are
dropped.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from audit_ledger.types import EntryContext

MAX_SAFE_LOG_LENGTH = 10_000
MAX_DETAIL_DEPTH = 5
MAX_DETAIL_KEYS = 100
MAX_DETAIL_ITEMS = 100
MAX_STRING_LENGTH = 500
MAX_OTHER_LENGTH = 100
DEPTH_EXCEEDED_MARKER = "[max depth exceeded]"

DANGEROUS_KEYS: frozenset[str] = frozenset({"__proto__", "constructor", "prototype"})

_LOG_INJECTION_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1a\x1c-\x1f\x7f]")
_LOG_NEWLINE_CHARS = re.compile(r"[\r\n]")
_ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m")

_CONTEXT_LIMITS: dict[str, int] = {
    "user_id": 100,
    "session_id": 100,
    "command": 200,
    "source_ip": 50,
}


def sanitize_for_log(value: Any, max_length: int = 1000) -> str:
    """
    Make ``value`` safe to embed in a single log line.

    The string is truncated to ``max_length`` (never more than
    ``MAX_SAFE_LOG_LENGTH``), control characters are removed, CR/LF become a
    literal ``\\n`` and ANSI colour sequences are stripped.
    """
    text = value if isinstance(value, str) else str(value)
    text = text[: min(max_length, MAX_SAFE_LOG_LENGTH)]
    text = _LOG_INJECTION_CHARS.sub("", text)
    text = _LOG_NEWLINE_CHARS.sub(r"\\n", text)
    return _ANSI_ESCAPE_PATTERN.sub("", text)


def is_dangerous_key(key: str) -> bool:
    return key in DANGEROUS_KEYS


def _sanitize_value(value: Any, depth: int) -> Any:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        return sanitize_for_log(value, MAX_STRING_LENGTH)
    if isinstance(value, Mapping):
        if depth >= MAX_DETAIL_DEPTH:
            return DEPTH_EXCEEDED_MARKER
        return _sanitize_mapping(value, depth + 1)
    if isinstance(value, (list, tuple)):
        if depth >= MAX_DETAIL_DEPTH:
            return DEPTH_EXCEEDED_MARKER
        return [_sanitize_value(item, depth + 1) for item in value[:MAX_DETAIL_ITEMS]]
    return sanitize_for_log(str(value), MAX_OTHER_LENGTH)


def _sanitize_mapping(details: Mapping[Any, Any], depth: int) -> dict[str, Any]:
    sanitized: dict[str, Any] = {}
    for raw_key, value in details.items():
        if len(sanitized) >= MAX_DETAIL_KEYS:
            break
        key = sanitize_for_log(raw_key, MAX_OTHER_LENGTH)
        if is_dangerous_key(key):
            continue
        sanitized[key] = _sanitize_value(value, depth)
    return sanitized


def sanitize_details(details: Any) -> dict[str, Any]:
    """
    Return a JSON-safe, bounded copy of ``details``.

    Non-mapping input yields an empty dict. Nesting deeper than
    ``MAX_DETAIL_DEPTH`` is replaced by a marker string.
    """
    if not isinstance(details, Mapping):
        return {}
    return _sanitize_mapping(details, 0)


def sanitize_context(context: EntryContext | Mapping[str, Any] | None) -> EntryContext:
    """
    Keep only the recognised context fields, each sanitized to its own limit.

    Empty and ``None`` values are dropped.
    """
    if context is None:
        return EntryContext()
    raw = context.model_dump() if isinstance(context, EntryContext) else context
    fields: dict[str, str] = {}
    for name, limit in _CONTEXT_LIMITS.items():
        value = raw.get(name)
        if value is None or value == "":
            continue
        fields[name] = sanitize_for_log(str(value), limit)
    return EntryContext(**fields)

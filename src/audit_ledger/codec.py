# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
HMAC-SHA256 signing of ledger entries.

Each entry is signed independently over a canonical serialization of every
field except the signature fields themselves. Unlike a hash chain, tampering
with one line invalidates exactly that line, so verification can report each
altered entry individually and rotated-out segments never break the rest of
the ledger.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from collections.abc import Mapping, Sequence
from typing import Any

SIGNATURE_FIELD = "signature"
ALGORITHM_FIELD = "signature_algorithm"
HMAC_ALGORITHM = "sha256"

_SIGNATURE_FIELDS = frozenset({SIGNATURE_FIELD, ALGORITHM_FIELD})


def canonicalize(payload: Mapping[str, Any]) -> bytes:
    """
    Produce deterministic UTF-8 bytes for ``payload``.

    Keys are sorted at every nesting depth so that two payloads holding the
    same data in different insertion orders serialize identically. List order
    is preserved. The signature fields are excluded so a signed payload
    canonicalizes to the same bytes as its unsigned form.
    """
    unsigned = {k: v for k, v in payload.items() if k not in _SIGNATURE_FIELDS}
    return json.dumps(
        unsigned, sort_keys=True, ensure_ascii=False, separators=(",", ":")
    ).encode("utf-8")


def sign(payload: Mapping[str, Any], key: bytes) -> str:
    """Return the hex-encoded HMAC-SHA256 of the canonical form of ``payload``."""
    return hmac.new(key, canonicalize(payload), hashlib.sha256).hexdigest()


def signed_payload(payload: Mapping[str, Any], key: bytes) -> dict[str, Any]:
    """Return a copy of ``payload`` with the signature fields attached."""
    return {
        **payload,
        SIGNATURE_FIELD: sign(payload, key),
        ALGORITHM_FIELD: HMAC_ALGORITHM,
    }


def constant_time_equals(expected: Sequence[int], actual: Sequence[int]) -> bool:
    """
    Compare two byte sequences without exiting on the first difference.

    When the lengths match every position is visited and the differences are
    OR-accumulated, so the running time does not reveal where the first
    mismatching byte is. A length mismatch returns False immediately; the
    length of an HMAC digest is not secret.
    """
    if len(expected) != len(actual):
        return False
    result = 0
    for index in range(len(expected)):
        result |= expected[index] ^ actual[index]
    return result == 0


def verify(payload: Mapping[str, Any], key: bytes) -> bool:
    """
    Return True when the stored signature of ``payload`` matches ``key``.

    Unsigned payloads, malformed signatures and payloads that cannot be
    serialized all verify as False; this function never raises.
    """
    stored = payload.get(SIGNATURE_FIELD) if isinstance(payload, Mapping) else None
    if not isinstance(stored, str) or not stored:
        return False
    try:
        expected = bytes.fromhex(sign(payload, key))
        actual = bytes.fromhex(stored)
    except (TypeError, ValueError, OverflowError, RecursionError):
        return False
    return constant_time_equals(expected, actual)

# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation
"""
Tests for canonicalization, signing and signature verification.
"""

from __future__ import annotations

import secrets

import pytest

from audit_ledger.codec import (
    ALGORITHM_FIELD,
    SIGNATURE_FIELD,
    canonicalize,
    constant_time_equals,
    sign,
    signed_payload,
    verify,
)
from audit_ledger.record import build_entry, entry_payload
from audit_ledger.types import EventType

KEY = bytes(range(32))


def _payload() -> dict:
    entry = build_entry(
        EventType.AUTH_FAILURE,
        {"reason": "bad password", "attempt": 3, "nested": {"b": 1, "a": [1, 2]}},
        {"user_id": "alice", "source_ip": "10.0.0.5"},
        entry_id="al-test-0001",
        timestamp="2026-01-01T12:00:00.000Z",
    )
    return entry_payload(entry)


class CountingBytes(bytes):
    """bytes that count how many positions were read by index."""

    def __new__(cls, value: bytes) -> "CountingBytes":
        instance = super().__new__(cls, value)
        instance.reads = 0
        return instance

    def __getitem__(self, index):  # type: ignore[override]
        self.reads += 1
        return super().__getitem__(index)


# ---------------------------------------------------------------------------
# TestCanonicalize
# ---------------------------------------------------------------------------


class TestCanonicalize:
    def test_key_order_does_not_change_output(self) -> None:
        first = {"b": 1, "a": {"y": 2, "x": [3, {"q": 1, "p": 2}]}}
        second = {"a": {"x": [3, {"p": 2, "q": 1}], "y": 2}, "b": 1}
        assert canonicalize(first) == canonicalize(second)

    def test_repeated_calls_are_byte_identical(self) -> None:
        payload = _payload()
        assert canonicalize(payload) == canonicalize(dict(reversed(list(payload.items()))))

    def test_list_order_is_significant(self) -> None:
        assert canonicalize({"a": [1, 2]}) != canonicalize({"a": [2, 1]})

    def test_signature_fields_are_excluded(self) -> None:
        payload = _payload()
        assert canonicalize(signed_payload(payload, KEY)) == canonicalize(payload)

    def test_output_is_compact_utf8(self) -> None:
        assert canonicalize({"name": "café", "n": 1}) == '{"n":1,"name":"café"}'.encode("utf-8")


# ---------------------------------------------------------------------------
# TestSignAndVerify
# ---------------------------------------------------------------------------


class TestSignAndVerify:
    def test_signed_payload_verifies(self) -> None:
        signed = signed_payload(_payload(), KEY)
        assert signed[ALGORITHM_FIELD] == "sha256"
        assert len(signed[SIGNATURE_FIELD]) == 64
        assert verify(signed, KEY) is True

    def test_signature_is_deterministic(self) -> None:
        assert sign(_payload(), KEY) == sign(_payload(), KEY)

    def test_wrong_key_fails(self) -> None:
        signed = signed_payload(_payload(), KEY)
        assert verify(signed, secrets.token_bytes(32)) is False

    def test_unsigned_payload_fails(self) -> None:
        assert verify(_payload(), KEY) is False

    def test_non_hex_signature_fails_without_raising(self) -> None:
        signed = {**signed_payload(_payload(), KEY), SIGNATURE_FIELD: "zz" * 32}
        assert verify(signed, KEY) is False

    def test_truncated_signature_fails(self) -> None:
        signed = signed_payload(_payload(), KEY)
        signed[SIGNATURE_FIELD] = signed[SIGNATURE_FIELD][:-2]
        assert verify(signed, KEY) is False

    @pytest.mark.parametrize(
        "path",
        [
            ("id",),
            ("timestamp",),
            ("event_type",),
            ("severity",),
            ("details", "reason"),
            ("context", "user_id"),
            ("context", "source_ip"),
            ("metadata", "hostname"),
            ("metadata", "version"),
        ],
    )
    def test_single_character_change_is_detected(self, path: tuple[str, ...]) -> None:
        signed = signed_payload(_payload(), KEY)
        container = signed
        for key in path[:-1]:
            container[key] = dict(container[key])
            container = container[key]
        original = container[path[-1]]
        replacement = "X" if original[0] != "X" else "Y"
        container[path[-1]] = replacement + original[1:]
        assert verify(signed, KEY) is False

    def test_numeric_change_is_detected(self) -> None:
        signed = signed_payload(_payload(), KEY)
        signed["details"] = {**signed["details"], "attempt": 4}
        assert verify(signed, KEY) is False

    def test_added_field_is_detected(self) -> None:
        signed = signed_payload(_payload(), KEY)
        signed["extra"] = "injected"
        assert verify(signed, KEY) is False


# ---------------------------------------------------------------------------
# TestConstantTimeEquals
# ---------------------------------------------------------------------------


class TestConstantTimeEquals:
    def test_equal_sequences(self) -> None:
        assert constant_time_equals(b"\x01\x02\x03", b"\x01\x02\x03") is True

    def test_different_sequences(self) -> None:
        assert constant_time_equals(b"\x01\x02\x03", b"\x01\x02\x04") is False

    def test_length_mismatch(self) -> None:
        assert constant_time_equals(b"\x01\x02", b"\x01\x02\x03") is False

    @pytest.mark.parametrize("mismatch_at", [0, 15, 31])
    def test_scans_full_length_regardless_of_mismatch_position(self, mismatch_at: int) -> None:
        expected = CountingBytes(bytes(32))
        actual_raw = bytearray(32)
        actual_raw[mismatch_at] = 0xFF
        actual = CountingBytes(bytes(actual_raw))

        assert constant_time_equals(expected, actual) is False
        assert expected.reads == 32
        assert actual.reads == 32

    def test_scans_full_length_when_equal(self) -> None:
        expected = CountingBytes(bytes(32))
        actual = CountingBytes(bytes(32))
        assert constant_time_equals(expected, actual) is True
        assert expected.reads == 32

# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, Field, ValidationError

from audit_ledger.errors import ConfigurationError

DEFAULT_HOME: Path = Path.home() / ".audit-ledger"


class LedgerConfig(BaseModel, frozen=True):
    """
    Location and size policy of the on-disk ledger.

    Attributes:
        directory: Directory holding the segments, the signing key and the
            configuration baseline hash.
        base_name: Stem of the segment file names. The active segment is
            ``<base_name>.log``; rotated segments are ``<base_name>.<i>.log``.
        key_file: Name of the signing key file inside ``directory``.
        max_segment_bytes: The active segment is rotated before the next append
            once it grows beyond this size.
        max_segments: Number of rotated segments retained.
        max_entry_bytes: Serialized entries larger than this have their
            details replaced by a truncation marker.
        summary_limit: Upper bound on entries tabulated by ``summarize``.
    """

    directory: Path = DEFAULT_HOME / "audit"
    base_name: str = "audit"
    key_file: str = ".audit.key"
    max_segment_bytes: Annotated[int, Field(gt=0)] = 5 * 1024 * 1024
    max_segments: Annotated[int, Field(ge=1)] = 10
    max_entry_bytes: Annotated[int, Field(gt=0)] = 10 * 1024
    summary_limit: Annotated[int, Field(gt=0)] = 1000

    @property
    def key_path(self) -> Path:
        return self.directory / self.key_file

    @property
    def active_segment(self) -> str:
        return f"{self.base_name}.log"

    def rotated_segment(self, index: int) -> str:
        """Return the file name of rotated segment ``index`` (1 is the newest)."""
        return f"{self.base_name}.{index}.log"

    def segment_names(self) -> list[str]:
        """Active segment first, then rotated segments in increasing age."""
        return [self.active_segment] + [
            self.rotated_segment(index) for index in range(1, self.max_segments + 1)
        ]


class DetectionThresholds(BaseModel, frozen=True):
    """
    Thresholds shared by the threat detectors.

    Attributes:
        failed_auth_threshold: Failed authentications per source that make a
            brute-force window.
        failed_auth_window_minutes: Width of the brute-force window.
        command_rate_threshold: Command executions per source that make a
            rate-limit window.
        command_rate_window_minutes: Width of the rate-limit window.
        error_rate_threshold: Fraction of error events in a bucket that makes
            an error spike.
        error_rate_window_minutes: Width of the error-rate buckets.
        config_change_threshold: Sensitive events per source that make a
            privilege-escalation window.
        config_change_window_minutes: Width of the privilege-escalation window.
    """

    failed_auth_threshold: Annotated[int, Field(gt=0)] = 5
    failed_auth_window_minutes: Annotated[float, Field(gt=0)] = 15
    command_rate_threshold: Annotated[int, Field(gt=0)] = 100
    command_rate_window_minutes: Annotated[float, Field(gt=0)] = 5
    error_rate_threshold: Annotated[float, Field(gt=0, le=1)] = 0.3
    error_rate_window_minutes: Annotated[float, Field(gt=0)] = 10
    config_change_threshold: Annotated[int, Field(gt=0)] = 3
    config_change_window_minutes: Annotated[float, Field(gt=0)] = 5

    def with_overrides(
        self, overrides: DetectionThresholds | Mapping[str, Any] | None
    ) -> DetectionThresholds:
        """
        Return thresholds with ``overrides`` applied on top of this instance.

        Unknown keys and out-of-range values raise :class:`ConfigurationError`.
        """
        if overrides is None:
            return self
        if isinstance(overrides, DetectionThresholds):
            return overrides
        unknown = set(overrides) - set(type(self).model_fields)
        if unknown:
            raise ConfigurationError(
                f"Unknown detection thresholds: {sorted(unknown)}."
            )
        try:
            return type(self).model_validate({**self.model_dump(), **overrides})
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid detection thresholds: {exc}") from exc


class MonitorConfig(BaseModel, frozen=True):
    """
    Configuration drift monitoring.

    Attributes:
        config_file: The watched configuration file.
        hash_file: Where the baseline hash is stored. Defaults to
            ``.config.hash`` inside the ledger directory.
    """

    config_file: Path = DEFAULT_HOME / "config.json"
    hash_file: Path | None = None


class AuditLedgerConfig(BaseModel, frozen=True):
    """
    Top-level configuration for :class:`~audit_ledger.ledger.AuditLedger`.

    Example::

        config = AuditLedgerConfig(
            ledger=LedgerConfig(directory=Path("/var/lib/app/audit"), max_segments=5),
            thresholds=DetectionThresholds(failed_auth_threshold=3),
            monitor=MonitorConfig(config_file=Path("/etc/app/config.json")),
        )
        ledger = AuditLedger(config)
    """

    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    thresholds: DetectionThresholds = Field(default_factory=DetectionThresholds)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)

    @property
    def hash_path(self) -> Path:
        return self.monitor.hash_file or self.ledger.directory / ".config.hash"

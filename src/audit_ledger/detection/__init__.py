# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

from .detectors import (
    analyze_brute_force,
    analyze_error_spikes,
    analyze_privilege_escalation,
    analyze_rate_limit,
    analyze_suspicious_patterns,
    detect_brute_force,
    detect_error_spikes,
    detect_privilege_escalation,
    detect_rate_limit_violations,
    detect_suspicious_patterns,
    resolve_thresholds,
)
from .threats import LEVEL_RANK, Threat, ThreatLevel, ThreatType, create_threat
from .windows import first_window_at_least, group_by_source, sliding_windows, time_buckets

__all__ = [
    "Threat",
    "ThreatLevel",
    "ThreatType",
    "LEVEL_RANK",
    "create_threat",
    "group_by_source",
    "sliding_windows",
    "first_window_at_least",
    "time_buckets",
    "analyze_brute_force",
    "analyze_rate_limit",
    "analyze_error_spikes",
    "analyze_privilege_escalation",
    "analyze_suspicious_patterns",
    "detect_brute_force",
    "detect_rate_limit_violations",
    "detect_error_spikes",
    "detect_privilege_escalation",
    "detect_suspicious_patterns",
    "resolve_thresholds",
]

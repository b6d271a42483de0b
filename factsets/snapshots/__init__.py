"""Snapshot size management."""

from factsets.snapshots.overflow import (
    DEFAULT_NOISE_PATTERNS,
    TRUNCATION_MARKER,
    OverflowPolicy,
    OverflowResult,
    Summarizer,
    apply_overflow_policy,
    looks_binary,
    remove_noise,
    truncate,
)

__all__ = [
    "DEFAULT_NOISE_PATTERNS",
    "OverflowPolicy",
    "OverflowResult",
    "Summarizer",
    "TRUNCATION_MARKER",
    "apply_overflow_policy",
    "looks_binary",
    "remove_noise",
    "truncate",
]

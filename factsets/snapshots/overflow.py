"""Size limits and overflow policies for stored resource snapshots."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import Literal, Protocol

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

OverflowPolicy = Literal["truncate", "summarize", "remove_noise", "auto"]

TRUNCATION_MARKER = "\n\n[...truncated]"

DEFAULT_NOISE_PATTERNS: tuple[str, ...] = (
    r"[ \t]+$",  # trailing whitespace, including whitespace-only lines
    r"(?<=\n\n)\n+",  # more than one blank line in a row
)

# Share of control bytes above which content is treated as binary.
BINARY_RATIO = 0.30
_SAMPLE_BYTES = 8192
_TEXT_CONTROL = {9, 10, 12, 13}


class Summarizer(Protocol):
    """Anything that can shrink text below a byte budget."""

    def summarize(self, text: str, max_bytes: int) -> str: ...


class OverflowResult(BaseModel):
    """What was stored, and which policy produced it.

    ``policy_applied`` is None when the snapshot fit as-is.
    """

    model_config = ConfigDict(frozen=True)

    snapshot: str
    policy_applied: str | None = None
    original_bytes: int
    stored_bytes: int


def _as_text(snapshot: str | bytes) -> str:
    if isinstance(snapshot, bytes):
        return snapshot.decode("utf-8", errors="replace")
    return snapshot


def _size(text: str) -> int:
    return len(text.encode("utf-8"))


def looks_binary(data: str | bytes) -> bool:
    """True when the sample is mostly control bytes (or contains NUL)."""
    raw = data.encode("utf-8", errors="replace") if isinstance(data, str) else data
    sample = raw[:_SAMPLE_BYTES]
    if not sample:
        return False
    if b"\x00" in sample:
        return True
    control = sum(1 for b in sample if (b < 32 and b not in _TEXT_CONTROL) or b == 127)
    return control / len(sample) > BINARY_RATIO


def truncate(text: str, max_bytes: int) -> str:
    """Keep a UTF-8-safe prefix plus the truncation marker, within *max_bytes*."""
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    budget = max_bytes - _size(TRUNCATION_MARKER)
    if budget <= 0:
        return encoded[:max_bytes].decode("utf-8", errors="ignore")
    return encoded[:budget].decode("utf-8", errors="ignore") + TRUNCATION_MARKER


def remove_noise(text: str, patterns: Iterable[str] = DEFAULT_NOISE_PATTERNS) -> str:
    """Strip every regex in *patterns* (multiline mode) and trailing newlines.

    Bad patterns are skipped. Leading indentation is kept.
    """
    cleaned = text
    for pattern in patterns:
        try:
            cleaned = re.sub(pattern, "", cleaned, flags=re.MULTILINE)
        except re.error as exc:
            logger.warning("Skipping invalid noise pattern %r: %s", pattern, exc)
    return cleaned.rstrip("\n")


def _summarize(text: str, max_bytes: int, summarizer: Summarizer | None) -> tuple[str, str]:
    if summarizer is None:
        logger.info("No summarizer configured, truncating snapshot instead")
        return truncate(text, max_bytes), "truncate"
    try:
        summary = summarizer.summarize(text, max_bytes)
    except Exception:
        logger.warning("Summarizer failed, truncating snapshot instead", exc_info=True)
        return truncate(text, max_bytes), "truncate"
    if not summary:
        logger.warning("Summarizer returned nothing, truncating snapshot instead")
        return truncate(text, max_bytes), "truncate"
    return truncate(summary, max_bytes), "summarize"


def apply_overflow_policy(
    snapshot: str | bytes,
    max_size_kb: int,
    policy: OverflowPolicy = "truncate",
    *,
    summarizer: Summarizer | None = None,
    noise_patterns: Iterable[str] | None = None,
) -> OverflowResult:
    """Fit *snapshot* into ``max_size_kb * 1024`` bytes.

    Whatever the policy, the stored text never exceeds the limit; every
    failure path ends in ``truncate``.
    """
    max_bytes = max_size_kb * 1024
    original_bytes = len(snapshot) if isinstance(snapshot, bytes) else _size(snapshot)
    text = _as_text(snapshot)

    if _size(text) <= max_bytes:
        return OverflowResult(
            snapshot=text, original_bytes=original_bytes, stored_bytes=_size(text)
        )

    effective = policy
    if policy == "auto":
        effective = "truncate" if looks_binary(snapshot) else "remove_noise"

    if effective == "summarize":
        stored, applied = _summarize(text, max_bytes, summarizer)
    elif effective == "remove_noise":
        patterns = DEFAULT_NOISE_PATTERNS if noise_patterns is None else noise_patterns
        cleaned = remove_noise(text, patterns)
        if _size(cleaned) <= max_bytes:
            stored, applied = cleaned, "remove_noise"
        else:
            stored, applied = truncate(cleaned, max_bytes), "truncate"
    else:
        stored, applied = truncate(text, max_bytes), "truncate"

    logger.debug(
        "Snapshot overflow (%d > %d bytes): %s -> %s", original_bytes, max_bytes, policy, applied
    )
    return OverflowResult(
        snapshot=stored,
        policy_applied=applied,
        original_bytes=original_bytes,
        stored_bytes=_size(stored),
    )

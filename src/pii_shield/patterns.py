"""Regex layer for free-text fields.

Used by ``TextAlgo`` to find structured PII embedded in prose (notes,
remarks, addresses) where a whole-value algorithm does not fit.
"""

from __future__ import annotations
import re
from typing import Iterable

from .types import EntityMatch

# Each pattern: (entity_type, compiled_regex, score)
_PATTERNS: list[tuple[str, re.Pattern, float]] = [
    ("EMAIL", re.compile(
        r"\b[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}\b"
    ), 1.0),

    # Mainland China mobile numbers
    ("CN_MOBILE", re.compile(
        r"(?<!\d)1[3-9]\d{9}(?!\d)"
    ), 0.95),

    # Resident ID card, 18 digits (last may be X) or legacy 15 digits
    ("CN_ID_CARD", re.compile(
        r"(?<![\dXx])(?:\d{17}[\dXx]|\d{15})(?![\dXx])"
    ), 0.9),

    # Generic international / domestic phone formats
    ("PHONE", re.compile(
        r"(?<!\d)"
        r"(?:\+?\d{1,3}[\s\-.]?)?"
        r"(?:\(?\d{2,4}\)?[\s\-.]?)"
        r"\d{3,4}[\s\-.]?\d{3,4}"
        r"(?!\d)"
    ), 0.8),

    ("CREDIT_CARD", re.compile(
        r"\b(?:4\d{3}|5[1-5]\d{2}|3[47]\d{2}|6(?:011|5\d{2}))"
        r"[\s\-.]?\d{4}[\s\-.]?\d{4}[\s\-.]?\d{1,4}\b"
    ), 0.95),

    ("SSN", re.compile(
        r"\b\d{3}[\s\-]\d{2}[\s\-]\d{4}\b"
    ), 0.9),

    ("IP_ADDRESS", re.compile(
        r"\b(?:(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\.){3}"
        r"(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\b"
    ), 0.9),

    ("API_KEY", re.compile(
        r"(?:api[_\-]?key|secret|token|password|bearer)\s*[:=]\s*['\"]?[a-zA-Z0-9\-_\.]{20,}['\"]?"
    , re.IGNORECASE), 0.8),
]

def scan_regex(text: str, *, skip_types: Iterable[str] = ()) -> list[EntityMatch]:
    """Run all regex patterns against text. Returns non-overlapping matches."""
    skip = set(skip_types)
    matches: list[EntityMatch] = []
    for entity_type, pattern, score in _PATTERNS:
        if entity_type in skip:
            continue
        for m in pattern.finditer(text):
            matches.append(EntityMatch(
                entity_type=entity_type,
                start=m.start(),
                end=m.end(),
                text=m.group(),
                score=score,
                source="regex",
            ))
    return dedupe(matches)


def dedupe(matches: list[EntityMatch]) -> list[EntityMatch]:
    """Remove overlapping matches, keeping higher-score then longer ones."""
    if not matches:
        return matches
    ranked = sorted(matches, key=lambda m: (-m.score, -(m.end - m.start)))
    taken: list[EntityMatch] = []
    used: list[tuple[int, int]] = []
    for m in ranked:
        if not any(m.start < e and m.end > s for s, e in used):
            taken.append(m)
            used.append((m.start, m.end))
    return sorted(taken, key=lambda m: m.start)

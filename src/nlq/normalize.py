"""
Text canonicalisation and literal extraction for question parsing.

Every helper is pure.  ``normalize_text`` exists for *comparison* only:
its output is never shown to a user.
"""
from __future__ import annotations

import re

_UNIT_SUFFIX_RE = re.compile(r"\$mm|_pct|%|_|\s+")
_QUARTER_RE = re.compile(r"(\d{4})\s*q\s*(\d)", re.IGNORECASE)
_YEAR_RE = re.compile(r"\b(20\d{2})\b")
_NUMBER_RE = re.compile(r"\b(\d+)\b")
_BY_RE = re.compile(r"\bby\s+([a-z][a-z\s]*)", re.IGNORECASE)
_PER_RE = re.compile(r"\bper\s+([a-z][a-z\s]*)", re.IGNORECASE)


def normalize_text(text: str) -> str:
    """Lowercase and drop ``$mm``, ``_pct``, ``%``, ``_`` and all whitespace.

    >>> normalize_text("Margin_$mm")
    'margin'
    >>> normalize_text("Cost Center")
    'costcenter'
    """
    return _UNIT_SUFFIX_RE.sub("", text.lower())


def tokenize(text: str) -> list[str]:
    """Split *text* into lowercase whitespace-separated tokens."""
    return [t for t in text.lower().split() if t]


def extract_quarter(text: str) -> str | None:
    """``"2024 q1"`` / ``"2024Q1"`` → ``"2024Q1"``."""
    m = _QUARTER_RE.search(text)
    if m:
        return f"{m.group(1)}Q{m.group(2)}"
    return None


def extract_year(text: str) -> str | None:
    """First standalone four-digit token starting with ``20``."""
    m = _YEAR_RE.search(text)
    return m.group(1) if m else None


def extract_number(text: str) -> int | None:
    """First standalone integer, e.g. ``"top 3 regions"`` → ``3``."""
    m = _NUMBER_RE.search(text)
    return int(m.group(1)) if m else None


def extract_group_by(text: str) -> str | None:
    """Phrase following ``by`` (or else ``per``), up to punctuation or a digit."""
    for pattern in (_BY_RE, _PER_RE):
        m = pattern.search(text)
        if m:
            phrase = m.group(1).strip()
            if phrase:
                return phrase
    return None


def contains_any(text: str, keywords: list[str] | tuple[str, ...]) -> bool:
    """True if any normalised keyword is a substring of the normalised text."""
    normalized = normalize_text(text)
    return any(normalize_text(kw) in normalized for kw in keywords)

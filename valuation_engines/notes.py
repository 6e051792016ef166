"""
Module: valuation_engines.notes
Responsibility:
    Extract typed ``key:value`` tokens from free-text transaction notes,
    e.g. ``"live Int:12 Per:M Target:3yr Risk:high"``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Leniency: every parser returns a neutral value (0, "", "unknown")
      for a missing or malformed token and never raises.  These functions
      run inside user formulas where a missing field must not abort
      evaluation.
    - Two different "contains" checks exist and must not be conflated:
        * ``note_contains(note, substr)`` is the formula function.  It is
          CASE-SENSITIVE plain substring containment.
        * ``has_close_marker(*notes)`` is the loan closure check.  It is
          CASE-INSENSITIVE and looks only for the literal words "closed"
          or "settled" anywhere in the transaction note or posting note.

Usage:
    from valuation_engines.notes import parse_note_float, parse_loan_terms

    parse_note_float("Int:12.5 Per:M", "Int:")       # 12.5
    parse_loan_terms("Int:12 Target:6m Risk:L")      # LoanTerms(12.0, "", 180, "low")
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

INTEREST_PREFIX = "Int:"
PERIOD_PREFIX = "Per:"
TARGET_PREFIX = "Target:"
RISK_PREFIX = "Risk:"

CLOSE_MARKERS: tuple[str, ...] = ("closed", "settled")

RISK_LEVELS: tuple[str, ...] = ("high", "medium", "low")
UNKNOWN_RISK = "unknown"

_TOKEN_RE = re.compile(r"\S*")
_FLOAT_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_DURATION_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(yr|y|mo|m|w|d)", re.IGNORECASE)

# Days per unit for Target: tokens.
_DURATION_UNITS: dict[str, int] = {
    "yr": 365,
    "y": 365,
    "mo": 30,
    "m": 30,
    "w": 7,
    "d": 1,
}


def parse_note_string(note: str, prefix: str) -> str:
    """
    Return the token that follows the first occurrence of ``prefix``.

    The token runs up to the next whitespace character or the end of the
    note.  Returns "" when the prefix is empty or absent.
    """
    if not prefix:
        return ""
    _, found, rest = note.partition(prefix)
    if not found:
        return ""
    return _TOKEN_RE.match(rest).group()


def parse_note_float(note: str, prefix: str) -> float:
    """
    Parse the token after ``prefix`` as a decimal number.

    Returns 0.0 when the prefix is absent or the token is not a finite
    decimal literal (``nan`` and ``inf`` are treated as malformed).
    """
    token = parse_note_string(note, prefix)
    if not token or _FLOAT_RE.fullmatch(token) is None:
        return 0.0
    value = float(token)
    if not math.isfinite(value):
        return 0.0
    return value


def note_contains(note: str, substr: str) -> bool:
    """Case-sensitive substring containment (formula function)."""
    return substr in note


def has_close_marker(*notes: str) -> bool:
    """
    True if "closed" or "settled" appears anywhere in the given notes.

    Case-insensitive.  The notes are joined with a space before searching,
    so a marker split across two notes does not match.
    """
    combined = " ".join(notes).lower()
    return any(marker in combined for marker in CLOSE_MARKERS)


def parse_duration(token: str) -> int:
    """
    Convert a suffix-coded duration token to whole days.

    ``Nyr``/``Ny`` -> N*365, ``Nmo``/``Nm`` -> N*30, ``Nw`` -> N*7,
    ``Nd`` -> N.  Fractional counts are allowed and the result is truncated.
    Unknown, empty and negative tokens give 0.
    """
    match = _DURATION_RE.fullmatch(token.strip())
    if match is None:
        return 0
    count = float(match.group(1))
    return int(count * _DURATION_UNITS[match.group(2).lower()])


def parse_risk_level(note: str) -> str:
    """
    Read the ``Risk:`` token as one of high / medium / low / unknown.

    Accepts the full word or its first letter, in any case.
    """
    token = parse_note_string(note, RISK_PREFIX).lower()
    if not token:
        return UNKNOWN_RISK
    for level in RISK_LEVELS:
        if token == level or token == level[0]:
            return level
    return UNKNOWN_RISK


@dataclass(frozen=True)
class LoanTerms:
    """Loan terms declared in a transaction note."""

    interest_rate: float = 0.0
    period: str = ""
    target_days: int = 0
    risk_level: str = UNKNOWN_RISK


def parse_loan_terms(note: str) -> LoanTerms:
    """Parse ``Int:``, ``Per:``, ``Target:`` and ``Risk:`` from one note."""
    return LoanTerms(
        interest_rate=parse_note_float(note, INTEREST_PREFIX),
        period=parse_note_string(note, PERIOD_PREFIX),
        target_days=parse_duration(parse_note_string(note, TARGET_PREFIX)),
        risk_level=parse_risk_level(note),
    )

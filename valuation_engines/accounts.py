"""
Module: valuation_engines.accounts
Responsibility:
    Decide whether an account name matches a valuation rule's account
    pattern.  A pattern is a literal account name in which the wildcard
    marker ``*`` stands for "any remaining characters".

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Matching is two-phase.  The storage collaborator applies the coarse
      ``prefix_filter`` and may return too many postings; only
      ``match_account_pattern`` is authoritative.
    - Regex metacharacters in the literal portions of a pattern match
      themselves.  The match is anchored to the whole account name, so
      ``Assets:p2p`` does NOT match ``Assets:p2p:*``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from valuation_kernel.domain.account_patterns import WILDCARD, like_prefix
from valuation_kernel.domain.values import Posting


def pattern_regex(pattern: str) -> re.Pattern[str]:
    """Compile a wildcard pattern into an anchored regular expression."""
    literal_parts = (re.escape(part) for part in pattern.split(WILDCARD))
    return re.compile(".*".join(literal_parts), re.DOTALL)


def match_account_pattern(account: str, pattern: str) -> bool:
    """True if ``account`` matches ``pattern`` exactly."""
    if WILDCARD not in pattern:
        return account == pattern
    return pattern_regex(pattern).fullmatch(account) is not None


def prefix_filter(pattern: str) -> str:
    """SQL ``LIKE`` prefilter for a pattern (``Assets:p2p:*`` -> ``Assets:p2p:%``)."""
    return like_prefix(pattern)


def filter_matching(postings: Iterable[Posting], pattern: str) -> list[Posting]:
    """Keep only the postings whose account matches ``pattern`` exactly."""
    if WILDCARD not in pattern:
        return [p for p in postings if p.account == pattern]
    regex = pattern_regex(pattern)
    return [p for p in postings if regex.fullmatch(p.account) is not None]

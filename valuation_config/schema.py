"""
Valuation configuration schema.

Defines the human-authored valuation rules that attach a formula to an
account pattern.  YAML documents are parsed into these types by the loader
and validated by the validator before a snapshot becomes active.

Key distinction:
  ValuationRule   = one (account pattern, formula) pair, as authored
  ValuationConfig = the whole immutable snapshot handed to services
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_CURRENCY = "INR"


@dataclass(frozen=True)
class ValuationRule:
    """
    A user-defined formula for valuing postings of matching accounts.

    ``account`` may contain the wildcard marker ``*``.  ``note_contains``
    restricts the rule to postings whose transaction note contains the
    given text; an empty value means no restriction.
    """

    name: str
    account: str
    formula: str
    note_contains: str = ""

    def to_dict(self) -> dict[str, str]:
        data = {"name": self.name, "account": self.account, "formula": self.formula}
        if self.note_contains:
            data["note_contains"] = self.note_contains
        return data


@dataclass(frozen=True)
class ValuationConfig:
    """Immutable snapshot of the valuation configuration."""

    default_currency: str = DEFAULT_CURRENCY
    rules: tuple[ValuationRule, ...] = ()
    checksum: str = ""
    source: str = ""

    @property
    def rule_count(self) -> int:
        return len(self.rules)

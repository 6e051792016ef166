"""
Validation for valuation configuration.

Checks a parsed ``ValuationConfig`` before it can become the active
snapshot.  Every formula is compiled and run against the sample context, so
a rule that cannot possibly evaluate is caught at load time rather than on
the first dashboard request.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from valuation_engines.formula.validation import check_formula
from valuation_config.schema import ValuationConfig


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` is True only when ``errors`` is empty.  Warnings do not
    block loading but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_valuation_config(config: ValuationConfig) -> ConfigValidationResult:
    """Validate every rule of ``config``."""
    result = ConfigValidationResult()

    if not config.default_currency:
        result.add_error("default_currency must not be empty")

    for index, rule in enumerate(config.rules, start=1):
        label = f"rule {index} ({rule.name!r})" if rule.name else f"rule {index}"
        if not rule.name:
            result.add_error(f"{label}: name must not be empty")
        if not rule.account:
            result.add_error(f"{label}: account pattern must not be empty")
        if not rule.formula:
            result.add_error(f"{label}: formula must not be empty")
            continue
        check = check_formula(rule.formula)
        if not check.ok:
            result.add_error(f"{label}: {check.error}")

    names = Counter(rule.name for rule in config.rules if rule.name)
    for name, count in sorted(names.items()):
        if count > 1:
            result.add_warning(f"rule name {name!r} is used {count} times")

    selectors = Counter(
        (rule.account, rule.note_contains) for rule in config.rules if rule.account
    )
    for (account, note_filter), count in sorted(selectors.items()):
        if count > 1:
            result.add_warning(
                f"account pattern {account!r} (note filter {note_filter!r}) appears in "
                f"{count} rules; only the first one is ever applied"
            )

    return result

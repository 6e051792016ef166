"""
valuation_services.valuation_service -- Formula-based valuation of postings.

Responsibility:
    Find the valuation rule that applies to a posting, evaluate its formula
    at an instant, and fall back to the raw posting amount when the formula
    fails.  Also serves the interactive paths: validating a formula,
    validating every configured rule, and previewing a formula against
    sample data.

Architecture position:
    Services -- orchestration over engines + config.
    Rules come from a ``RuleSource`` (normally ``ValuationConfigStore``),
    read once per call so a concurrent reload is never observed halfway.

Invariants enforced:
    - First match wins: rules are tried in configuration order.
    - ``note_contains`` only restricts a rule when it is non-empty.
    - Loan valuation never raises for a bad formula: the posting's raw
      amount is used and ``valuation_formula_failed`` is logged.
    - Interactive paths report failures as one descriptive message.

Failure modes:
    - ``evaluate`` raises FormulaError subclasses; ``market_value`` does not.

Usage:
    from valuation_config import ValuationConfigStore, get_active_config
    from valuation_kernel.domain.clock import SystemClock

    store = ValuationConfigStore(get_active_config("valuations.yaml"))
    service = ValuationService(store, SystemClock(), store.default_currency)
    value, applied = service.market_value(posting, service.clock.end_of_today())
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Protocol

from valuation_config.schema import DEFAULT_CURRENCY, ValuationRule
from valuation_engines.accounts import match_account_pattern
from valuation_engines.formula import (
    build_context,
    compile_formula,
    evaluate_numeric,
    sample_context,
    to_money,
)
from valuation_engines.formula.validation import FormulaValidation, check_formula
from valuation_kernel.domain.clock import Clock
from valuation_kernel.domain.values import Posting
from valuation_kernel.exceptions import FormulaError, FormulaSyntaxError
from valuation_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.valuation")

PREVIEW_ACCOUNT = "Assets:Preview"


class RuleSource(Protocol):
    """Provides the current immutable snapshot of valuation rules."""

    def current_valuation_rules(self) -> Sequence[ValuationRule]: ...


@dataclass(frozen=True)
class RuleValidationResult:
    name: str
    account: str
    formula: str
    valid: bool
    error: str = ""


@dataclass(frozen=True)
class ValuationPreview:
    """Outcome of running a formula against sample data."""

    formula: str
    sample_data: dict[str, Any] = field(default_factory=dict)
    result: float | None = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error


def rule_applies(rule: ValuationRule, posting: Posting) -> bool:
    """True if ``rule`` values ``posting``."""
    if not rule.account or not match_account_pattern(posting.account, rule.account):
        return False
    if rule.note_contains and rule.note_contains not in posting.transaction_note:
        return False
    return True


class ValuationService:
    """
    Values postings with user-defined formulas.

    Contract:
        Receives its rule source and clock via constructor injection.
        Holds no mutable state of its own.
    """

    def __init__(
        self,
        rules: RuleSource,
        clock: Clock,
        default_currency: str = DEFAULT_CURRENCY,
    ):
        self.rules = rules
        self.clock = clock
        self.default_currency = default_currency

    def find_rule(
        self,
        posting: Posting,
        rules: Sequence[ValuationRule] | None = None,
    ) -> ValuationRule | None:
        """First rule, in configuration order, that applies to ``posting``."""
        if rules is None:
            rules = self.rules.current_valuation_rules()
        for rule in rules:
            if rule_applies(rule, posting):
                return rule
        return None

    def evaluate(self, rule: ValuationRule, posting: Posting, at: datetime) -> Decimal:
        """
        Value ``posting`` with ``rule``'s formula at instant ``at``.

        Raises:
            FormulaError: compilation or evaluation failed, or the formula
                did not return a number.
        """
        program = compile_formula(rule.formula)
        value = evaluate_numeric(program, build_context(posting, at))
        return to_money(value)

    def market_value(
        self,
        posting: Posting,
        at: datetime,
        rules: Sequence[ValuationRule] | None = None,
    ) -> tuple[Decimal, bool]:
        """
        Current value of ``posting`` and whether a rule was applied.

        No matching rule gives ``(amount, False)``.  A failing formula gives
        ``(amount, True)`` and logs ``valuation_formula_failed``.
        """
        rule = self.find_rule(posting, rules)
        if rule is None:
            return posting.amount, False
        try:
            return self.evaluate(rule, posting, at), True
        except FormulaError as e:
            with LogContext.bind(rule_name=rule.name, account=posting.account):
                logger.warning(
                    "valuation_formula_failed",
                    extra={
                        "formula": rule.formula,
                        "posting_date": posting.date,
                        "fallback_amount": posting.amount,
                        "error_code": e.code,
                        "error": str(e),
                    },
                )
            return posting.amount, True

    def validate_formula(self, source: str) -> FormulaValidation:
        """Check ``source`` against the sample context."""
        return check_formula(source, sample_context(commodity=self.default_currency))

    def validate_rules(self) -> list[RuleValidationResult]:
        """Validate the formula of every configured rule."""
        results = []
        for rule in self.rules.current_valuation_rules():
            check = self.validate_formula(rule.formula)
            results.append(RuleValidationResult(
                name=rule.name,
                account=rule.account,
                formula=rule.formula,
                valid=check.ok,
                error=check.error,
            ))
        invalid = sum(1 for r in results if not r.valid)
        logger.info(
            "valuation_rules_validated",
            extra={"rule_count": len(results), "invalid_count": invalid},
        )
        return results

    def preview_formula(
        self,
        source: str,
        amount: float,
        days_held: float,
        note: str = "",
    ) -> ValuationPreview:
        """Run ``source`` against a context built from the given sample values."""
        now = self.clock.now()
        try:
            start = (now - timedelta(days=days_held)).date()
        except (OverflowError, ValueError):
            start = now.date()
        context = sample_context(
            amount,
            days_held,
            note,
            account=PREVIEW_ACCOUNT,
            commodity=self.default_currency,
            on=start,
        )
        sample_data = {
            "amount": context.amount,
            "days_held": context.days_held,
            "months_held": context.months_held,
            "years_held": context.years_held,
            "note": context.note,
        }
        try:
            program = compile_formula(source)
        except FormulaSyntaxError as e:
            return ValuationPreview(source, sample_data, error=f"Compile error: {e}")
        try:
            result = evaluate_numeric(program, context)
        except FormulaError as e:
            return ValuationPreview(source, sample_data, error=f"Evaluation error: {e}")
        return ValuationPreview(source, sample_data, result=result)

"""
Evaluation context for valuation formulas.

An ``EvaluationContext`` is built fresh for every evaluation from one posting
and the evaluation instant.  It is the only source of variable values a
formula can see.

Variables:
    amount       posting amount in the default currency (number)
    quantity     number of units (number)
    date         posting date (date)
    days_held    fractional days between the posting date and the instant
    months_held  days_held / 30.44
    years_held   days_held / 365.25
    note         the transaction note (string)
    account      account name (string)
    commodity    commodity code (string)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time
from types import MappingProxyType

from valuation_kernel.domain.values import Posting
from valuation_engines.formula.nodes import ValueType

DAYS_PER_MONTH = 30.44
DAYS_PER_YEAR = 365.25
SECONDS_PER_DAY = 86400.0

VALUATION_VARIABLES: Mapping[str, ValueType] = MappingProxyType({
    "amount": ValueType.NUMBER,
    "quantity": ValueType.NUMBER,
    "date": ValueType.DATE,
    "days_held": ValueType.NUMBER,
    "months_held": ValueType.NUMBER,
    "years_held": ValueType.NUMBER,
    "note": ValueType.STRING,
    "account": ValueType.STRING,
    "commodity": ValueType.STRING,
})

VARIABLE_DESCRIPTIONS: Mapping[str, str] = MappingProxyType({
    "amount": "Posting amount in default currency",
    "quantity": "Number of units",
    "date": "Posting date",
    "days_held": "Days since posting date",
    "months_held": "Months since posting date",
    "years_held": "Years since posting date",
    "note": "Transaction note",
    "account": "Account name",
    "commodity": "Commodity name",
})

SAMPLE_AMOUNT = 10000.0
SAMPLE_DAYS_HELD = 30.0
SAMPLE_NOTE = "sample note Int:12 Per:M"
SAMPLE_ACCOUNT = "Assets:Test"
SAMPLE_COMMODITY = "INR"
SAMPLE_DATE = date(2024, 1, 1)


@dataclass(frozen=True, slots=True)
class EvaluationContext:
    """Variable values for one formula evaluation."""

    amount: float
    quantity: float
    date: date
    days_held: float
    months_held: float
    years_held: float
    note: str
    account: str
    commodity: str

    def lookup(self, name: str) -> float | str | date:
        """Value of a formula variable.  Raises KeyError for unknown names."""
        if name not in VALUATION_VARIABLES:
            raise KeyError(name)
        return getattr(self, name)


def held_days(start: date, instant: datetime) -> float:
    """Fractional days from midnight of ``start`` to ``instant``."""
    midnight = datetime.combine(start, time.min, tzinfo=instant.tzinfo)
    return (instant - midnight).total_seconds() / SECONDS_PER_DAY


def _context(
    *,
    amount: float,
    quantity: float,
    on: date,
    days_held: float,
    note: str,
    account: str,
    commodity: str,
) -> EvaluationContext:
    return EvaluationContext(
        amount=amount,
        quantity=quantity,
        date=on,
        days_held=days_held,
        months_held=days_held / DAYS_PER_MONTH,
        years_held=days_held / DAYS_PER_YEAR,
        note=note,
        account=account,
        commodity=commodity,
    )


def build_context(posting: Posting, evaluation_instant: datetime) -> EvaluationContext:
    """
    Context for valuing ``posting`` at ``evaluation_instant``.

    Money values are widened to double precision here.  ``note`` is the
    transaction note, not the posting note.
    """
    return _context(
        amount=float(posting.amount),
        quantity=float(posting.quantity),
        on=posting.date,
        days_held=held_days(posting.date, evaluation_instant),
        note=posting.transaction_note,
        account=posting.account,
        commodity=posting.commodity,
    )


def sample_context(
    amount: float = SAMPLE_AMOUNT,
    days_held: float = SAMPLE_DAYS_HELD,
    note: str = SAMPLE_NOTE,
    *,
    account: str = SAMPLE_ACCOUNT,
    commodity: str = SAMPLE_COMMODITY,
    quantity: float = 1.0,
    on: date = SAMPLE_DATE,
) -> EvaluationContext:
    """Synthetic context used to validate and preview formulas."""
    return _context(
        amount=float(amount),
        quantity=float(quantity),
        on=on,
        days_held=float(days_held),
        note=note,
        account=account,
        commodity=commodity,
    )

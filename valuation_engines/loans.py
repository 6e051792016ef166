"""
Module: valuation_engines.loans
Responsibility:
    Fold the postings of one account into a ``Loan``: principal, current
    value, gain, declared terms, maturity and lifecycle status.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The current value of each posting is supplied by the caller through
    ``value_of``; this module never evaluates formulas itself.

Invariants enforced:
    - Purity: status is a function of (postings, now) only.  Loans are
      recomputed on every call and never stored.
    - principal = sum of strictly positive posting amounts.
    - Closed loans report the raw posting sum as current value.  Their gain
      is 0 when that raw balance is exactly zero.
    - percent_complete is within [0, 100].

Lifecycle:
    closed    any note says "closed"/"settled", or the valued balance <= 0
    overdue   target duration set and maturity is at least a day past
    maturing  target duration set and maturity within MATURING_WINDOW_DAYS
    active    otherwise (always, when no target duration is declared)

Usage:
    from valuation_engines.loans import LoanDeriver

    loan = LoanDeriver().derive(
        account="Assets:p2p:Lender1",
        postings=postings,
        now=clock.end_of_today(),
        value_of=lambda p: p.amount,
        currency="INR",
    )
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum

from valuation_kernel.domain.values import Posting
from valuation_kernel.logging_config import get_logger
from valuation_engines.formula.context import held_days
from valuation_engines.notes import has_close_marker, parse_loan_terms
from valuation_engines.tracer import traced_engine

logger = get_logger("engines.loans")

MATURING_WINDOW_DAYS = 30

ZERO = Decimal("0")


class LoanStatus(str, Enum):
    """Lifecycle status of a loan."""

    ACTIVE = "active"
    MATURING = "maturing"
    OVERDUE = "overdue"
    CLOSED = "closed"

    @property
    def rank(self) -> int:
        """Display order: overdue first, closed last."""
        return _STATUS_RANK[self]


_STATUS_RANK: dict[LoanStatus, int] = {
    LoanStatus.OVERDUE: 0,
    LoanStatus.MATURING: 1,
    LoanStatus.ACTIVE: 2,
    LoanStatus.CLOSED: 3,
}


@dataclass(frozen=True)
class Loan:
    """
    One account viewed as a loan at a given instant.

    Contract:
        Derived value.  Never persisted; rebuilt from postings on every read.
    Guarantees:
        - gain_amount == current_value - principal, except for a closed loan
          whose raw balance is exactly zero (gain_amount == 0).
        - maturity_date is None unless a target duration was declared and
          the loan is not closed.
    """

    account: str
    principal: Decimal
    current_value: Decimal
    gain_amount: Decimal
    interest_rate: float
    period: str
    start_date: date
    maturity_date: date | None
    days_to_maturity: int
    days_held: int
    status: LoanStatus
    risk_level: str
    percent_complete: float
    postings: tuple[Posting, ...]
    currency: str = ""

    @property
    def is_closed(self) -> bool:
        return self.status is LoanStatus.CLOSED

    @property
    def days_overdue(self) -> int:
        """Days past maturity (0 unless overdue)."""
        if self.status is not LoanStatus.OVERDUE:
            return 0
        return -self.days_to_maturity


class LoanDeriver:
    """
    Derive loans from postings.

    Contract:
        Pure -- no I/O, no clock access.  ``now`` and ``value_of`` are
        parameters.
    Non-goals:
        - Does not select postings for an account; callers group postings
          by account before calling ``derive``.
    """

    def __init__(self, maturing_window_days: int = MATURING_WINDOW_DAYS):
        self.maturing_window_days = maturing_window_days

    @traced_engine("loan_deriver", "1.0", fingerprint_fields=("account", "postings", "now"))
    def derive(
        self,
        account: str,
        postings: Sequence[Posting],
        now: datetime,
        value_of: Callable[[Posting], Decimal],
        currency: str = "",
    ) -> Loan | None:
        """
        Build the loan for ``account`` at instant ``now``.

        Args:
            account: Account name the postings belong to.
            postings: All postings of the account, in any order.
            now: Evaluation instant.
            value_of: Current value of one posting (formula or raw amount).
            currency: Currency code recorded on the loan.

        Returns:
            The loan, or None when there are no postings.
        """
        if not postings:
            return None

        ordered = tuple(sorted(postings, key=lambda p: p.date))
        start_date = ordered[0].date

        explicit_close = any(
            has_close_marker(p.transaction_note, p.note) for p in ordered
        )
        principal = sum((p.amount for p in ordered if p.is_positive), ZERO)
        raw_balance = sum((p.amount for p in ordered), ZERO)

        if explicit_close:
            current_value = raw_balance
        else:
            current_value = sum((value_of(p) for p in ordered), ZERO)
        zero_balance = current_value <= ZERO

        terms = parse_loan_terms(ordered[0].transaction_note)
        days_held = int(held_days(start_date, now))

        maturity_date: date | None = None
        days_to_maturity = 0
        percent_complete = 0.0

        if explicit_close or zero_balance:
            status = LoanStatus.CLOSED
            percent_complete = 100.0
            current_value = raw_balance
        elif terms.target_days > 0:
            maturity_date = start_date + timedelta(days=terms.target_days)
            days_to_maturity = -int(held_days(maturity_date, now))
            percent_complete = _clamp_percent(days_held / terms.target_days * 100)
            if days_to_maturity < 0:
                status = LoanStatus.OVERDUE
            elif days_to_maturity <= self.maturing_window_days:
                status = LoanStatus.MATURING
            else:
                status = LoanStatus.ACTIVE
        else:
            status = LoanStatus.ACTIVE

        gain_amount = current_value - principal
        if status is LoanStatus.CLOSED and raw_balance == ZERO:
            gain_amount = ZERO

        logger.debug(
            "loan_derived",
            extra={
                "account": account,
                "status": status.value,
                "principal": principal,
                "current_value": current_value,
                "days_held": days_held,
                "days_to_maturity": days_to_maturity,
                "explicit_close": explicit_close,
                "posting_count": len(ordered),
            },
        )

        return Loan(
            account=account,
            principal=principal,
            current_value=current_value,
            gain_amount=gain_amount,
            interest_rate=terms.interest_rate,
            period=terms.period,
            start_date=start_date,
            maturity_date=maturity_date,
            days_to_maturity=days_to_maturity,
            days_held=days_held,
            status=status,
            risk_level=terms.risk_level,
            percent_complete=percent_complete,
            postings=ordered,
            currency=currency,
        )


def _clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


def sort_loans(loans: Iterable[Loan]) -> list[Loan]:
    """Order loans by status rank, then account name."""
    return sorted(loans, key=lambda loan: (loan.status.rank, loan.account))

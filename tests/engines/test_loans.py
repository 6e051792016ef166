"""
Tests for the loan lifecycle deriver.

Covers:
- Status transitions: active, maturing, overdue, closed
- Principal, current value and gain rules (including closed loans)
- Terms read from the earliest posting's transaction note
- percent_complete bounds and ordering of loans
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from valuation_engines.loans import Loan, LoanDeriver, LoanStatus, sort_loans

# End of 2024-03-31 (UTC): the instant a dashboard computed "today" uses.
NOW = datetime(2024, 3, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)
ACCOUNT = "Assets:p2p:Lender1"


def raw_amount(posting):
    return posting.amount


def derive(postings, value_of=raw_amount, deriver=None, account=ACCOUNT):
    deriver = deriver or LoanDeriver()
    return deriver.derive(
        account=account,
        postings=postings,
        now=NOW,
        value_of=value_of,
        currency="INR",
    )


class TestActiveLoans:
    """Open loans with and without a target duration."""

    def test_no_target_is_active(self, make_posting):
        loan = derive([make_posting(amount="10000", note="Int:12 Per:M")])
        assert loan.status is LoanStatus.ACTIVE
        assert loan.maturity_date is None
        assert loan.days_to_maturity == 0
        assert loan.percent_complete == 0.0
        assert loan.days_held == 90
        assert loan.interest_rate == 12.0
        assert loan.period == "M"
        assert loan.currency == "INR"

    def test_far_target_is_active(self, make_posting):
        loan = derive([make_posting(note="Int:12 Target:1yr")])
        assert loan.status is LoanStatus.ACTIVE
        assert loan.maturity_date == date(2024, 12, 31)
        assert loan.days_to_maturity == 274
        assert loan.percent_complete == pytest.approx(90 / 365 * 100)

    def test_value_of_drives_current_value(self, make_posting):
        loan = derive([make_posting(amount="10000")], value_of=lambda p: p.amount * 2)
        assert loan.principal == Decimal("10000")
        assert loan.current_value == Decimal("20000")
        assert loan.gain_amount == Decimal("10000")

    def test_principal_counts_only_positive_postings(self, make_posting):
        postings = [
            make_posting(amount="10000", on=date(2024, 1, 1)),
            make_posting(amount="5000", on=date(2024, 2, 1)),
            make_posting(amount="-3000", on=date(2024, 3, 1)),
        ]
        loan = derive(postings)
        assert loan.principal == Decimal("15000")
        assert loan.current_value == Decimal("12000")
        assert loan.gain_amount == Decimal("-3000")

    def test_empty_postings(self):
        assert derive([]) is None


class TestMaturity:
    """Maturing and overdue classification."""

    def test_maturing_within_window(self, make_posting):
        loan = derive([make_posting(note="Target:100d")])
        assert loan.status is LoanStatus.MATURING
        assert loan.maturity_date == date(2024, 4, 10)
        assert loan.days_to_maturity == 9

    def test_maturity_today_is_maturing(self, make_posting):
        loan = derive([make_posting(note="Target:3mo")])
        assert loan.maturity_date == date(2024, 3, 31)
        assert loan.days_to_maturity == 0
        assert loan.status is LoanStatus.MATURING
        assert loan.percent_complete == 100.0

    def test_overdue(self, make_posting):
        loan = derive([make_posting(on=date(2023, 12, 1), note="Target:3mo")])
        assert loan.status is LoanStatus.OVERDUE
        assert loan.maturity_date == date(2024, 2, 29)
        assert loan.days_to_maturity == -31
        assert loan.days_overdue == 31

    def test_percent_complete_clamped(self, make_posting):
        loan = derive([make_posting(on=date(2023, 12, 1), note="Target:3mo")])
        assert loan.days_held == 121
        assert loan.percent_complete == 100.0

    def test_custom_window(self, make_posting):
        loan = derive([make_posting(note="Target:100d")], deriver=LoanDeriver(maturing_window_days=5))
        assert loan.status is LoanStatus.ACTIVE

    def test_days_overdue_zero_when_not_overdue(self, make_posting):
        loan = derive([make_posting(note="Target:100d")])
        assert loan.days_overdue == 0


class TestClosedLoans:
    """Explicit closure markers and zero balances."""

    def test_settled_marker_with_zero_balance(self, make_posting):
        postings = [
            make_posting(amount="10000", on=date(2024, 1, 1), note="Int:12 Target:3mo"),
            make_posting(amount="-10000", on=date(2024, 3, 1), note="settled"),
        ]
        loan = derive(postings)
        assert loan.status is LoanStatus.CLOSED
        assert loan.is_closed
        assert loan.current_value == Decimal("0")
        assert loan.gain_amount == Decimal("0")
        assert loan.percent_complete == 100.0
        assert loan.maturity_date is None
        assert loan.days_to_maturity == 0

    def test_marker_is_case_insensitive_and_checks_posting_note(self, make_posting):
        postings = [
            make_posting(amount="10000"),
            make_posting(amount="-10500", on=date(2024, 3, 1), posting_note="Loan CLOSED"),
        ]
        assert derive(postings).status is LoanStatus.CLOSED

    def test_explicit_close_uses_raw_sum(self, make_posting):
        """Closed loans report the raw balance, ignoring value_of."""
        postings = [
            make_posting(amount="10000"),
            make_posting(amount="-10500", on=date(2024, 3, 1), note="closed"),
        ]
        loan = derive(postings, value_of=lambda p: Decimal("999999"))
        assert loan.current_value == Decimal("-500")
        assert loan.gain_amount == Decimal("-10500")

    def test_zero_valued_balance_closes(self, make_posting):
        postings = [
            make_posting(amount="10000"),
            make_posting(amount="-10000", on=date(2024, 2, 1)),
        ]
        loan = derive(postings)
        assert loan.status is LoanStatus.CLOSED
        assert loan.gain_amount == Decimal("0")

    def test_negative_valued_balance_closes_with_raw_value(self, make_posting):
        postings = [make_posting(amount="10000")]
        loan = derive(postings, value_of=lambda p: Decimal("-1"))
        assert loan.status is LoanStatus.CLOSED
        assert loan.current_value == Decimal("10000")
        assert loan.gain_amount == Decimal("0")


class TestTermsAndOrdering:
    """Terms come from the earliest posting."""

    def test_terms_from_earliest_posting(self, make_posting):
        postings = [
            make_posting(amount="5000", on=date(2024, 2, 1), note="Int:5 Risk:low"),
            make_posting(amount="10000", on=date(2024, 1, 1), note="Int:12 Per:M Risk:h"),
        ]
        loan = derive(postings)
        assert loan.start_date == date(2024, 1, 1)
        assert loan.interest_rate == 12.0
        assert loan.risk_level == "high"
        assert [p.date for p in loan.postings] == [date(2024, 1, 1), date(2024, 2, 1)]

    def test_unknown_risk(self, make_posting):
        assert derive([make_posting(note="Int:12")]).risk_level == "unknown"

    def test_derivation_is_pure(self, make_posting):
        postings = [make_posting(note="Int:12 Target:100d")]
        assert derive(postings) == derive(postings)

    def test_sort_loans(self, make_posting):
        loans = [
            derive([make_posting(account="B", note="Target:1yr")], account="B"),
            derive([make_posting(account="C", note="closed")], account="C"),
            derive([make_posting(account="A", note="Target:1yr")], account="A"),
            derive([make_posting(account="D", on=date(2023, 1, 1), note="Target:1mo")], account="D"),
            derive([make_posting(account="E", note="Target:100d")], account="E"),
        ]
        ordered = [loan.account for loan in sort_loans(loans)]
        assert ordered == ["D", "E", "A", "B", "C"]

    def test_status_rank(self):
        ranks = [status.rank for status in (LoanStatus.OVERDUE, LoanStatus.MATURING, LoanStatus.ACTIVE, LoanStatus.CLOSED)]
        assert ranks == [0, 1, 2, 3]


class TestTracing:
    """Derivations emit engine traces and debug records."""

    def test_trace_emitted(self, make_posting, captured_logs):
        derive([make_posting(note="Target:100d")])
        logs = captured_logs()
        traces = [r for r in logs if r["message"] == "VALUATION_ENGINE_TRACE"]
        assert traces
        assert traces[-1]["engine_name"] == "loan_deriver"
        assert len(traces[-1]["input_fingerprint"]) == 16
        derived = [r for r in logs if r["message"] == "loan_derived"]
        assert derived[-1]["status"] == "maturing"

    def test_loan_is_frozen(self, make_posting):
        loan = derive([make_posting()])
        assert isinstance(loan, Loan)
        with pytest.raises(AttributeError):
            loan.status = LoanStatus.CLOSED

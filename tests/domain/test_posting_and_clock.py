"""
Tests for the Posting value object and the clock abstraction.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal

import pytest

from valuation_kernel.domain.clock import DeterministicClock, SystemClock
from valuation_kernel.domain.values import Posting


class TestPosting:
    """Immutable posting value object."""

    def test_amounts_coerced_to_decimal(self):
        posting = Posting(account="Assets:A", amount="10.50", date=date(2024, 1, 1), quantity=2)
        assert posting.amount == Decimal("10.50")
        assert posting.quantity == Decimal("2")

    def test_float_amount_rejected(self):
        with pytest.raises(ValueError, match="float"):
            Posting(account="Assets:A", amount=10.5, date=date(2024, 1, 1))

    def test_invalid_amount_rejected(self):
        with pytest.raises(ValueError, match="Invalid amount"):
            Posting(account="Assets:A", amount="ten", date=date(2024, 1, 1))

    def test_empty_account_rejected(self):
        with pytest.raises(ValueError, match="account"):
            Posting(account="", amount=Decimal("1"), date=date(2024, 1, 1))

    def test_frozen(self):
        posting = Posting(account="Assets:A", amount=Decimal("1"), date=date(2024, 1, 1))
        with pytest.raises(AttributeError):
            posting.amount = Decimal("2")

    def test_negative_amount_is_not_positive(self):
        posting = Posting(
            account="Assets:A",
            amount=Decimal("-1"),
            date=date(2024, 1, 1),
            note="posting",
            transaction_note="txn",
        )
        assert not posting.is_positive


class TestClock:
    """Deterministic and system clocks."""

    def test_deterministic_clock(self):
        start = datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc)
        clock = DeterministicClock(start)
        assert clock.now() == start
        clock.advance_days(1)
        assert clock.now() == datetime(2024, 4, 1, 12, 0, tzinfo=timezone.utc)
        clock.set_time(start)
        assert clock.now() == start

    def test_end_of_today(self):
        clock = DeterministicClock(datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc))
        end = clock.end_of_today()
        assert end.date() == date(2024, 3, 31)
        assert end.time() == time.max
        assert end.tzinfo is timezone.utc

    def test_system_clock_is_aware(self):
        assert SystemClock().now().tzinfo is not None

"""
Pytest fixtures for the valuation test suite.

Provides:
- Structured logging configured once per session, with LogContext cleared
  between tests and a ``captured_logs`` fixture
- A deterministic clock
- An in-memory SQLite session for selector tests
- Posting and rule factories
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from valuation_config import ValuationConfigStore, build_config
from valuation_config.schema import ValuationRule
from valuation_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from valuation_kernel.domain.clock import DeterministicClock
from valuation_kernel.domain.values import Posting
from valuation_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

# Fixed "today" used across service tests: 2024-03-31 12:00 UTC.
TODAY = datetime(2024, 3, 31, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture valuation_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            service.market_value(posting, at)
            logs = captured_logs()
            assert any(r["message"] == "valuation_formula_failed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("valuation_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(TODAY)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_session():
    """Session bound to a fresh in-memory SQLite database."""
    init_engine_from_url("sqlite://")
    create_tables()
    session = get_session()
    yield session
    session.close()
    reset_engine()


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_posting():
    """
    Build a Posting with sensible defaults.

    Usage::

        p = make_posting("Assets:p2p:Lender1", "10000", date(2024, 1, 1), note="Int:12")
    """

    def _make(
        account: str = "Assets:p2p:Lender1",
        amount: str | int | Decimal = "10000",
        on: date = date(2024, 1, 1),
        note: str = "",
        posting_note: str = "",
        quantity: str | int | Decimal = "1",
        commodity: str = "INR",
    ) -> Posting:
        return Posting(
            account=account,
            amount=Decimal(str(amount)),
            date=on,
            quantity=Decimal(str(quantity)),
            note=posting_note,
            transaction_note=note,
            commodity=commodity,
        )

    return _make


@pytest.fixture
def make_store():
    """Build a ValuationConfigStore from (name, account, formula[, note_contains]) tuples."""

    def _make(*rules: tuple, default_currency: str = "INR") -> ValuationConfigStore:
        built = [
            ValuationRule(name=r[0], account=r[1], formula=r[2], note_contains=r[3] if len(r) > 3 else "")
            for r in rules
        ]
        return ValuationConfigStore(build_config(built, default_currency=default_currency))

    return _make

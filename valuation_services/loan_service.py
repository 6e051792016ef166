"""
valuation_services.loan_service -- Loan dashboard over formula-valued postings.

Responsibility:
    Turn the configured valuation rules and the stored postings into the
    loan list, summary and alerts shown on the loans dashboard.

Architecture position:
    Services -- orchestration over engines + config + storage.
    Postings come from a ``PostingSource`` (normally ``PostingSelector``);
    rules come from a ``RuleSource``.

Derivation per request:
    1. Read one rule snapshot and fix ``now`` = end of today.
    2. For each rule with a non-empty account pattern, fetch candidate
       postings with the coarse storage filter, keep exact matches, and
       group them by account.
    3. Derive one loan per account.  An account produced by an earlier rule
       is skipped, so overlapping patterns never duplicate a loan.
    4. Sort by status rank, then account.

Invariants enforced:
    - Nothing is cached or persisted; every call recomputes from postings.
    - A failure deriving one account is logged and that account is left
      out; it never aborts the dashboard.

Usage:
    service = LoanService(PostingSelector(session), store, valuation, clock)
    dashboard = service.dashboard()
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from valuation_config.schema import ValuationRule
from valuation_engines.accounts import filter_matching
from valuation_engines.aggregation import (
    LoanAlert,
    LoanSummary,
    build_alerts,
    summarize_loans,
)
from valuation_engines.loans import Loan, LoanDeriver, sort_loans
from valuation_kernel.domain.clock import Clock
from valuation_kernel.domain.values import Posting
from valuation_kernel.exceptions import ValuationKernelError
from valuation_kernel.logging_config import LogContext, get_logger
from valuation_services.valuation_service import RuleSource, ValuationService

logger = get_logger("services.loans")


class PostingSource(Protocol):
    """Coarse posting lookup by account pattern (may return a superset)."""

    def postings_matching(self, pattern: str) -> Sequence[Posting]: ...


@dataclass(frozen=True)
class LoanDashboard:
    """Loans, summary and alerts computed from one loan list."""

    loans: tuple[Loan, ...]
    summary: LoanSummary
    alerts: tuple[LoanAlert, ...]


class LoanService:
    """
    Builds loans from postings on every call.

    Contract:
        Receives all collaborators via constructor injection.  Holds no
        per-request state.
    """

    def __init__(
        self,
        postings: PostingSource,
        rules: RuleSource,
        valuation: ValuationService,
        clock: Clock,
        deriver: LoanDeriver | None = None,
    ):
        self.postings = postings
        self.rules = rules
        self.valuation = valuation
        self.clock = clock
        self.deriver = deriver or LoanDeriver()

    def list_loans(self) -> list[Loan]:
        """All loans, overdue first, then maturing, active and closed."""
        rules = tuple(self.rules.current_valuation_rules())
        now = self.clock.end_of_today()
        loans: list[Loan] = []
        seen: set[str] = set()

        for rule in rules:
            if not rule.account:
                continue
            candidates = self.postings.postings_matching(rule.account)
            by_account = _group_by_account(filter_matching(candidates, rule.account))
            for account, postings in by_account.items():
                if account in seen:
                    continue
                seen.add(account)
                loan = self._derive(account, postings, now, rules)
                if loan is not None:
                    loans.append(loan)

        logger.info(
            "loans_listed",
            extra={"loan_count": len(loans), "rule_count": len(rules), "now": now},
        )
        return sort_loans(loans)

    def loan_summary(self) -> LoanSummary:
        return summarize_loans(self.list_loans(), currency=self.valuation.default_currency)

    def loan_alerts(self) -> list[LoanAlert]:
        return build_alerts(self.list_loans())

    def dashboard(self) -> LoanDashboard:
        """Loans, summary and alerts from a single derivation pass."""
        loans = self.list_loans()
        return LoanDashboard(
            loans=tuple(loans),
            summary=summarize_loans(loans, currency=self.valuation.default_currency),
            alerts=tuple(build_alerts(loans)),
        )

    def _derive(
        self,
        account: str,
        postings: list[Posting],
        now: datetime,
        rules: Sequence[ValuationRule],
    ) -> Loan | None:
        def value_of(posting: Posting):
            value, _ = self.valuation.market_value(posting, now, rules)
            return value

        with LogContext.bind(account=account):
            try:
                return self.deriver.derive(
                    account=account,
                    postings=postings,
                    now=now,
                    value_of=value_of,
                    currency=self.valuation.default_currency,
                )
            except (ValuationKernelError, ArithmeticError, ValueError) as e:
                logger.error(
                    "loan_derivation_failed",
                    extra={"posting_count": len(postings), "error": str(e)},
                    exc_info=True,
                )
                return None


def _group_by_account(postings: Sequence[Posting]) -> dict[str, list[Posting]]:
    grouped: dict[str, list[Posting]] = {}
    for posting in postings:
        grouped.setdefault(posting.account, []).append(posting)
    return grouped

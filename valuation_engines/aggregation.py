"""
Module: valuation_engines.aggregation
Responsibility:
    Summarize a list of loans (totals, counts by status and by risk level)
    and produce alert records for loans that need attention.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Totals are Decimal sums of the loans' own figures.
    - ``by_status`` and ``by_risk`` contain only keys that were observed;
      there is no zero-filling for absent categories.
    - Alerts are ordered by severity (high before medium).  Alerts of the
      same severity keep the order of the input loans.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from valuation_kernel.logging_config import get_logger
from valuation_engines.loans import Loan, LoanStatus
from valuation_engines.tracer import traced_engine

logger = get_logger("engines.aggregation")

ZERO = Decimal("0")

SEVERITY_HIGH = "high"
SEVERITY_MEDIUM = "medium"

_SEVERITY_RANK: dict[str, int] = {SEVERITY_HIGH: 0, SEVERITY_MEDIUM: 1}


@dataclass(frozen=True)
class StatusSummary:
    count: int = 0
    amount: Decimal = ZERO


@dataclass(frozen=True)
class RiskSummary:
    count: int = 0
    amount: Decimal = ZERO


@dataclass(frozen=True)
class LoanSummary:
    """
    Aggregate figures across all loans.

    ``by_status`` and ``by_risk`` sum principal (not current value).
    """

    total_lent: Decimal
    total_value: Decimal
    total_gain: Decimal
    total_accounts: int
    by_status: dict[LoanStatus, StatusSummary] = field(default_factory=dict)
    by_risk: dict[str, RiskSummary] = field(default_factory=dict)
    currency: str = ""


@dataclass(frozen=True)
class LoanAlert:
    """
    An actionable notice about one loan.

    Exactly one of ``days_overdue`` / ``days_to_maturity`` is meaningful,
    depending on ``type``.
    """

    type: str
    severity: str
    account: str
    message: str
    amount: Decimal
    days_overdue: int = 0
    days_to_maturity: int = 0


@traced_engine("loan_summary", "1.0", fingerprint_fields=("currency",))
def summarize_loans(loans: Sequence[Loan], currency: str = "") -> LoanSummary:
    """Totals plus per-status and per-risk counts and principal sums."""
    total_lent = ZERO
    total_value = ZERO
    total_gain = ZERO
    by_status: dict[LoanStatus, StatusSummary] = {}
    by_risk: dict[str, RiskSummary] = {}

    for loan in loans:
        total_lent += loan.principal
        total_value += loan.current_value
        total_gain += loan.gain_amount

        status = by_status.get(loan.status, StatusSummary())
        by_status[loan.status] = StatusSummary(
            status.count + 1, status.amount + loan.principal
        )
        risk = by_risk.get(loan.risk_level, RiskSummary())
        by_risk[loan.risk_level] = RiskSummary(
            risk.count + 1, risk.amount + loan.principal
        )

    return LoanSummary(
        total_lent=total_lent,
        total_value=total_value,
        total_gain=total_gain,
        total_accounts=len(loans),
        by_status=by_status,
        by_risk=by_risk,
        currency=currency,
    )


def _days(count: int) -> str:
    return f"{count} day" if count == 1 else f"{count} days"


def build_alerts(loans: Iterable[Loan]) -> list[LoanAlert]:
    """One alert per overdue (high) or maturing (medium) loan."""
    alerts: list[LoanAlert] = []
    for loan in loans:
        match loan.status:
            case LoanStatus.OVERDUE:
                alerts.append(LoanAlert(
                    type="overdue",
                    severity=SEVERITY_HIGH,
                    account=loan.account,
                    message=f"Loan overdue by {_days(loan.days_overdue)}",
                    amount=loan.principal,
                    days_overdue=loan.days_overdue,
                ))
            case LoanStatus.MATURING:
                alerts.append(LoanAlert(
                    type="maturing",
                    severity=SEVERITY_MEDIUM,
                    account=loan.account,
                    message=f"Loan matures in {_days(loan.days_to_maturity)}",
                    amount=loan.principal,
                    days_to_maturity=loan.days_to_maturity,
                ))

    alerts.sort(key=lambda alert: _SEVERITY_RANK[alert.severity])
    logger.debug(
        "loan_alerts_built",
        extra={
            "alert_count": len(alerts),
            "high": sum(1 for a in alerts if a.severity == SEVERITY_HIGH),
        },
    )
    return alerts

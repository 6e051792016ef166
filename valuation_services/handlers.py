"""
JSON-ready payloads for the serving layer.

The HTTP framework is not part of this package.  These functions take a
service and a request body (already decoded into a dict) and return plain
dicts that serialize directly to JSON: Decimals become strings, dates
become ISO-8601 strings, enums become their values.

    GET  loans dashboard       -> loans_dashboard(service)
    POST valuation preview     -> preview_valuation(service, body)
    GET  validate valuations   -> validate_valuations(service)
    GET  formula reference     -> formula_reference_payload()
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from valuation_engines.aggregation import LoanAlert, LoanSummary
from valuation_engines.formula import formula_reference
from valuation_engines.loans import Loan
from valuation_kernel.domain.values import Posting
from valuation_kernel.logging_config import get_logger
from valuation_services.loan_service import LoanService
from valuation_services.valuation_service import ValuationService

logger = get_logger("services.handlers")

DEFAULT_PREVIEW_AMOUNT = 10000.0
DEFAULT_PREVIEW_DAYS_HELD = 30.0


def to_json_value(value: Any) -> Any:
    """Convert a value into something ``json.dumps`` accepts."""
    match value:
        case Enum():
            return value.value
        case Decimal():
            return str(value)
        case date():
            return value.isoformat()
        case Mapping():
            return {str(to_json_value(k)): to_json_value(v) for k, v in value.items()}
        case list() | tuple():
            return [to_json_value(v) for v in value]
    return value


def posting_payload(posting: Posting) -> dict[str, Any]:
    return {
        "account": posting.account,
        "amount": str(posting.amount),
        "quantity": str(posting.quantity),
        "date": posting.date.isoformat(),
        "note": posting.note,
        "transaction_note": posting.transaction_note,
        "commodity": posting.commodity,
    }


def loan_payload(loan: Loan) -> dict[str, Any]:
    return {
        "account": loan.account,
        "principal": str(loan.principal),
        "current_value": str(loan.current_value),
        "gain_amount": str(loan.gain_amount),
        "interest_rate": loan.interest_rate,
        "period": loan.period,
        "start_date": loan.start_date.isoformat(),
        "maturity_date": loan.maturity_date.isoformat() if loan.maturity_date else None,
        "days_to_maturity": loan.days_to_maturity,
        "days_held": loan.days_held,
        "status": loan.status.value,
        "risk_level": loan.risk_level,
        "percent_complete": loan.percent_complete,
        "currency": loan.currency,
        "postings": [posting_payload(p) for p in loan.postings],
    }


def summary_payload(summary: LoanSummary) -> dict[str, Any]:
    return {
        "total_lent": str(summary.total_lent),
        "total_value": str(summary.total_value),
        "total_gain": str(summary.total_gain),
        "total_accounts": summary.total_accounts,
        "currency": summary.currency,
        "by_status": {
            status.value: {"count": s.count, "amount": str(s.amount)}
            for status, s in summary.by_status.items()
        },
        "by_risk": {
            risk: {"count": r.count, "amount": str(r.amount)}
            for risk, r in summary.by_risk.items()
        },
    }


def alert_payload(alert: LoanAlert) -> dict[str, Any]:
    payload = {
        "type": alert.type,
        "severity": alert.severity,
        "account": alert.account,
        "message": alert.message,
        "amount": str(alert.amount),
    }
    if alert.days_overdue:
        payload["days_overdue"] = alert.days_overdue
    if alert.days_to_maturity:
        payload["days_to_maturity"] = alert.days_to_maturity
    return payload


def loans_dashboard(service: LoanService) -> dict[str, Any]:
    """``{loans, summary, alerts}`` for the loans page."""
    dashboard = service.dashboard()
    return {
        "loans": [loan_payload(loan) for loan in dashboard.loans],
        "summary": summary_payload(dashboard.summary),
        "alerts": [alert_payload(alert) for alert in dashboard.alerts],
    }


def _number(body: Mapping[str, Any], key: str, default: float) -> float:
    raw = body.get(key)
    if raw is None or isinstance(raw, bool):
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    return value if value else default


def preview_valuation(service: ValuationService, body: Mapping[str, Any]) -> dict[str, Any]:
    """
    Preview a formula from a request body ``{formula, amount, days_held, note}``.

    ``amount`` and ``days_held`` default to 10000 and 30 when omitted or zero.
    """
    formula = str(body.get("formula") or "")
    amount = _number(body, "amount", DEFAULT_PREVIEW_AMOUNT)
    days_held = _number(body, "days_held", DEFAULT_PREVIEW_DAYS_HELD)
    note = str(body.get("note") or "")

    preview = service.preview_formula(formula, amount, days_held, note)
    payload: dict[str, Any] = {
        "formula": preview.formula,
        "sample_data": to_json_value(preview.sample_data),
    }
    if preview.error:
        payload["error"] = preview.error
    else:
        payload["result"] = preview.result
    logger.debug("valuation_previewed", extra={"ok": preview.ok})
    return {"preview": payload}


def validate_valuations(service: ValuationService) -> dict[str, Any]:
    """``{valid, results}`` for every configured rule."""
    results = service.validate_rules()
    return {
        "valid": all(r.valid for r in results),
        "results": [asdict(r) for r in results],
    }


def formula_reference_payload() -> dict[str, Any]:
    """Variables, functions and snippets for the formula editor."""
    reference = formula_reference()
    return {
        "variables": [asdict(v) for v in reference.variables],
        "functions": [asdict(f) for f in reference.functions],
        "snippets": [asdict(s) for s in reference.snippets],
    }

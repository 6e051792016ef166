"""
valuation_services -- orchestration over the valuation engines.

    ValuationService  rule lookup, formula evaluation with fallback,
                      validation and preview
    LoanService       loan list, summary, alerts and dashboard
    handlers          JSON-ready payloads for the serving layer
"""

from valuation_services.loan_service import LoanDashboard, LoanService, PostingSource
from valuation_services.valuation_service import (
    RuleSource,
    RuleValidationResult,
    ValuationPreview,
    ValuationService,
)

__all__ = [
    "LoanDashboard",
    "LoanService",
    "PostingSource",
    "RuleSource",
    "RuleValidationResult",
    "ValuationPreview",
    "ValuationService",
]

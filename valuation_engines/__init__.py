"""
Module: valuation_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines: note parsing, account matching, the formula
    language, loan derivation and aggregation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import valuation_kernel (domain values, logging, exceptions).
    MUST NOT import valuation_config or valuation_services.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      The evaluation instant is always a parameter.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from valuation_engines import LoanDeriver, compile_formula, match_account_pattern
"""

from valuation_kernel.logging_config import get_logger

logger = get_logger("engines")

from valuation_engines.accounts import (  # noqa: E402
    WILDCARD,
    filter_matching,
    match_account_pattern,
    prefix_filter,
)
from valuation_engines.aggregation import (  # noqa: E402
    LoanAlert,
    LoanSummary,
    RiskSummary,
    StatusSummary,
    build_alerts,
    summarize_loans,
)
from valuation_engines.formula import (  # noqa: E402
    DEFAULT_FUNCTIONS,
    EvaluationContext,
    FunctionRegistry,
    FunctionSpec,
    Program,
    ValueType,
    build_context,
    compile_formula,
    evaluate_formula,
    evaluate_numeric,
    formula_reference,
    run,
    sample_context,
    to_money,
)
from valuation_engines.loans import Loan, LoanDeriver, LoanStatus, sort_loans  # noqa: E402
from valuation_engines.notes import (  # noqa: E402
    LoanTerms,
    has_close_marker,
    note_contains,
    parse_duration,
    parse_loan_terms,
    parse_note_float,
    parse_note_string,
    parse_risk_level,
)

__all__ = [
    "DEFAULT_FUNCTIONS",
    "EvaluationContext",
    "FunctionRegistry",
    "FunctionSpec",
    "Loan",
    "LoanAlert",
    "LoanDeriver",
    "LoanStatus",
    "LoanSummary",
    "LoanTerms",
    "Program",
    "RiskSummary",
    "StatusSummary",
    "ValueType",
    "WILDCARD",
    "build_alerts",
    "build_context",
    "compile_formula",
    "evaluate_formula",
    "evaluate_numeric",
    "filter_matching",
    "formula_reference",
    "has_close_marker",
    "match_account_pattern",
    "note_contains",
    "parse_duration",
    "parse_loan_terms",
    "parse_note_float",
    "parse_note_string",
    "parse_risk_level",
    "prefix_filter",
    "run",
    "sample_context",
    "sort_loans",
    "summarize_loans",
    "to_money",
]

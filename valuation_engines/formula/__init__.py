"""
Valuation formula language: compiler, evaluator and function library.

Usage:
    from valuation_engines.formula import compile_formula, evaluate_numeric, build_context

    program = compile_formula('amount + simple_interest(amount, 12, days_held)')
    value = evaluate_numeric(program, build_context(posting, instant))
"""

from valuation_engines.formula.compiler import (
    DEFAULT_MAX_NODES,
    MAX_SOURCE_LENGTH,
    Program,
    compile_formula,
)
from valuation_engines.formula.context import (
    VALUATION_VARIABLES,
    EvaluationContext,
    build_context,
    held_days,
    sample_context,
)
from valuation_engines.formula.evaluator import (
    DEFAULT_MAX_STEPS,
    evaluate_formula,
    evaluate_numeric,
    run,
    to_money,
)
from valuation_engines.formula.functions import (
    DEFAULT_FUNCTIONS,
    FunctionRegistry,
    FunctionSpec,
)
from valuation_engines.formula.nodes import (
    BinaryOp,
    Call,
    Literal,
    Node,
    UnaryOp,
    ValueType,
    VariableRef,
)
from valuation_engines.formula.reference import FormulaReference, formula_reference
from valuation_engines.formula.validation import (
    FormulaValidation,
    check_formula,
    describe_formula_error,
)

__all__ = [
    "BinaryOp",
    "Call",
    "DEFAULT_FUNCTIONS",
    "DEFAULT_MAX_NODES",
    "DEFAULT_MAX_STEPS",
    "EvaluationContext",
    "FormulaReference",
    "FormulaValidation",
    "FunctionRegistry",
    "FunctionSpec",
    "Literal",
    "MAX_SOURCE_LENGTH",
    "Node",
    "Program",
    "UnaryOp",
    "VALUATION_VARIABLES",
    "ValueType",
    "VariableRef",
    "build_context",
    "check_formula",
    "compile_formula",
    "describe_formula_error",
    "evaluate_formula",
    "evaluate_numeric",
    "formula_reference",
    "held_days",
    "run",
    "sample_context",
    "to_money",
]

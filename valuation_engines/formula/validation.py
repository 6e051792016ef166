"""
Formula validation with one uniform, user-facing message per failure.

Runs the full compile + evaluate + result-type pipeline against a sample
context and reports the first failure as a ``FormulaValidation``.  The
``kind`` field tells "does not parse" apart from "fails while running" and
"runs but does not return a number".
"""

from __future__ import annotations

from dataclasses import dataclass

from valuation_kernel.exceptions import (
    FormulaError,
    FormulaRuntimeError,
    FormulaSyntaxError,
    FormulaTypeError,
)
from valuation_engines.formula.compiler import compile_formula
from valuation_engines.formula.context import EvaluationContext, sample_context
from valuation_engines.formula.evaluator import evaluate_numeric
from valuation_engines.formula.functions import DEFAULT_FUNCTIONS, FunctionRegistry

KIND_SYNTAX = "syntax"
KIND_RUNTIME = "runtime"
KIND_TYPE = "type"


@dataclass(frozen=True)
class FormulaValidation:
    ok: bool
    error: str = ""
    kind: str = ""


VALID = FormulaValidation(ok=True)


def describe_formula_error(exc: FormulaError) -> tuple[str, str]:
    """(kind, message) for a formula failure."""
    if isinstance(exc, FormulaSyntaxError):
        return KIND_SYNTAX, f"syntax error: {exc}"
    if isinstance(exc, FormulaTypeError):
        return KIND_TYPE, str(exc)
    if isinstance(exc, FormulaRuntimeError):
        return KIND_RUNTIME, f"evaluation error: {exc}"
    return KIND_RUNTIME, str(exc)


def check_formula(
    source: str,
    context: EvaluationContext | None = None,
    functions: FunctionRegistry = DEFAULT_FUNCTIONS,
) -> FormulaValidation:
    """Compile and run ``source`` against a sample context."""
    try:
        program = compile_formula(source, functions=functions)
        evaluate_numeric(program, context or sample_context())
    except FormulaError as e:
        kind, message = describe_formula_error(e)
        return FormulaValidation(ok=False, error=message, kind=kind)
    return VALID

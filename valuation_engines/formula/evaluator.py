"""
Module: valuation_engines.formula.evaluator
Responsibility:
    Run a compiled ``Program`` against an ``EvaluationContext`` and convert
    the numeric result into money.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Pure tree walk over the closed node set; no state survives a call.
    - Bounded work: each node visited costs one step; more than
      ``max_steps`` steps raises EvaluationBudgetExceededError.
    - ``and``/``or`` short-circuit; function arguments are evaluated eagerly.
    - Arithmetic never returns a non-finite value or divides by zero
      silently; both raise FormulaRuntimeError.
    - Numbers are IEEE-754 doubles.  ``to_money`` keeps the shortest decimal
      that round-trips the double, with no further rounding.

Failure modes:
    - FormulaRuntimeError (and EvaluationBudgetExceededError) from ``run``.
    - FormulaTypeError from ``evaluate_numeric`` for non-numeric results.
    - FormulaSyntaxError from ``evaluate_formula`` when compilation fails.

Usage:
    from valuation_engines.formula import compile_formula, evaluate_numeric, sample_context

    program = compile_formula("amount + simple_interest(amount, 12, days_held)")
    evaluate_numeric(program, sample_context())
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Any

from valuation_kernel.exceptions import (
    EvaluationBudgetExceededError,
    FormulaRuntimeError,
    FormulaTypeError,
)
from valuation_engines.formula.compiler import Program, compile_formula
from valuation_engines.formula.context import EvaluationContext
from valuation_engines.formula.functions import DEFAULT_FUNCTIONS, FunctionRegistry
from valuation_engines.formula.nodes import (
    BinaryOp,
    Call,
    Literal,
    Node,
    UnaryOp,
    ValueType,
    VariableRef,
    describe_type,
    value_type_of,
)

DEFAULT_MAX_STEPS = 10_000


def run(
    program: Program,
    context: EvaluationContext,
    *,
    max_steps: int = DEFAULT_MAX_STEPS,
) -> Any:
    """Evaluate ``program`` and return its value (number, string, boolean or date)."""
    return _Run(program, context, max_steps).eval(program.root)


def evaluate_numeric(
    program: Program,
    context: EvaluationContext,
    *,
    max_steps: int = DEFAULT_MAX_STEPS,
) -> float:
    """
    Evaluate ``program`` and require a finite number.

    Raises:
        FormulaTypeError: the result is not a number.
        FormulaRuntimeError: evaluation failed or the result is not finite.
    """
    value = run(program, context, max_steps=max_steps)
    if not ValueType.NUMBER.matches(value):
        raise FormulaTypeError(program.source, describe_type(value))
    value = float(value)
    if not math.isfinite(value):
        raise FormulaRuntimeError(program.source, "result is not a finite number")
    return value


def to_money(value: float) -> Decimal:
    """Shortest decimal that round-trips ``value``."""
    return Decimal(repr(float(value)))


def evaluate_formula(
    source: str,
    context: EvaluationContext,
    *,
    functions: FunctionRegistry = DEFAULT_FUNCTIONS,
    max_steps: int = DEFAULT_MAX_STEPS,
) -> Decimal:
    """Compile, run and convert one formula in a single call."""
    program = compile_formula(source, functions=functions)
    return to_money(evaluate_numeric(program, context, max_steps=max_steps))


class _Run:
    """State of one evaluation: the step counter lives and dies here."""

    __slots__ = ("program", "context", "max_steps", "steps")

    def __init__(self, program: Program, context: EvaluationContext, max_steps: int):
        self.program = program
        self.context = context
        self.max_steps = max_steps
        self.steps = 0

    def error(self, detail: str) -> FormulaRuntimeError:
        return FormulaRuntimeError(self.program.source, detail)

    def eval(self, node: Node) -> Any:
        self.steps += 1
        if self.steps > self.max_steps:
            raise EvaluationBudgetExceededError(self.program.source, self.max_steps)

        match node:
            case Literal(value=value):
                return value
            case VariableRef(name=name):
                try:
                    return self.context.lookup(name)
                except KeyError:
                    raise self.error(f"undefined variable {name!r}") from None
            case UnaryOp(op="not", operand=operand):
                return not self.boolean(operand)
            case UnaryOp(op="-", operand=operand):
                return -self.number(operand)
            case UnaryOp(op="+", operand=operand):
                return self.number(operand)
            case BinaryOp(op="and", left=left, right=right):
                return self.boolean(left) and self.boolean(right)
            case BinaryOp(op="or", left=left, right=right):
                return self.boolean(left) or self.boolean(right)
            case BinaryOp(op=op, left=left, right=right):
                return self.binary(op, self.eval(left), self.eval(right))
            case Call(name=name, args=args):
                spec = self.program.functions.get(name)
                if spec is None:
                    raise self.error(f"undefined function {name!r}")
                values = [self.eval(arg) for arg in args]
                return spec.invoke(values, formula=self.program.source)
        raise self.error(f"unsupported node {type(node).__name__}")

    def number(self, node: Node) -> float:
        return self.require(self.eval(node), ValueType.NUMBER)

    def boolean(self, node: Node) -> bool:
        return self.require(self.eval(node), ValueType.BOOLEAN)

    def require(self, value: Any, wanted: ValueType) -> Any:
        if not wanted.matches(value):
            raise self.error(f"expected {wanted.value}, got {describe_type(value)}")
        return value

    def binary(self, op: str, lhs: Any, rhs: Any) -> Any:
        match op:
            case "==":
                return lhs == rhs
            case "!=":
                return lhs != rhs
            case "<" | "<=" | ">" | ">=":
                return self.compare(op, lhs, rhs)
            case "+" if ValueType.STRING.matches(lhs) and ValueType.STRING.matches(rhs):
                return lhs + rhs
        a = self.require(lhs, ValueType.NUMBER)
        b = self.require(rhs, ValueType.NUMBER)
        match op:
            case "+":
                result = a + b
            case "-":
                result = a - b
            case "*":
                result = a * b
            case "/":
                if b == 0:
                    raise self.error("division by zero")
                result = a / b
            case "%":
                if b == 0:
                    raise self.error("modulo by zero")
                result = a % b
            case _:
                raise self.error(f"unsupported operator {op!r}")
        if not math.isfinite(result):
            raise self.error(f"'{op}' produced a non-finite result")
        return float(result)

    def compare(self, op: str, lhs: Any, rhs: Any) -> bool:
        lhs_type = value_type_of(lhs)
        if lhs_type is None or lhs_type is ValueType.BOOLEAN or lhs_type is not value_type_of(rhs):
            raise self.error(f"cannot order {describe_type(lhs)} and {describe_type(rhs)}")
        match op:
            case "<":
                return lhs < rhs
            case "<=":
                return lhs <= rhs
            case ">":
                return lhs > rhs
            case _:
                return lhs >= rhs

"""
Module: valuation_engines.formula.functions
Responsibility:
    Typed function library callable from valuation formulas, and the
    immutable registry that maps function names to their specs.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Every ``FunctionSpec`` is validated when it is constructed: the name is
      an identifier, parameter and return types are ``ValueType`` members,
      defaults match the types of the optional parameters, and the
      implementation accepts the declared number of arguments.
    - ``FunctionSpec.invoke`` re-checks argument count and types at call
      time and raises ``FormulaRuntimeError`` instead of returning a wrong
      number.
    - A ``FunctionRegistry`` is immutable and rejects duplicate names.

Failure modes:
    - FunctionRegistrationError for an invalid spec or duplicate name.
    - FormulaRuntimeError when a call fails (bad arguments, domain errors
      such as ``sqrt(-1)``, overflow, or a non-finite result).

Usage:
    from valuation_engines.formula.functions import DEFAULT_FUNCTIONS

    DEFAULT_FUNCTIONS["simple_interest"].invoke([100000.0, 7.5, 365.0])  # 7500.0
"""

from __future__ import annotations

import inspect
import math
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Any

from valuation_kernel.exceptions import FormulaRuntimeError, FunctionRegistrationError
from valuation_engines import notes
from valuation_engines.formula.nodes import ValueType, describe_type

NUMBER = ValueType.NUMBER
STRING = ValueType.STRING
BOOLEAN = ValueType.BOOLEAN

DEFAULT_COMPOUNDS_PER_YEAR = 12.0


@dataclass(frozen=True)
class FunctionSpec:
    """
    Declaration of one formula function.

    Contract:
        ``params`` lists the parameter types in order.  The first
        ``required`` parameters must be supplied; the rest are optional and
        take their values from ``defaults`` (one default per optional
        parameter).  ``required=None`` means every parameter is required.
    """

    name: str
    params: tuple[ValueType, ...]
    returns: ValueType
    impl: Callable[..., Any] = field(compare=False)
    required: int | None = None
    defaults: tuple[Any, ...] = ()
    doc: str = ""
    example: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.isidentifier():
            raise FunctionRegistrationError(str(self.name), "name must be an identifier")
        object.__setattr__(self, "params", tuple(self.params))
        object.__setattr__(self, "defaults", tuple(self.defaults))
        for param in self.params:
            if not isinstance(param, ValueType):
                raise FunctionRegistrationError(self.name, f"unknown parameter type {param!r}")
        if not isinstance(self.returns, ValueType):
            raise FunctionRegistrationError(self.name, f"unknown return type {self.returns!r}")
        if self.required is None:
            object.__setattr__(self, "required", len(self.params))
        if not 0 <= self.required <= len(self.params):
            raise FunctionRegistrationError(
                self.name, f"required={self.required} outside 0..{len(self.params)}"
            )
        optional = self.params[self.required:]
        if len(self.defaults) != len(optional):
            raise FunctionRegistrationError(
                self.name,
                f"expected {len(optional)} default(s), got {len(self.defaults)}",
            )
        for param, default in zip(optional, self.defaults):
            if not param.matches(default):
                raise FunctionRegistrationError(
                    self.name,
                    f"default {default!r} is not a {param.value}",
                )
        if not callable(self.impl):
            raise FunctionRegistrationError(self.name, "implementation is not callable")
        try:
            signature = inspect.signature(self.impl)
        except (TypeError, ValueError):
            signature = None
        if signature is not None:
            try:
                signature.bind(*([None] * len(self.params)))
            except TypeError as e:
                raise FunctionRegistrationError(
                    self.name,
                    f"implementation does not accept {len(self.params)} argument(s): {e}",
                ) from e

    @property
    def min_args(self) -> int:
        return self.required

    @property
    def max_args(self) -> int:
        return len(self.params)

    @property
    def param_names(self) -> tuple[str, ...]:
        """Parameter names taken from the implementation, for documentation."""
        try:
            names = [
                p.name
                for p in inspect.signature(self.impl).parameters.values()
                if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
            ]
        except (TypeError, ValueError):
            names = []
        if len(names) < len(self.params):
            names = [f"arg{i + 1}" for i in range(len(self.params))]
        return tuple(names[: len(self.params)])

    @property
    def signature(self) -> str:
        parts = []
        for index, (name, param) in enumerate(zip(self.param_names, self.params)):
            optional = "?" if index >= self.required else ""
            parts.append(f"{name}{optional}: {param.value}")
        return f"{self.name}({', '.join(parts)}) -> {self.returns.value}"

    def accepts_arity(self, count: int) -> bool:
        return self.min_args <= count <= self.max_args

    def arity_text(self) -> str:
        if self.min_args == self.max_args:
            return str(self.max_args)
        return f"{self.min_args} to {self.max_args}"

    def invoke(self, args: Sequence[Any], formula: str = "") -> Any:
        """
        Call the implementation with runtime argument checks.

        Raises:
            FormulaRuntimeError: wrong argument count or type, a failure
                inside the implementation, or a result of the wrong type.
        """
        if not self.accepts_arity(len(args)):
            raise FormulaRuntimeError(
                formula,
                f"{self.name}() takes {self.arity_text()} argument(s), got {len(args)}",
            )
        values = list(args) + list(self.defaults[len(args) - self.required:])
        for position, (param, value) in enumerate(zip(self.params, values), start=1):
            if not param.matches(value):
                raise FormulaRuntimeError(
                    formula,
                    f"{self.name}() argument {position} must be a {param.value}, "
                    f"got {describe_type(value)}",
                )
        try:
            result = self.impl(*values)
        except (ValueError, OverflowError, ZeroDivisionError) as e:
            raise FormulaRuntimeError(formula, f"{self.name}(): {e}") from e
        if self.returns is NUMBER and isinstance(result, int) and not isinstance(result, bool):
            result = float(result)
        if not self.returns.matches(result):
            raise FormulaRuntimeError(
                formula,
                f"{self.name}() returned {describe_type(result)}, expected {self.returns.value}",
            )
        if self.returns is NUMBER and not math.isfinite(result):
            raise FormulaRuntimeError(formula, f"{self.name}() produced a non-finite result")
        return result


class FunctionRegistry(Mapping[str, FunctionSpec]):
    """
    Immutable name -> FunctionSpec mapping.

    Guarantees:
        - Contents never change after construction.
        - Names are unique.
    """

    __slots__ = ("_specs",)

    def __init__(self, specs: Iterable[FunctionSpec] = ()):
        table: dict[str, FunctionSpec] = {}
        for spec in specs:
            if not isinstance(spec, FunctionSpec):
                raise FunctionRegistrationError(repr(spec), "not a FunctionSpec")
            if spec.name in table:
                raise FunctionRegistrationError(spec.name, "already registered")
            table[spec.name] = spec
        self._specs = MappingProxyType(table)

    def __getitem__(self, name: str) -> FunctionSpec:
        return self._specs[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def __repr__(self) -> str:
        return f"FunctionRegistry({sorted(self._specs)})"

    def extended(self, *specs: FunctionSpec) -> FunctionRegistry:
        """New registry with ``specs`` added.  Duplicates are rejected."""
        return FunctionRegistry([*self._specs.values(), *specs])


# Interest


def simple_interest(principal, rate, days):
    return principal * (rate / 100) * (days / 365)


def compound_interest(principal, rate, days, compounds_per_year):
    if compounds_per_year == 0:
        compounds_per_year = DEFAULT_COMPOUNDS_PER_YEAR
    years = days / 365
    return principal * math.pow(
        1 + rate / 100 / compounds_per_year, compounds_per_year * years
    )


def monthly_interest(principal, monthly_rate, days):
    return principal * (monthly_rate / 100) * (days / 30)


def daily_interest(principal, daily_rate, days):
    return principal * (daily_rate / 100) * days


# Math


def minimum(a, b):
    return min(a, b)


def maximum(a, b):
    return max(a, b)


def round_half_away(x):
    """Round to the nearest integer, halves away from zero."""
    return float(Decimal(x).to_integral_value(rounding=ROUND_HALF_UP))


def floor(x):
    return float(math.floor(x))


def ceil(x):
    return float(math.ceil(x))


def absolute(x):
    return abs(x)


def power(base, exp):
    return math.pow(base, exp)


def square_root(x):
    return math.sqrt(x)


def clamp(value, low, high):
    return max(low, min(high, value))


def if_else(condition, when_true, when_false):
    return when_true if condition else when_false


# Notes


def parse_note_float(note, prefix):
    return notes.parse_note_float(note, prefix)


def parse_note_string(note, prefix):
    return notes.parse_note_string(note, prefix)


def note_contains(note, substr):
    return notes.note_contains(note, substr)


DEFAULT_FUNCTIONS = FunctionRegistry([
    FunctionSpec(
        "simple_interest", (NUMBER, NUMBER, NUMBER), NUMBER, simple_interest,
        doc="Simple interest: principal * rate% * days / 365. Returns the interest amount.",
        example="simple_interest(amount, 12, days_held)",
    ),
    FunctionSpec(
        "compound_interest", (NUMBER, NUMBER, NUMBER, NUMBER), NUMBER, compound_interest,
        required=3,
        defaults=(DEFAULT_COMPOUNDS_PER_YEAR,),
        doc=(
            "Compound value: principal * (1 + rate%/n)^(n * days/365). "
            "n defaults to 12 when zero or omitted. Returns the total value."
        ),
        example="compound_interest(amount, 12, days_held, 12)",
    ),
    FunctionSpec(
        "monthly_interest", (NUMBER, NUMBER, NUMBER), NUMBER, monthly_interest,
        doc="Interest at a monthly rate: principal * rate% * days / 30.",
        example="monthly_interest(amount, 1, days_held)",
    ),
    FunctionSpec(
        "daily_interest", (NUMBER, NUMBER, NUMBER), NUMBER, daily_interest,
        doc="Interest at a daily rate: principal * rate% * days.",
        example="daily_interest(amount, 0.03, days_held)",
    ),
    FunctionSpec(
        "min", (NUMBER, NUMBER), NUMBER, minimum,
        doc="Minimum of two values.", example="min(amount, 10000)",
    ),
    FunctionSpec(
        "max", (NUMBER, NUMBER), NUMBER, maximum,
        doc="Maximum of two values.", example="max(amount, 0)",
    ),
    FunctionSpec(
        "round", (NUMBER,), NUMBER, round_half_away,
        doc="Nearest integer; halves round away from zero.", example="round(amount)",
    ),
    FunctionSpec(
        "floor", (NUMBER,), NUMBER, floor,
        doc="Round down.", example="floor(amount)",
    ),
    FunctionSpec(
        "ceil", (NUMBER,), NUMBER, ceil,
        doc="Round up.", example="ceil(amount)",
    ),
    FunctionSpec(
        "abs", (NUMBER,), NUMBER, absolute,
        doc="Absolute value.", example="abs(amount)",
    ),
    FunctionSpec(
        "pow", (NUMBER, NUMBER), NUMBER, power,
        doc="base raised to exp.", example="pow(1.01, months_held)",
    ),
    FunctionSpec(
        "sqrt", (NUMBER,), NUMBER, square_root,
        doc="Square root.", example="sqrt(amount)",
    ),
    FunctionSpec(
        "clamp", (NUMBER, NUMBER, NUMBER), NUMBER, clamp,
        doc="Restrict value to the range [low, high].", example="clamp(amount, 0, 100000)",
    ),
    FunctionSpec(
        "if_else", (BOOLEAN, NUMBER, NUMBER), NUMBER, if_else,
        doc="when_true if condition holds, else when_false. Both branches are evaluated.",
        example="if_else(days_held > 365, amount * 1.1, amount)",
    ),
    FunctionSpec(
        "parse_note_float", (STRING, STRING), NUMBER, parse_note_float,
        doc=(
            "Number that follows prefix in note, or 0. "
            'e.g. parse_note_float("Int:12.5 Per:M", "Int:") -> 12.5'
        ),
        example='parse_note_float(note, "Int:")',
    ),
    FunctionSpec(
        "parse_note_string", (STRING, STRING), STRING, parse_note_string,
        doc="Token that follows prefix in note, or an empty string.",
        example='parse_note_string(note, "Per:")',
    ),
    FunctionSpec(
        "note_contains", (STRING, STRING), BOOLEAN, note_contains,
        doc="True if note contains substr (case-sensitive).",
        example='note_contains(note, "live")',
    ),
])

"""
Typed expression tree for valuation formulas.

The tree is a closed set of five node kinds.  Every node records the static
``ValueType`` the compiler inferred for it, so the evaluator never has to
guess what kind of value a sub-expression produces.

    Literal      -- number, string or boolean constant
    VariableRef  -- one of the evaluation context variables
    UnaryOp      -- ``-x``, ``+x``, ``not x``
    BinaryOp     -- arithmetic, comparison and boolean connectives
    Call         -- call to a registered function
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum


class ValueType(str, Enum):
    """Static type of a formula value."""

    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    DATE = "date"

    def matches(self, value: object) -> bool:
        """True if ``value`` is a runtime value of this type."""
        return value_type_of(value) is self


def value_type_of(value: object) -> ValueType | None:
    """Runtime type of a formula value, or None for foreign objects."""
    # bool is an int subclass; check it first.
    if isinstance(value, bool):
        return ValueType.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueType.NUMBER
    if isinstance(value, str):
        return ValueType.STRING
    if isinstance(value, date):
        return ValueType.DATE
    return None


def describe_type(value: object) -> str:
    """Human-readable type name used in error messages."""
    value_type = value_type_of(value)
    if value_type is None:
        return type(value).__name__
    return value_type.value


ARITHMETIC_OPS: frozenset[str] = frozenset({"+", "-", "*", "/", "%"})
COMPARISON_OPS: frozenset[str] = frozenset({"==", "!=", "<", "<=", ">", ">="})
BOOLEAN_OPS: frozenset[str] = frozenset({"and", "or"})
UNARY_OPS: frozenset[str] = frozenset({"-", "+", "not"})


@dataclass(frozen=True, slots=True)
class Literal:
    value: float | str | bool
    type: ValueType


@dataclass(frozen=True, slots=True)
class VariableRef:
    name: str
    type: ValueType


@dataclass(frozen=True, slots=True)
class UnaryOp:
    op: str
    operand: Node
    type: ValueType


@dataclass(frozen=True, slots=True)
class BinaryOp:
    op: str
    left: Node
    right: Node
    type: ValueType


@dataclass(frozen=True, slots=True)
class Call:
    name: str
    args: tuple[Node, ...]
    type: ValueType


Node = Literal | VariableRef | UnaryOp | BinaryOp | Call


def count_nodes(node: Node) -> int:
    """Number of nodes in the tree rooted at ``node``."""
    match node:
        case Literal() | VariableRef():
            return 1
        case UnaryOp(operand=operand):
            return 1 + count_nodes(operand)
        case BinaryOp(left=left, right=right):
            return 1 + count_nodes(left) + count_nodes(right)
        case Call(args=args):
            return 1 + sum(count_nodes(arg) for arg in args)
    raise TypeError(f"Not a formula node: {node!r}")

"""
Module: valuation_engines.formula.compiler
Responsibility:
    Compile a valuation formula into a typed, immutable ``Program``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Grammar:
    Formulas use Python expression syntax, restricted to:
      - number and string literals, ``true``/``false`` (or ``True``/``False``)
      - the context variables (``amount``, ``days_held``, ``note`` ...)
      - ``+ - * / %``, unary ``-``/``+``, ``not``, ``and``, ``or``
      - comparisons ``== != < <= > >=`` (chains become ``and``)
      - calls to registered functions with positional arguments
    A formula may span several lines inside brackets.

    Rejected:
      - ``**`` (use ``pow(base, exp)``)
      - ``x if c else y`` (use ``if_else(c, x, y)``)
      - attribute access, subscripts, lambdas, comprehensions,
        keyword or star arguments, assignment, any other construct

Invariants enforced:
    - Purity: compiling the same source twice yields equal programs.  No
      module-level caches.
    - Every node of the compiled tree has a static ``ValueType``; operand and
      argument types are checked here, before any context exists.
    - Bounded size: at most MAX_SOURCE_LENGTH characters and ``max_nodes``
      tree nodes.

Failure modes:
    - FormulaSyntaxError for anything the grammar does not accept.
    - FormulaTooComplexError when the tree exceeds ``max_nodes``.
"""

from __future__ import annotations

import ast
import math
from collections.abc import Mapping
from dataclasses import dataclass, field

from valuation_kernel.exceptions import FormulaSyntaxError, FormulaTooComplexError
from valuation_kernel.logging_config import get_logger
from valuation_engines.formula.context import VALUATION_VARIABLES
from valuation_engines.formula.functions import DEFAULT_FUNCTIONS, FunctionRegistry
from valuation_engines.formula.nodes import (
    BinaryOp,
    Call,
    Literal,
    Node,
    UnaryOp,
    ValueType,
    VariableRef,
    count_nodes,
)

logger = get_logger("engines.formula.compiler")

MAX_SOURCE_LENGTH = 4096
DEFAULT_MAX_NODES = 256

NUMBER = ValueType.NUMBER
STRING = ValueType.STRING
BOOLEAN = ValueType.BOOLEAN

_BOOLEAN_NAMES: dict[str, bool] = {
    "true": True,
    "True": True,
    "false": False,
    "False": False,
}

_ARITHMETIC: dict[type[ast.operator], str] = {
    ast.Add: "+",
    ast.Sub: "-",
    ast.Mult: "*",
    ast.Div: "/",
    ast.Mod: "%",
}

_COMPARISONS: dict[type[ast.cmpop], str] = {
    ast.Eq: "==",
    ast.NotEq: "!=",
    ast.Lt: "<",
    ast.LtE: "<=",
    ast.Gt: ">",
    ast.GtE: ">=",
}

_ORDERABLE: frozenset[ValueType] = frozenset({ValueType.NUMBER, ValueType.STRING, ValueType.DATE})


@dataclass(frozen=True)
class Program:
    """
    A compiled formula.

    Stateless and reusable across contexts.  ``functions`` is the registry
    the program was compiled against; the evaluator resolves calls through
    it.
    """

    source: str
    root: Node
    result_type: ValueType
    node_count: int
    functions: FunctionRegistry = field(repr=False, compare=False)


def compile_formula(
    source: str,
    variables: Mapping[str, ValueType] = VALUATION_VARIABLES,
    functions: FunctionRegistry = DEFAULT_FUNCTIONS,
    *,
    max_nodes: int = DEFAULT_MAX_NODES,
) -> Program:
    """
    Compile ``source`` against a variable schema and function registry.

    Raises:
        FormulaSyntaxError: the formula does not parse, uses a construct
            outside the grammar, or fails a static type check.
        FormulaTooComplexError: the tree has more than ``max_nodes`` nodes.
    """
    if not isinstance(source, str):
        raise FormulaSyntaxError(repr(source), "formula must be a string")
    text = source.strip()
    if not text:
        raise FormulaSyntaxError(source, "formula is empty")
    if len(text) > MAX_SOURCE_LENGTH:
        raise FormulaSyntaxError(
            source, f"formula is longer than {MAX_SOURCE_LENGTH} characters"
        )

    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as e:
        raise FormulaSyntaxError(source, e.msg or "invalid syntax", e.offset or 0) from e
    except (RecursionError, ValueError) as e:
        raise FormulaSyntaxError(source, f"cannot parse formula: {e}") from e

    parsed_size = _expression_size(tree.body)
    if parsed_size > max_nodes:
        raise FormulaTooComplexError(source, parsed_size, max_nodes)

    lowering = _Lowering(source, variables, functions)
    try:
        root = lowering.lower(tree.body)
    except RecursionError as e:
        raise FormulaSyntaxError(source, "formula is nested too deeply") from e

    node_count = count_nodes(root)
    if node_count > max_nodes:
        raise FormulaTooComplexError(source, node_count, max_nodes)

    logger.debug(
        "formula_compiled",
        extra={"node_count": node_count, "result_type": root.type.value},
    )
    return Program(
        source=source,
        root=root,
        result_type=root.type,
        node_count=node_count,
        functions=functions,
    )


def _expression_size(body: ast.expr) -> int:
    """
    Lower bound on the typed tree size, counted without recursion.

    Every expression node lowers to at least one typed node, except the name
    in a call position, which becomes part of its ``Call``.
    """
    callees = {id(node.func) for node in ast.walk(body) if isinstance(node, ast.Call)}
    return sum(
        1
        for node in ast.walk(body)
        if isinstance(node, ast.expr) and id(node) not in callees
    )

class _Lowering:
    """Translates a Python expression AST into the typed formula tree."""

    def __init__(
        self,
        source: str,
        variables: Mapping[str, ValueType],
        functions: FunctionRegistry,
    ):
        self.source = source
        self.variables = variables
        self.functions = functions

    def fail(self, node: ast.AST, detail: str) -> FormulaSyntaxError:
        column = getattr(node, "col_offset", -1) + 1
        return FormulaSyntaxError(self.source, detail, column)

    def lower(self, node: ast.expr) -> Node:
        match node:
            case ast.Constant(value=bool() as value):
                return Literal(value, BOOLEAN)
            case ast.Constant(value=int() | float() as value):
                return self.lower_number(node, value)
            case ast.Constant(value=str() as value):
                return Literal(value, STRING)
            case ast.Constant(value=value):
                raise self.fail(node, f"unsupported literal {value!r}")
            case ast.Name(id=name):
                return self.lower_name(node, name)
            case ast.UnaryOp(op=op, operand=operand):
                return self.lower_unary(node, op, operand)
            case ast.BinOp(op=ast.Pow()):
                raise self.fail(node, "'**' is not supported, use pow(base, exp)")
            case ast.BinOp(left=left, op=op, right=right):
                return self.lower_binary(node, left, op, right)
            case ast.BoolOp(op=op, values=values):
                return self.lower_bool(node, op, values)
            case ast.Compare(left=left, ops=ops, comparators=comparators):
                return self.lower_compare(node, left, ops, comparators)
            case ast.Call():
                return self.lower_call(node)
            case ast.IfExp():
                raise self.fail(node, "conditional expressions are not supported, use if_else(condition, a, b)")
            case ast.Attribute():
                raise self.fail(node, "attribute access is not allowed")
            case ast.Subscript():
                raise self.fail(node, "subscripts are not allowed")
            case ast.Lambda():
                raise self.fail(node, "lambda expressions are not allowed")
            case ast.NamedExpr():
                raise self.fail(node, "assignment is not allowed")
            case ast.ListComp() | ast.SetComp() | ast.DictComp() | ast.GeneratorExp():
                raise self.fail(node, "comprehensions are not allowed")
            case _:
                raise self.fail(node, f"{type(node).__name__} expressions are not allowed")

    def lower_number(self, node: ast.Constant, value: int | float) -> Node:
        try:
            number = float(value)
        except OverflowError as e:
            raise self.fail(node, "number literal is too large") from e
        if not math.isfinite(number):
            raise self.fail(node, "number literal is too large")
        return Literal(number, NUMBER)

    def lower_name(self, node: ast.Name, name: str) -> Node:
        if name in _BOOLEAN_NAMES:
            return Literal(_BOOLEAN_NAMES[name], BOOLEAN)
        if name not in self.variables:
            raise self.fail(node, f"unknown variable {name!r}")
        return VariableRef(name, self.variables[name])

    def lower_unary(self, node: ast.UnaryOp, op: ast.unaryop, operand: ast.expr) -> Node:
        inner = self.lower(operand)
        match op:
            case ast.USub() | ast.UAdd():
                symbol = "-" if isinstance(op, ast.USub) else "+"
                self.expect(node, inner, NUMBER, f"unary '{symbol}'")
                return UnaryOp(symbol, inner, NUMBER)
            case ast.Not():
                self.expect(node, inner, BOOLEAN, "'not'")
                return UnaryOp("not", inner, BOOLEAN)
        raise self.fail(node, f"unary operator {type(op).__name__} is not allowed")

    def lower_binary(
        self, node: ast.BinOp, left: ast.expr, op: ast.operator, right: ast.expr
    ) -> Node:
        symbol = _ARITHMETIC.get(type(op))
        if symbol is None:
            raise self.fail(node, f"operator {type(op).__name__} is not allowed")
        lhs = self.lower(left)
        rhs = self.lower(right)
        if symbol == "+" and lhs.type is STRING and rhs.type is STRING:
            return BinaryOp("+", lhs, rhs, STRING)
        self.expect(node, lhs, NUMBER, f"'{symbol}'")
        self.expect(node, rhs, NUMBER, f"'{symbol}'")
        return BinaryOp(symbol, lhs, rhs, NUMBER)

    def lower_bool(self, node: ast.BoolOp, op: ast.boolop, values: list[ast.expr]) -> Node:
        symbol = "and" if isinstance(op, ast.And) else "or"
        operands = [self.lower(value) for value in values]
        for operand in operands:
            self.expect(node, operand, BOOLEAN, f"'{symbol}'")
        result = operands[0]
        for operand in operands[1:]:
            result = BinaryOp(symbol, result, operand, BOOLEAN)
        return result

    def lower_compare(
        self,
        node: ast.Compare,
        left: ast.expr,
        ops: list[ast.cmpop],
        comparators: list[ast.expr],
    ) -> Node:
        operands = [self.lower(left)] + [self.lower(c) for c in comparators]
        links: list[Node] = []
        for index, op in enumerate(ops):
            symbol = _COMPARISONS.get(type(op))
            if symbol is None:
                raise self.fail(node, f"comparison {type(op).__name__} is not allowed")
            lhs, rhs = operands[index], operands[index + 1]
            if lhs.type is not rhs.type:
                raise self.fail(
                    node,
                    f"cannot compare {lhs.type.value} with {rhs.type.value}",
                )
            if symbol not in ("==", "!=") and lhs.type not in _ORDERABLE:
                raise self.fail(node, f"'{symbol}' is not defined for {lhs.type.value}")
            links.append(BinaryOp(symbol, lhs, rhs, BOOLEAN))
        result = links[0]
        for link in links[1:]:
            result = BinaryOp("and", result, link, BOOLEAN)
        return result

    def lower_call(self, node: ast.Call) -> Node:
        if not isinstance(node.func, ast.Name):
            raise self.fail(node, "only named functions can be called")
        name = node.func.id
        if node.keywords:
            raise self.fail(node, f"{name}() does not take keyword arguments")
        if any(isinstance(arg, ast.Starred) for arg in node.args):
            raise self.fail(node, f"{name}() does not take star arguments")
        spec = self.functions.get(name)
        if spec is None:
            raise self.fail(node, f"unknown function {name!r}")
        if not spec.accepts_arity(len(node.args)):
            raise self.fail(
                node,
                f"{name}() takes {spec.arity_text()} argument(s), got {len(node.args)}",
            )
        args = tuple(self.lower(arg) for arg in node.args)
        for position, (param, arg) in enumerate(zip(spec.params, args), start=1):
            if arg.type is not param:
                raise self.fail(
                    node,
                    f"{name}() argument {position} must be a {param.value}, got {arg.type.value}",
                )
        return Call(name, args, spec.returns)

    def expect(self, node: ast.AST, operand: Node, wanted: ValueType, what: str) -> None:
        if operand.type is not wanted:
            raise self.fail(
                node,
                f"{what} expects a {wanted.value}, got {operand.type.value}",
            )

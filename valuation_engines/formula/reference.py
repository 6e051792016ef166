"""
Formula reference catalogue.

Lists the variables, functions and ready-made snippets an editor can offer
while a user writes a valuation formula.  Built from the variable schema and
the function registry, so it cannot drift from what the compiler accepts.
"""

from __future__ import annotations

from dataclasses import dataclass

from valuation_engines.formula.context import VALUATION_VARIABLES, VARIABLE_DESCRIPTIONS
from valuation_engines.formula.functions import DEFAULT_FUNCTIONS, FunctionRegistry


@dataclass(frozen=True)
class VariableDoc:
    name: str
    type: str
    description: str


@dataclass(frozen=True)
class FunctionDoc:
    name: str
    signature: str
    description: str
    example: str


@dataclass(frozen=True)
class Snippet:
    label: str
    formula: str
    description: str


@dataclass(frozen=True)
class FormulaReference:
    variables: tuple[VariableDoc, ...]
    functions: tuple[FunctionDoc, ...]
    snippets: tuple[Snippet, ...]


SNIPPETS: tuple[Snippet, ...] = (
    Snippet(
        "Simple Interest Formula",
        'amount + simple_interest(amount, parse_note_float(note, "Rate:"), days_held)',
        "Calculates simple interest based on rate from note",
    ),
    Snippet(
        "Compound Interest Formula",
        'compound_interest(amount, parse_note_float(note, "Rate:"), days_held, 12)',
        "Monthly compounding interest based on rate from note",
    ),
    Snippet(
        "P2P Loan Interest",
        'amount + (amount * parse_note_float(note, "Int:") / 100 / 365 * days_held)',
        "Annual interest rate from note, calculated daily",
    ),
    Snippet(
        "Tiered Interest",
        "if_else(days_held > 365,\n"
        "  amount + simple_interest(amount, 12, days_held),\n"
        "  amount + simple_interest(amount, 10, days_held)\n"
        ")",
        "Higher rate after 1 year",
    ),
)


def formula_reference(functions: FunctionRegistry = DEFAULT_FUNCTIONS) -> FormulaReference:
    variables = tuple(
        VariableDoc(name, value_type.value, VARIABLE_DESCRIPTIONS.get(name, ""))
        for name, value_type in VALUATION_VARIABLES.items()
    )
    function_docs = tuple(
        FunctionDoc(spec.name, spec.signature, spec.doc, spec.example)
        for spec in functions.values()
    )
    return FormulaReference(variables, function_docs, SNIPPETS)

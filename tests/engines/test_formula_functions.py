"""
Tests for the formula function library and registry.

Covers:
- Interest helpers and math functions called directly through their specs
- Runtime argument checks in FunctionSpec.invoke
- FunctionSpec validation at construction time
- Registry immutability and duplicate rejection
- The editor reference catalogue
"""

import math

import pytest

from valuation_engines.formula import (
    DEFAULT_FUNCTIONS,
    FunctionRegistry,
    FunctionSpec,
    ValueType,
    compile_formula,
    formula_reference,
    sample_context,
)
from valuation_engines.formula.validation import check_formula
from valuation_kernel.exceptions import FormulaRuntimeError, FunctionRegistrationError

NUMBER = ValueType.NUMBER
STRING = ValueType.STRING


def call(name, *args):
    return DEFAULT_FUNCTIONS[name].invoke(list(args), formula=f"{name}(...)")


class TestInterestFunctions:
    """Interest helpers."""

    def test_simple_interest(self):
        assert call("simple_interest", 100000.0, 7.5, 365.0) == 7500

    def test_compound_interest_quarterly(self):
        assert call("compound_interest", 100000.0, 7.5, 365.0, 4.0) == pytest.approx(107713, abs=50)

    def test_compound_interest_zero_periods_means_monthly(self):
        monthly = call("compound_interest", 1000.0, 12.0, 365.0, 12.0)
        assert call("compound_interest", 1000.0, 12.0, 365.0, 0.0) == monthly

    def test_compound_interest_default_periods(self):
        monthly = call("compound_interest", 1000.0, 12.0, 365.0, 12.0)
        assert call("compound_interest", 1000.0, 12.0, 365.0) == monthly

    def test_compound_interest_is_total_value(self):
        assert call("compound_interest", 1000.0, 0.0, 365.0) == 1000

    def test_monthly_interest(self):
        assert call("monthly_interest", 1000.0, 1.0, 30.0) == pytest.approx(10)

    def test_daily_interest(self):
        assert call("daily_interest", 1000.0, 0.1, 10.0) == pytest.approx(10)


class TestMathFunctions:
    """Numeric helpers."""

    @pytest.mark.parametrize(
        "value,expected",
        [(2.5, 3), (-2.5, -3), (0.5, 1), (1.4, 1), (-1.6, -2), (3.0, 3)],
    )
    def test_round_half_away_from_zero(self, value, expected):
        assert call("round", value) == expected

    def test_floor_and_ceil(self):
        assert call("floor", -1.5) == -2
        assert call("ceil", -1.5) == -1

    def test_min_max_abs(self):
        assert call("min", 3.0, 4.0) == 3
        assert call("max", 3.0, 4.0) == 4
        assert call("abs", -3.0) == 3

    def test_pow_and_sqrt(self):
        assert call("pow", 2.0, 10.0) == 1024
        assert call("sqrt", 16.0) == 4

    def test_results_are_floats(self):
        assert isinstance(call("min", 3.0, 4.0), float)
        assert isinstance(call("round", 2.4), float)

    def test_if_else(self):
        assert call("if_else", True, 1.0, 2.0) == 1
        assert call("if_else", False, 1.0, 2.0) == 2

    def test_note_functions(self):
        assert call("parse_note_float", "Int:12.5 Per:M", "Int:") == 12.5
        assert call("parse_note_string", "Int:12.5 Per:M", "Per:") == "M"
        assert call("note_contains", "live loan", "live") is True
        assert call("note_contains", "live loan", "Live") is False


class TestInvokeChecks:
    """Runtime argument and result checks."""

    def test_wrong_argument_count(self):
        with pytest.raises(FormulaRuntimeError, match=r"takes 1 argument\(s\), got 2"):
            call("sqrt", 1.0, 2.0)

    def test_wrong_argument_type(self):
        with pytest.raises(FormulaRuntimeError, match="argument 1 must be a number, got string"):
            call("sqrt", "4")

    def test_boolean_is_not_a_number(self):
        with pytest.raises(FormulaRuntimeError):
            call("abs", True)

    def test_domain_error(self):
        with pytest.raises(FormulaRuntimeError, match="sqrt"):
            call("sqrt", -1.0)

    def test_overflow(self):
        with pytest.raises(FormulaRuntimeError):
            call("pow", 10.0, 400.0)

    def test_non_finite_result(self):
        spec = FunctionSpec("explode", (NUMBER,), NUMBER, lambda x: math.inf)
        with pytest.raises(FormulaRuntimeError, match="non-finite"):
            spec.invoke([1.0])

    def test_wrong_result_type(self):
        spec = FunctionSpec("liar", (NUMBER,), NUMBER, lambda x: "nope")
        with pytest.raises(FormulaRuntimeError, match="returned string, expected number"):
            spec.invoke([1.0])

    def test_error_carries_formula(self):
        with pytest.raises(FormulaRuntimeError) as exc_info:
            DEFAULT_FUNCTIONS["sqrt"].invoke([-1.0], formula="sqrt(-1)")
        assert exc_info.value.formula == "sqrt(-1)"


class TestFunctionSpecValidation:
    """Specs are validated when constructed."""

    def test_name_must_be_identifier(self):
        with pytest.raises(FunctionRegistrationError, match="identifier"):
            FunctionSpec("not valid", (NUMBER,), NUMBER, abs)

    def test_parameter_types_checked(self):
        with pytest.raises(FunctionRegistrationError, match="parameter type"):
            FunctionSpec("f", (float,), NUMBER, abs)

    def test_return_type_checked(self):
        with pytest.raises(FunctionRegistrationError, match="return type"):
            FunctionSpec("f", (NUMBER,), float, abs)

    def test_defaults_must_cover_optional_params(self):
        with pytest.raises(FunctionRegistrationError, match="default"):
            FunctionSpec("f", (NUMBER, NUMBER), NUMBER, lambda a, b: a, required=1)

    def test_default_type_checked(self):
        with pytest.raises(FunctionRegistrationError, match="is not a number"):
            FunctionSpec("f", (NUMBER, NUMBER), NUMBER, lambda a, b: a, required=1, defaults=("x",))

    def test_required_in_range(self):
        with pytest.raises(FunctionRegistrationError, match="outside"):
            FunctionSpec("f", (NUMBER,), NUMBER, lambda a: a, required=2)

    def test_implementation_arity_checked(self):
        with pytest.raises(FunctionRegistrationError, match="does not accept 2"):
            FunctionSpec("f", (NUMBER, NUMBER), NUMBER, lambda a: a)

    def test_implementation_must_be_callable(self):
        with pytest.raises(FunctionRegistrationError, match="not callable"):
            FunctionSpec("f", (NUMBER,), NUMBER, 42)

    def test_signature_text(self):
        assert DEFAULT_FUNCTIONS["compound_interest"].signature == (
            "compound_interest(principal: number, rate: number, days: number, "
            "compounds_per_year?: number) -> number"
        )


class TestFunctionRegistry:
    """Registry construction and lookup."""

    def test_default_registry_contents(self):
        assert set(DEFAULT_FUNCTIONS) == {
            "simple_interest", "compound_interest", "monthly_interest", "daily_interest",
            "min", "max", "round", "floor", "ceil", "abs", "pow", "sqrt", "clamp",
            "if_else", "parse_note_float", "parse_note_string", "note_contains",
        }

    def test_duplicate_rejected(self):
        spec = FunctionSpec("sqrt", (NUMBER,), NUMBER, math.sqrt)
        with pytest.raises(FunctionRegistrationError, match="already registered"):
            DEFAULT_FUNCTIONS.extended(spec)

    def test_non_spec_rejected(self):
        with pytest.raises(FunctionRegistrationError):
            FunctionRegistry([abs])

    def test_extended_leaves_original_untouched(self):
        spec = FunctionSpec("double", (NUMBER,), NUMBER, lambda x: x * 2)
        extended = DEFAULT_FUNCTIONS.extended(spec)
        assert "double" in extended
        assert "double" not in DEFAULT_FUNCTIONS

    def test_registry_is_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_FUNCTIONS["sqrt"] = None

    def test_registered_function_usable_in_formula(self):
        spec = FunctionSpec("double", (NUMBER,), NUMBER, lambda x: x * 2)
        registry = DEFAULT_FUNCTIONS.extended(spec)
        result = check_formula("double(amount)", sample_context(), functions=registry)
        assert result.ok
        assert compile_formula("double(amount)", functions=registry).result_type is NUMBER


class TestFormulaReference:
    """Editor catalogue built from the schema and registry."""

    def test_variables_listed(self):
        reference = formula_reference()
        names = [variable.name for variable in reference.variables]
        assert names[:2] == ["amount", "quantity"]
        assert "days_held" in names
        assert all(variable.description for variable in reference.variables)

    def test_every_function_documented(self):
        reference = formula_reference()
        assert {doc.name for doc in reference.functions} == set(DEFAULT_FUNCTIONS)
        assert all(doc.description and doc.example for doc in reference.functions)

    def test_examples_compile(self):
        for doc in formula_reference().functions:
            compile_formula(doc.example)

    def test_snippets_are_valid_formulas(self):
        reference = formula_reference()
        assert len(reference.snippets) == 4
        for snippet in reference.snippets:
            assert check_formula(snippet.formula).ok, snippet.label

"""
Typed Exception Hierarchy for the Valuation Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Valuation formulas are user-supplied text. Callers must be able to tell a
formula that does not parse apart from one that parses but fails while
running, and both apart from one that runs but returns the wrong kind of
value. Parsing error messages to make that distinction is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        value = evaluate_formula(source, context)
    except Exception as e:
        if "syntax" in str(e):  # FRAGILE - message might change
            show_editor_hint()

Example - RIGHT way (what this module enables):
    try:
        value = evaluate_formula(source, context)
    except FormulaSyntaxError as e:
        show_editor_hint(e.formula, e.offset)
    except FormulaError as e:
        api_response(code=e.code, detail=str(e))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ValuationKernelError:

    ValuationKernelError (base)
    |
    +-- FormulaError
    |   +-- FormulaSyntaxError
    |   |   +-- FormulaTooComplexError
    |   +-- FormulaRuntimeError
    |   |   +-- EvaluationBudgetExceededError
    |   +-- FormulaTypeError
    |
    +-- FunctionRegistrationError
    |
    +-- ValuationConfigError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Formula         | FORMULA_SYNTAX_ERROR        | Formula fails to compile
                | FORMULA_TOO_COMPLEX         | Compiled tree exceeds the node budget
                | FORMULA_RUNTIME_ERROR       | Bad call, division by zero, non-finite
                | EVALUATION_BUDGET_EXCEEDED  | Evaluation exceeds the step budget
                | FORMULA_TYPE_ERROR          | Result is not a number
----------------|-----------------------------|-----------------------------------------
Registry        | FUNCTION_REGISTRATION_ERROR | Function spec rejected at registration
----------------|-----------------------------|-----------------------------------------
Config          | VALUATION_CONFIG_INVALID    | Valuation rules fail validation

===============================================================================
HANDLING PATTERNS
===============================================================================

1. INTERACTIVE PATHS (validate / preview) surface any FormulaError as one
   descriptive message for the user to correct.

2. LOAN VALUATION recovers locally: a FormulaError for one posting falls
   back to the raw posting amount and logs a warning.

3. CONFIGURATION errors abort loading; the previous snapshot stays active.
"""


class ValuationKernelError(Exception):
    """
    Base exception for all valuation kernel errors.

    All subclasses must have a `code` class attribute
    for machine-readable error identification.
    """

    code: str = "VALUATION_KERNEL_ERROR"


# Formula exceptions


class FormulaError(ValuationKernelError):
    """Base exception for formula compilation and evaluation errors."""

    code: str = "FORMULA_ERROR"

    def __init__(self, formula: str, message: str):
        self.formula = formula
        super().__init__(message)


class FormulaSyntaxError(FormulaError):
    """Formula source cannot be compiled into a program."""

    code: str = "FORMULA_SYNTAX_ERROR"

    def __init__(self, formula: str, detail: str, offset: int = 0):
        self.detail = detail
        self.offset = offset
        location = f" at column {offset}" if offset else ""
        super().__init__(
            formula, f"Invalid formula {formula!r}{location}: {detail}"
        )


class FormulaTooComplexError(FormulaSyntaxError):
    """Compiled formula exceeds the maximum number of AST nodes."""

    code: str = "FORMULA_TOO_COMPLEX"

    def __init__(self, formula: str, node_count: int, limit: int):
        self.node_count = node_count
        self.limit = limit
        super().__init__(
            formula,
            f"formula has more than {limit} nodes",
        )


class FormulaRuntimeError(FormulaError):
    """Formula compiled but failed while running."""

    code: str = "FORMULA_RUNTIME_ERROR"

    def __init__(self, formula: str, detail: str):
        self.detail = detail
        super().__init__(
            formula, f"Formula {formula!r} failed: {detail}"
        )


class EvaluationBudgetExceededError(FormulaRuntimeError):
    """Evaluation took more steps than the configured budget."""

    code: str = "EVALUATION_BUDGET_EXCEEDED"

    def __init__(self, formula: str, max_steps: int):
        self.max_steps = max_steps
        super().__init__(
            formula, f"evaluation exceeded {max_steps} steps"
        )


class FormulaTypeError(FormulaError):
    """Formula ran but produced a value that is not a number."""

    code: str = "FORMULA_TYPE_ERROR"

    def __init__(self, formula: str, result_type: str):
        self.result_type = result_type
        super().__init__(
            formula,
            f"formula must return a number, got {result_type}",
        )


# Registry exceptions


class FunctionRegistrationError(ValuationKernelError):
    """A function spec was rejected when building a function registry."""

    code: str = "FUNCTION_REGISTRATION_ERROR"

    def __init__(self, function_name: str, reason: str):
        self.function_name = function_name
        self.reason = reason
        super().__init__(
            f"Cannot register function {function_name!r}: {reason}"
        )


# Configuration exceptions


class ValuationConfigError(ValuationKernelError):
    """Valuation rule configuration failed validation."""

    code: str = "VALUATION_CONFIG_INVALID"

    def __init__(self, errors: list[str], source: str = ""):
        self.errors = list(errors)
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(
            f"Valuation configuration invalid{where}:\n"
            + "\n".join(f"  - {e}" for e in self.errors)
        )

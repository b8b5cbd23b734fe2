"""Public API for Formulator - returns structured objects without side effects."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from .arithmetic import SympyEvaluator
from .evaluator import TEST_VALUE, FormulaEvaluator
from .types import EvalResult, EvaluationError, ValidationError

_DEFAULT_EVALUATOR = FormulaEvaluator(SympyEvaluator())


def default_evaluator() -> FormulaEvaluator:
    """Return the shared FormulaEvaluator backed by SymPy."""
    return _DEFAULT_EVALUATOR


def substitute(expression: str, bindings: Mapping[str, Any] | None = None) -> str:
    """Substitute variable values and calculator symbols into a formula.

    Example:
        >>> from formulator_pkg.api import substitute
        >>> substitute("π * r²", {"r": 2})
        '3.141592653589793 * 2**2'
        >>> substitute("radius + r", {"r": 5})
        'radius + 5'
    """
    return _DEFAULT_EVALUATOR.substitute(expression, bindings)


def evaluate(expression: str, bindings: Mapping[str, Any] | None = None) -> EvalResult:
    """Evaluate a formula expression with optional variable values.

    Args:
        expression: Formula template (e.g., "π * r²", "a + b")
        bindings: Variable values (e.g., {"r": 2})

    Returns:
        EvalResult with the value and the substituted expression

    Example:
        >>> from formulator_pkg.api import evaluate
        >>> evaluate("π * r²", {"r": 2}).value
        12.566370614359172
        >>> evaluate("invalid(2)").ok
        False
    """
    try:
        substituted = _DEFAULT_EVALUATOR.substitute(expression, bindings)
        value = _DEFAULT_EVALUATOR.evaluate_substituted(substituted)
    except (EvaluationError, ValidationError) as e:
        return EvalResult(ok=False, error=e.message, error_code=e.code)
    return EvalResult(ok=True, value=value, expression=substituted)


def check_formula(expression: str, variables: Sequence[str]) -> tuple[bool, str | None]:
    """Check that a formula evaluates with every variable bound to 1.

    Returns:
        Tuple of (is_valid, error_message)
    """
    bindings = {variable: TEST_VALUE for variable in variables}
    try:
        _DEFAULT_EVALUATOR.evaluate_formula(expression, bindings)
    except (EvaluationError, ValidationError) as e:
        return False, e.message
    return True, None

"""Default arithmetic evaluator backed by SymPy.

The formula evaluator only needs a callable ``evaluate(expression) -> float``
that raises :class:`EvaluationError` on malformed input.  This module
provides that capability: it parses with the whitelisting parser, refuses
expressions that still contain free symbols, and evaluates numerically.
"""

from __future__ import annotations

import math

import sympy as sp

from .config import EVAL_PRECISION
from .logging_config import get_logger
from .parser import parse_expression
from .types import EvaluationError, ValidationError

logger = get_logger("arithmetic")

# Imaginary parts below this are treated as rounding noise
NUMERIC_TOLERANCE = 1e-10


def _to_real(value: sp.Basic, expression: str) -> float:
    """Convert a numerically evaluated SymPy value into a finite float."""
    if value.has(sp.zoo, sp.nan, sp.oo, sp.S.NegativeInfinity):
        raise EvaluationError(
            f"Result of '{expression}' is not finite (division by zero?)", "NOT_FINITE"
        )
    try:
        result = complex(value)
    except OverflowError as e:
        raise EvaluationError(
            f"Result of '{expression}' is too large", "NOT_FINITE"
        ) from e
    except (TypeError, ValueError) as e:
        raise EvaluationError(
            f"Expression '{expression}' did not evaluate to a number", "NOT_NUMERIC"
        ) from e

    if abs(result.imag) > NUMERIC_TOLERANCE:
        raise EvaluationError(
            f"Result of '{expression}' is not a real number", "NOT_REAL"
        )
    if not math.isfinite(result.real):
        raise EvaluationError(f"Result of '{expression}' is not finite", "NOT_FINITE")
    return result.real


def evaluate_expression(expression: str) -> float:
    """Evaluate a closed arithmetic expression to a float.

    Args:
        expression: Arithmetic text such as "3.141592653589793 * 2**2"

    Returns:
        The numeric value

    Raises:
        EvaluationError: If the expression is invalid, still contains
            undefined names, or does not produce a finite real number
    """
    logger.debug("Evaluating expression: %s", expression[:100])
    try:
        expr = parse_expression(expression)
    except ValidationError as e:
        raise EvaluationError(e.message, e.code) from e

    if not getattr(expr, "is_number", False):
        free = sorted(str(s) for s in getattr(expr, "free_symbols", set()))
        if free:
            raise EvaluationError(
                f"Expression contains undefined variables: {', '.join(free)}",
                "UNBOUND_SYMBOL",
            )
        raise EvaluationError(
            f"Expression '{expression}' did not evaluate to a number", "NOT_NUMERIC"
        )

    try:
        value = sp.N(expr, EVAL_PRECISION)
    except (ValueError, TypeError, ArithmeticError) as e:
        raise EvaluationError(f"Evaluation failed: {e}", "EVAL_ERROR") from e

    result = _to_real(value, expression)
    logger.debug("Evaluated %s -> %r", expression[:100], result)
    return result


class SympyEvaluator:
    """Callable evaluator object, injectable wherever an evaluator is required."""

    name = "sympy"

    def __call__(self, expression: str) -> float:
        return evaluate_expression(expression)

    def __repr__(self) -> str:
        return f"SympyEvaluator(sympy={sp.__version__})"

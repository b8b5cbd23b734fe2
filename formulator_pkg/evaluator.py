"""Formula substitution and evaluation.

A formula is a template such as ``"π * r²"`` with declared variables
(``["r"]``).  Evaluating it is a two step process:

1. Substitution: every whole-word occurrence of a bound variable is
   replaced with the value's text, then the calculator symbols are
   rewritten into plain arithmetic (``π``, ``²``, ``³``, ``√``).
2. Evaluation: the resulting string is handed to an evaluator callable,
   ``evaluate(expression) -> float``, supplied at construction time.

Examples:
    >>> from formulator_pkg.arithmetic import SympyEvaluator
    >>> fe = FormulaEvaluator(SympyEvaluator())
    >>> fe.substitute("π * r²", {"r": 2})
    '3.141592653589793 * 2**2'
    >>> fe.evaluate_formula("π * r²", {"r": 2})
    12.566370614359172
"""

from __future__ import annotations

import math
import numbers
import re
from decimal import Decimal
from typing import Any, Callable, Mapping, Sequence

from .config import (
    SQRT_OPERAND_REGEX,
    SQRT_PREFIX,
    SQRT_UNICODE_REGEX,
    SYMBOL_REPLACEMENTS,
    VAR_NAME_RE,
)
from .logging_config import get_logger
from .types import EvaluationError, InvalidIdentifierError, ValidationError

logger = get_logger("evaluator")

Evaluator = Callable[[str], float]

# Placeholder bound to every variable when checking that a formula evaluates
TEST_VALUE = 1

# Characters that end or start an operand next to an inline constant
_OPERAND_END = re.compile(r"[A-Za-z0-9_.)²³]")
_OPERAND_START = re.compile(r"[A-Za-z0-9_.(√π]")


def validate_identifier(name: Any) -> bool:
    """Return True if ``name`` is usable as a formula or variable name.

    Identifiers start with an ASCII letter or underscore followed by ASCII
    letters, digits or underscores.  Empty strings, leading digits, spaces
    and hyphens are all rejected.
    """
    return isinstance(name, str) and VAR_NAME_RE.fullmatch(name) is not None


def format_value(value: Any) -> str:
    """Render a bound value as expression text.

    Integral values have no decimal point, other floats use ``repr`` so no
    precision is lost, and negative values are parenthesized so that
    ``x²`` with ``x = -3`` means ``(-3)**2``.

    Raises:
        ValidationError: If the value is not a finite real number
    """
    if isinstance(value, bool):
        raise ValidationError(
            f"Boolean {value!r} is not a numeric value", "INVALID_VALUE"
        )
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise ValidationError(
                f"'{value}' is not a numeric value", "INVALID_VALUE"
            )
    if isinstance(value, numbers.Integral):
        try:
            text = str(int(value))
        except ValueError:
            # Beyond the interpreter's int-to-str digit limit
            raise ValidationError(
                f"Integer value with {int(value).bit_length()} bits is too large",
                "INVALID_VALUE",
            )
    elif isinstance(value, (numbers.Real, Decimal)):
        try:
            number = float(value)
        except OverflowError:
            raise ValidationError(
                f"Value of type {type(value).__name__} is too large", "INVALID_VALUE"
            )
        if not math.isfinite(number):
            raise ValidationError(
                f"Value {value!r} is not finite", "INVALID_VALUE"
            )
        text = str(int(number)) if number.is_integer() else repr(number)
    else:
        raise ValidationError(
            f"Value {value!r} of type {type(value).__name__} is not numeric",
            "INVALID_VALUE",
        )
    return f"({text})" if text.startswith("-") else text


def _replace_constant(expression: str, symbol: str, literal: str) -> str:
    """Replace an inline constant, adding ``*`` where it touches an operand."""

    def repl(match: re.Match) -> str:
        start, end = match.span()
        before = expression[start - 1] if start > 0 else ""
        after = expression[end] if end < len(expression) else ""
        prefix = "*" if before and _OPERAND_END.match(before) else ""
        suffix = "*" if after and _OPERAND_START.match(after) else ""
        return f"{prefix}{literal}{suffix}"

    return re.sub(re.escape(symbol), repl, expression)


def _replace_sqrt(expression: str) -> str:
    """Rewrite ``√(...)`` and ``√operand`` into ``sqrt(...)`` calls."""
    expression = SQRT_UNICODE_REGEX.sub(f"{SQRT_PREFIX}(", expression)
    expression = SQRT_OPERAND_REGEX.sub(
        lambda m: f"{SQRT_PREFIX}({m.group(1)})", expression
    )
    # A dangling √ is left for the evaluator to reject
    return expression.replace("√", SQRT_PREFIX)


def replace_symbols(expression: str) -> str:
    """Apply the fixed symbol replacements: π, then ², then ³, then √."""
    for symbol, replacement in SYMBOL_REPLACEMENTS:
        if symbol == "π":
            expression = _replace_constant(expression, symbol, replacement)
        else:
            expression = expression.replace(symbol, replacement)
    return _replace_sqrt(expression)


def substitute_variables(expression: str, bindings: Mapping[str, Any]) -> str:
    """Replace whole-word variable occurrences with their values in one pass.

    All names are matched by a single alternation over the original text,
    so digits or names introduced by one value are never rescanned.
    Word boundaries are ASCII, which lets ``r`` match in ``r²`` and ``πr``
    but not inside ``radius``.

    Raises:
        InvalidIdentifierError: If a binding key is not an identifier
        ValidationError: If a bound value is not numeric
    """
    if not bindings:
        return expression
    rendered: dict[str, str] = {}
    for name, value in bindings.items():
        if not validate_identifier(name):
            raise InvalidIdentifierError(
                f"Invalid variable name: {name!r}. Must start with a letter or "
                "underscore and contain only letters, digits and underscores."
            )
        rendered[name] = format_value(value)

    # Longest first so a name is never shadowed by one of its prefixes
    names = sorted(rendered, key=len, reverse=True)
    pattern = re.compile(
        r"\b(" + "|".join(re.escape(n) for n in names) + r")\b", re.ASCII
    )
    return pattern.sub(lambda m: rendered[m.group(1)], expression)


class FormulaEvaluator:
    """Turns formula templates plus bindings into numbers.

    Args:
        evaluate: Callable computing the value of a finished arithmetic
            string; must raise :class:`EvaluationError` on bad input.
    """

    def __init__(self, evaluate: Evaluator):
        if not callable(evaluate):
            raise TypeError("FormulaEvaluator requires a callable evaluator")
        self._evaluate = evaluate

    validate_identifier = staticmethod(validate_identifier)

    def substitute(self, expression: str, bindings: Mapping[str, Any] | None = None) -> str:
        """Substitute variables, then calculator symbols, into ``expression``."""
        substituted = replace_symbols(substitute_variables(expression, bindings or {}))
        logger.debug("Substituted %r -> %r", expression, substituted)
        return substituted

    def evaluate_substituted(self, expression: str) -> float:
        """Evaluate text already produced by :meth:`substitute`.

        Raises:
            EvaluationError: With the evaluator's message when evaluation fails
        """
        try:
            return self._evaluate(expression)
        except EvaluationError:
            raise
        except ValidationError as e:
            raise EvaluationError(e.message, e.code) from e
        except Exception as e:
            # Foreign evaluators report failures with their own exception types
            raise EvaluationError(str(e)) from e

    def test_formula(self, expression: str, variables: Sequence[str]) -> bool:
        """Return True if the formula evaluates with every variable bound to 1."""
        bindings = {variable: TEST_VALUE for variable in variables}
        try:
            self.evaluate_substituted(self.substitute(expression, bindings))
        except (EvaluationError, ValidationError) as e:
            logger.debug("Formula %r failed test evaluation: %s", expression, e)
            return False
        return True

    def evaluate_formula(self, expression: str, bindings: Mapping[str, Any] | None = None) -> float:
        """Substitute ``bindings`` into ``expression`` and evaluate it.

        Raises:
            EvaluationError: With the evaluator's message when evaluation fails
            ValidationError: If a binding name or value is malformed
        """
        return self.evaluate_substituted(self.substitute(expression, bindings))

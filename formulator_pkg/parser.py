"""Expression parsing module.

This module handles:
- Input sanitization and validation (length, forbidden tokens, balancing)
- SymPy expression parsing with a whitelist of names
- Expression-tree validation (only whitelisted functions, bounded size)
- Number formatting for display
"""

from __future__ import annotations

from functools import lru_cache
from tokenize import TokenError
from typing import Any

import sympy as sp
from sympy import parse_expr

from .config import (
    ALLOWED_SYMPY_NAMES,
    CACHE_SIZE_PARSE,
    MAX_EXPRESSION_DEPTH,
    MAX_EXPRESSION_NODES,
    MAX_INPUT_LENGTH,
    OUTPUT_PRECISION,
    TRANSFORMATIONS,
)
from .logging_config import get_logger
from .types import ValidationError

logger = get_logger("parser")

# Basic denylist to avoid dangerous tokens before SymPy parsing
FORBIDDEN_TOKENS = (
    "__",
    "import",
    "lambda",
    "eval",
    "exec",
    "open",
    "os.",
    "sys.",
    "subprocess",
    "builtins",
    "getattr",
    "setattr",
    "delattr",
    "compile",
    "globals",
    "locals",
    "memoryview",
    "bytes",
    "bytearray",
    ";",
    "'",
    '"',
)

# Names of SymPy function classes the whitelisted names produce
ALLOWED_FUNCTION_NAMES = {
    "sin",
    "cos",
    "tan",
    "asin",
    "acos",
    "atan",
    "log",
    "exp",
    "Abs",
    "factorial",
}


def format_number(val: Any, precision: int = OUTPUT_PRECISION) -> str:
    """Format a numeric value with specified precision.

    Args:
        val: Numeric value to format
        precision: Number of significant digits (default: OUTPUT_PRECISION)

    Returns:
        Formatted string representation of the number
    """
    try:
        fmt = "{:." + str(int(precision)) + "g}"
        return fmt.format(float(val))
    except (ValueError, TypeError, OverflowError):
        return str(val)


def is_balanced(input_str: str) -> tuple[bool, int | None]:
    """Check if parentheses/brackets are balanced. Returns (is_balanced, error_position)."""
    pairs = {"(": ")", "[": "]", "{": "}"}
    stack: list[tuple[str, int]] = []  # (char, position)
    for i, char in enumerate(input_str):
        if char in pairs:
            stack.append((char, i))
        elif char in pairs.values():
            if not stack:
                return False, i
            opening, pos = stack.pop()
            if pairs[opening] != char:
                return False, i
    if stack:
        return False, stack[0][1]  # Return position of first unmatched
    return True, None


def validate_input(input_str: str) -> str:
    """Run the cheap textual checks that precede parsing.

    Args:
        input_str: Expression text after formula substitution

    Returns:
        The stripped expression

    Raises:
        ValidationError: If input is empty, too long, contains forbidden tokens,
                        has unbalanced or empty parentheses
    """
    expr = input_str.strip() if input_str else ""
    if not expr:
        raise ValidationError("Empty expression", "EMPTY_INPUT")
    if len(expr) > MAX_INPUT_LENGTH:
        raise ValidationError(
            f"Input too long (max {MAX_INPUT_LENGTH} characters)", "TOO_LONG"
        )
    lowered = expr.lower()
    for token in FORBIDDEN_TOKENS:
        if token in lowered:
            logger.warning("Rejected forbidden token %r", token)
            raise ValidationError(
                f"Input contains forbidden token: {token!r}", "FORBIDDEN_TOKEN"
            )
    balanced, position = is_balanced(expr)
    if not balanced:
        raise ValidationError(
            f"Unbalanced parentheses at position {position}", "UNBALANCED"
        )
    if "()" in expr.replace(" ", ""):
        raise ValidationError("Empty parentheses in expression", "EMPTY_PARENTHESES")
    return expr


def _function_name(expr: sp.Function) -> str:
    func = expr.func
    if hasattr(func, "__name__"):
        return func.__name__
    return str(func)


def _validate_expression_tree(
    expr: Any, depth: int = 0, node_count: list[int] | None = None
) -> None:
    """Validate expression tree structure - reject unknown functions and oversize trees.

    Args:
        expr: Expression to validate
        depth: Current depth in the tree
        node_count: List to track total node count (modified in place)
    """
    if node_count is None:
        node_count = [0]
    node_count[0] += 1
    if node_count[0] > MAX_EXPRESSION_NODES:
        raise ValidationError(
            f"Expression too complex (>{MAX_EXPRESSION_NODES} nodes)", "TOO_COMPLEX"
        )
    if depth > MAX_EXPRESSION_DEPTH:
        raise ValidationError(
            f"Expression too deeply nested (>{MAX_EXPRESSION_DEPTH} levels)", "TOO_DEEP"
        )

    if isinstance(expr, (sp.Symbol, sp.Number, sp.NumberSymbol)):
        return
    if isinstance(expr, sp.Function):
        func_name = _function_name(expr)
        if func_name not in ALLOWED_FUNCTION_NAMES:
            logger.warning("Blocked forbidden function %r", func_name)
            raise ValidationError(
                f"Function '{func_name}' not allowed", "FORBIDDEN_FUNCTION"
            )
        for arg in expr.args:
            _validate_expression_tree(arg, depth + 1, node_count)
        return
    if isinstance(expr, (sp.Add, sp.Mul, sp.Pow)):
        for arg in expr.args:
            _validate_expression_tree(arg, depth + 1, node_count)
        return
    if isinstance(expr, sp.Basic):
        for arg in expr.args:
            _validate_expression_tree(arg, depth + 1, node_count)
        return

    raise ValidationError(
        f"Expression type '{type(expr).__name__}' not allowed", "FORBIDDEN_TYPE"
    )


@lru_cache(maxsize=CACHE_SIZE_PARSE)
def parse_expression(expr_str: str) -> sp.Basic:
    """Parse and validate an arithmetic expression string.

    Args:
        expr_str: Expression text, e.g. "3.141592653589793 * 2**2"

    Returns:
        Validated SymPy expression

    Raises:
        ValidationError: If the text fails validation or SymPy cannot parse it
    """
    expr = validate_input(expr_str)
    try:
        parsed = parse_expr(
            expr,
            local_dict=dict(ALLOWED_SYMPY_NAMES),
            transformations=TRANSFORMATIONS,
            evaluate=True,
        )
    except (
        SyntaxError,
        TokenError,
        TypeError,
        ValueError,
        AttributeError,
        ZeroDivisionError,
    ) as e:
        logger.debug("Parse error for %r: %s", expr, e)
        raise ValidationError(
            f"Invalid expression '{expr}': {e}", "PARSE_ERROR"
        ) from e
    except Exception as e:
        logger.exception("Unexpected parse failure for %r", expr)
        raise ValidationError(
            f"Invalid expression '{expr}': {e}", "PARSE_ERROR"
        ) from e

    if not isinstance(parsed, sp.Basic):
        raise ValidationError(
            f"Expression '{expr}' is not arithmetic", "FORBIDDEN_TYPE"
        )
    _validate_expression_tree(parsed)
    return parsed


def clear_parse_cache() -> None:
    """Drop cached parse results (used after configuration changes)."""
    parse_expression.cache_clear()

"""Tests for failure modes and invalid input handling."""

import pytest

from formulator_pkg import parser
from formulator_pkg.api import default_evaluator, evaluate
from formulator_pkg.parser import clear_parse_cache, parse_expression, validate_input
from formulator_pkg.types import EvaluationError, InvalidIdentifierError, ValidationError


class TestInputValidationFailures:
    """Test input validation failure modes."""

    def test_whitespace_only(self):
        with pytest.raises(ValidationError):
            validate_input("   ")

    def test_unbalanced_brackets(self):
        with pytest.raises(ValidationError):
            validate_input("[x + 1")

    def test_unbalanced_braces(self):
        with pytest.raises(ValidationError):
            validate_input("{x + 1")

    def test_forbidden_token_eval(self):
        with pytest.raises(ValidationError):
            validate_input("eval('1+1')")

    def test_too_deep_expression(self):
        """Test expression exceeding depth limit."""
        deep_expr = "sin(" * 101 + "1" + ")" * 101
        with pytest.raises(ValidationError) as exc_info:
            parse_expression(deep_expr)
        assert exc_info.value.code == "TOO_DEEP"

    def test_too_complex_expression(self, monkeypatch):
        monkeypatch.setattr(parser, "MAX_EXPRESSION_NODES", 5)
        clear_parse_cache()
        try:
            with pytest.raises(ValidationError) as exc_info:
                parse_expression("a*b + c*d + g*h")
            assert exc_info.value.code == "TOO_COMPLEX"
        finally:
            clear_parse_cache()


class TestEvaluationFailures:
    """Failures surface as errors, never as bogus numbers."""

    def test_division_by_zero(self):
        with pytest.raises(EvaluationError):
            default_evaluator().evaluate_formula("a / b", {"a": 1, "b": 0})

    def test_overflow(self):
        result = evaluate("10**400 * x", {"x": 1})
        assert result.ok is False
        assert result.error_code == "NOT_FINITE"

    def test_dangling_sqrt(self):
        result = evaluate("2 + √")
        assert result.ok is False

    def test_binding_with_bad_name(self):
        with pytest.raises(InvalidIdentifierError):
            default_evaluator().evaluate_formula("x", {"x y": 1})

    @pytest.mark.parametrize("value", [True, None, "1,5", float("inf"), [2]])
    def test_bad_values(self, value):
        result = evaluate("x + 1", {"x": value})
        assert result.ok is False
        assert result.error_code == "INVALID_VALUE"

"""Unit tests for formula substitution and evaluation."""

import math
import sys
import unittest
from decimal import Decimal
from fractions import Fraction

from formulator_pkg.arithmetic import SympyEvaluator
from formulator_pkg.evaluator import (
    FormulaEvaluator,
    format_value,
    replace_symbols,
    substitute_variables,
    validate_identifier,
)
from formulator_pkg.types import EvaluationError, InvalidIdentifierError, ValidationError


class RecordingEvaluator:
    """Evaluator double that records the expressions it receives."""

    def __init__(self, result=1.0, error=None):
        self.calls = []
        self.result = result
        self.error = error

    def __call__(self, expression):
        self.calls.append(expression)
        if self.error is not None:
            raise self.error
        return self.result


class TestValidateIdentifier(unittest.TestCase):
    """Test identifier validation for formula and variable names."""

    def test_valid_names(self):
        for name in ["circle_area", "area2", "_private", "r", "radius", "_temp", "var2", "X"]:
            self.assertTrue(validate_identifier(name), name)

    def test_invalid_names(self):
        for name in ["2invalid", "invalid-name", "invalid name", "", "2var", "var-name", "a.b"]:
            self.assertFalse(validate_identifier(name), name)

    def test_non_ascii_and_non_strings(self):
        self.assertFalse(validate_identifier("π"))
        self.assertFalse(validate_identifier("café"))
        self.assertFalse(validate_identifier(None))
        self.assertFalse(validate_identifier(42))

    def test_trailing_newline_rejected(self):
        self.assertFalse(validate_identifier("name\n"))


class TestFormatValue(unittest.TestCase):
    """Test rendering of bound values."""

    def test_integers(self):
        self.assertEqual(format_value(2), "2")
        self.assertEqual(format_value(0), "0")

    def test_integral_float_has_no_decimal_point(self):
        self.assertEqual(format_value(2.0), "2")

    def test_fractional_values(self):
        self.assertEqual(format_value(2.5), "2.5")
        self.assertEqual(format_value(0.1), "0.1")
        self.assertEqual(format_value(Fraction(1, 4)), "0.25")
        self.assertEqual(format_value(Decimal("1.5")), "1.5")

    def test_negative_values_are_parenthesized(self):
        self.assertEqual(format_value(-3), "(-3)")
        self.assertEqual(format_value(-0.5), "(-0.5)")

    def test_numeric_strings(self):
        self.assertEqual(format_value("4"), "4")
        self.assertEqual(format_value(" 1.25 "), "1.25")

    def test_rejects_non_numeric(self):
        for value in [True, "abc", None, [1], float("nan"), float("inf")]:
            with self.assertRaises(ValidationError):
                format_value(value)

    @unittest.skipUnless(
        getattr(sys, "get_int_max_str_digits", lambda: 0)(),
        "interpreter has no int-to-str digit limit",
    )
    def test_integer_past_digit_limit(self):
        with self.assertRaises(ValidationError) as ctx:
            format_value(10 ** (sys.get_int_max_str_digits() + 10))
        self.assertEqual(ctx.exception.code, "INVALID_VALUE")

    def test_fraction_too_large_for_float(self):
        with self.assertRaises(ValidationError) as ctx:
            format_value(Fraction(10**400, 3))
        self.assertEqual(ctx.exception.code, "INVALID_VALUE")

    def test_large_binding_is_rejected_before_evaluation(self):
        recorder = RecordingEvaluator()
        fe = FormulaEvaluator(recorder)
        with self.assertRaises(ValidationError):
            fe.evaluate_formula("x + 1", {"x": Fraction(10**400, 3)})
        self.assertEqual(recorder.calls, [])


class TestSubstitute(unittest.TestCase):
    """Test variable and symbol substitution."""

    def setUp(self):
        self.fe = FormulaEvaluator(RecordingEvaluator())

    def test_circle_area(self):
        self.assertEqual(
            self.fe.substitute("π * r²", {"r": 2}), "3.141592653589793 * 2**2"
        )

    def test_whole_word_only(self):
        self.assertEqual(self.fe.substitute("radius + r", {"r": 5}), "radius + 5")

    def test_name_followed_by_digit_is_untouched(self):
        self.assertEqual(self.fe.substitute("r2 + r", {"r": 1}), "r2 + 1")

    def test_multiple_variables(self):
        self.assertEqual(self.fe.substitute("a + b * a", {"a": 1, "b": 2}), "1 + 2 * 1")

    def test_prefix_names_both_bound(self):
        result = self.fe.substitute("r * radius", {"r": 2, "radius": 10})
        self.assertEqual(result, "2 * 10")

    def test_values_are_not_rescanned(self):
        # x's value contains digits that look like nothing, y's name must not
        # be searched for inside text inserted for x
        result = substitute_variables("x + y", {"x": 12, "y": 3})
        self.assertEqual(result, "12 + 3")
        result = substitute_variables("a + b", {"a": 1e-05, "b": 7})
        self.assertEqual(result, "1e-05 + 7")

    def test_cube_and_sqrt(self):
        self.assertEqual(self.fe.substitute("s³", {"s": 3}), "3**3")
        self.assertEqual(self.fe.substitute("√x", {"x": 4}), "sqrt(4)")
        self.assertEqual(self.fe.substitute("√(a + b)", {"a": 1, "b": 3}), "sqrt(1 + 3)")

    def test_sqrt_of_negative_value_keeps_one_call(self):
        self.assertEqual(self.fe.substitute("√x", {"x": -4}), "sqrt(-4)")

    def test_negative_value_squared(self):
        self.assertEqual(self.fe.substitute("x²", {"x": -3}), "(-3)**2")

    def test_symbols_without_bindings(self):
        self.assertEqual(self.fe.substitute("π"), "3.141592653589793")
        self.assertEqual(self.fe.substitute("2²"), "2**2")

    def test_pi_next_to_operand_gets_multiplication(self):
        self.assertEqual(replace_symbols("2π"), "2*3.141592653589793")
        self.assertEqual(replace_symbols("πr"), "3.141592653589793*r")
        self.assertEqual(replace_symbols("ππ"), "3.141592653589793*3.141592653589793")
        self.assertEqual(replace_symbols("π²"), "3.141592653589793**2")

    def test_rejects_bad_binding_name(self):
        with self.assertRaises(InvalidIdentifierError):
            self.fe.substitute("x", {"2x": 1})

    def test_rejects_bad_binding_value(self):
        with self.assertRaises(ValidationError):
            self.fe.substitute("x", {"x": "abc"})


class TestEvaluateFormula(unittest.TestCase):
    """Test evaluation through the SymPy evaluator."""

    def setUp(self):
        self.fe = FormulaEvaluator(SympyEvaluator())

    def test_circle_area(self):
        self.assertEqual(self.fe.evaluate_formula("π * r²", {"r": 2}), 12.566370614359172)

    def test_operator_precedence(self):
        self.assertEqual(self.fe.evaluate_formula("a + b * c", {"a": 1, "b": 2, "c": 3}), 7.0)
        self.assertEqual(self.fe.evaluate_formula("x²", {"x": -3}), 9.0)

    def test_decimals(self):
        self.assertAlmostEqual(self.fe.evaluate_formula("a * b", {"a": 0.5, "b": 0.25}), 0.125)

    def test_sqrt(self):
        self.assertAlmostEqual(self.fe.evaluate_formula("√x", {"x": 16}), 4.0)

    def test_evaluator_error_propagates(self):
        with self.assertRaises(EvaluationError) as ctx:
            self.fe.evaluate_formula("1 / x", {"x": 0})
        self.assertEqual(ctx.exception.code, "NOT_FINITE")

    def test_unbound_variable(self):
        with self.assertRaises(EvaluationError):
            self.fe.evaluate_formula("a + b", {"a": 1})


class TestTestFormula(unittest.TestCase):
    """Test the pre-save formula check."""

    def setUp(self):
        self.fe = FormulaEvaluator(SympyEvaluator())

    def test_valid_formulas(self):
        self.assertTrue(self.fe.test_formula("π * r²", ["r"]))
        self.assertTrue(self.fe.test_formula("a + b", ["a", "b"]))
        self.assertTrue(self.fe.test_formula("√x", ["x"]))

    def test_invalid_call(self):
        self.assertFalse(self.fe.test_formula("invalid()", []))
        self.assertFalse(self.fe.test_formula("invalid(2)", []))

    def test_undeclared_variable(self):
        self.assertFalse(self.fe.test_formula("a + b", ["a"]))

    def test_placeholder_is_one(self):
        recorder = RecordingEvaluator()
        FormulaEvaluator(recorder).test_formula("a + b", ["a", "b"])
        self.assertEqual(recorder.calls, ["1 + 1"])


class TestInjectedEvaluator(unittest.TestCase):
    """Test that any callable can serve as the evaluator."""

    def test_requires_callable(self):
        with self.assertRaises(TypeError):
            FormulaEvaluator(None)

    def test_receives_substituted_expression(self):
        recorder = RecordingEvaluator(result=12.566370614359172)
        fe = FormulaEvaluator(recorder)
        self.assertEqual(fe.evaluate_formula("π * r²", {"r": 2}), 12.566370614359172)
        self.assertEqual(recorder.calls, ["3.141592653589793 * 2**2"])

    def test_foreign_error_is_wrapped(self):
        fe = FormulaEvaluator(RecordingEvaluator(error=ValueError("Invalid function")))
        with self.assertRaises(EvaluationError) as ctx:
            fe.evaluate_formula("invalid()")
        self.assertEqual(str(ctx.exception), "Invalid function")
        self.assertFalse(fe.test_formula("invalid()", []))

    def test_python_evaluator(self):
        # A plain arithmetic evaluator that understands sqrt calls
        def evaluate(expression):
            try:
                return float(eval(expression, {"__builtins__": {}}, {"sqrt": math.sqrt}))
            except Exception as e:
                raise EvaluationError(str(e))

        fe = FormulaEvaluator(evaluate)
        self.assertEqual(fe.evaluate_formula("π * r²", {"r": 2}), 12.566370614359172)
        self.assertFalse(fe.test_formula("invalid()", []))


if __name__ == "__main__":
    unittest.main()

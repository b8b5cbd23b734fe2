"""Custom formula management.

This module provides the operations behind the formula manager dialog:

1. Formula Definition:
   - Validate the formula name and its declared variables
   - Reject duplicate names and duplicate variables
   - Test-evaluate the expression with every variable bound to 1 before saving

2. Formula Use:
   - Evaluate a stored formula by name with user-supplied variable values
   - Count successful uses

3. Housekeeping:
   - List and delete stored formulas

Examples:
    Create: create_formula("circle_area", "π * r²", ["r"])
    Use: use_formula("circle_area", {"r": 2}) → 12.566370614359172
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from .evaluator import FormulaEvaluator, validate_identifier
from .logging_config import get_logger
from .store import FormulaStore
from .types import (
    DuplicateNameError,
    EvaluationError,
    Formula,
    InvalidIdentifierError,
    ValidationError,
)

logger = get_logger("manager")


def parse_variables(text: str) -> list[str]:
    """Split a comma separated variable list such as "a, b, c".

    Blank entries are dropped; names are not validated here.
    """
    if not text:
        return []
    return [part.strip() for part in text.split(",") if part.strip()]


def check_definition(name: str, expression: str, variables: Sequence[str]) -> None:
    """Validate a formula definition before it is stored.

    Raises:
        InvalidIdentifierError: If the name or a variable is not an identifier
        ValidationError: For repeated variables or an empty expression
    """
    if not validate_identifier(name):
        raise InvalidIdentifierError(
            f"Invalid formula name: {name!r}. Must start with a letter or underscore "
            "and contain only letters, numbers and underscores."
        )
    for variable in variables:
        if not validate_identifier(variable):
            raise InvalidIdentifierError(
                f"Invalid variable name: {variable!r}. Must start with a letter or "
                "underscore and contain only letters, numbers and underscores."
            )
    seen = set()
    for variable in variables:
        if variable in seen:
            raise ValidationError(
                f"Variable '{variable}' is declared more than once", "DUPLICATE_VARIABLE"
            )
        seen.add(variable)
    if not expression or not expression.strip():
        raise ValidationError("Formula expression is empty", "EMPTY_EXPRESSION")


class FormulaManager:
    """Create, use and delete formulas held by an injected store."""

    def __init__(self, store: FormulaStore, evaluator: FormulaEvaluator):
        self.store = store
        self.evaluator = evaluator

    def list_formulas(self) -> list[Formula]:
        return self.store.get_formulas()

    def create_formula(
        self,
        name: str,
        expression: str,
        variables: Sequence[str],
        description: str = "",
    ) -> Formula:
        """Validate, test and store a new formula.

        Args:
            name: Formula name (e.g., "circle_area")
            expression: Template using the variables (e.g., "π * r²")
            variables: Declared variable names in order (e.g., ["r"])
            description: Optional human-readable description

        Returns:
            The stored Formula

        Raises:
            InvalidIdentifierError: If the name or a variable is not an identifier
            ValidationError: For an empty expression or repeated variables
            DuplicateNameError: If a formula with this name is already stored
            EvaluationError: If the expression does not evaluate with test values
        """
        variables = list(variables)
        expression = expression.strip() if expression else ""
        check_definition(name, expression, variables)

        if any(existing.name == name for existing in self.store.get_formulas()):
            raise DuplicateNameError(f"A formula named '{name}' already exists")

        if not self.evaluator.test_formula(expression, variables):
            logger.warning("Rejected formula %s: test evaluation failed", name)
            raise EvaluationError(
                f"Formula '{name}' could not be evaluated. Check the expression "
                "and that every variable it uses is declared.",
                "INVALID_FORMULA",
            )

        formula = Formula(
            name=name,
            expression=expression,
            variables=variables,
            created=datetime.now(timezone.utc).isoformat(),
            description=description or "",
        )
        self.store.save_formula(formula)
        return formula

    def use_formula(self, name: str, bindings: Mapping[str, Any]) -> float:
        """Evaluate a stored formula with the given variable values.

        Raises:
            FormulaNotFoundError: If no formula has this name
            ValidationError: If bindings name undeclared variables or miss declared ones
            EvaluationError: If the substituted expression cannot be evaluated
        """
        formula = self.store.get_formula(name)

        unknown = [key for key in bindings if key not in formula.variables]
        if unknown:
            raise ValidationError(
                f"Formula '{name}' has no variable(s): {', '.join(unknown)}",
                "UNKNOWN_VARIABLE",
            )
        missing = [v for v in formula.variables if v not in bindings]
        if missing:
            raise ValidationError(
                f"Formula '{name}' needs a value for: {', '.join(missing)}",
                "MISSING_VARIABLE",
            )

        value = self.evaluator.evaluate_formula(formula.expression, bindings)
        formula.use_count += 1
        self.store.update_formula(formula)
        logger.debug("Formula %s evaluated to %r", name, value)
        return value

    def delete_formula(self, name: str) -> None:
        self.store.delete_formula(name)

"""Type definitions, result dataclasses and exceptions shared across Formulator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Formula:
    """A named arithmetic template with declared free variables."""

    name: str
    expression: str
    variables: list[str] = field(default_factory=list)
    created: str = ""
    description: str = ""
    use_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to the dictionary layout stored in state and export files."""
        return {
            "name": self.name,
            "expression": self.expression,
            "variables": list(self.variables),
            "created": self.created,
            "description": self.description,
            "useCount": self.use_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Formula:
        """Build a Formula from a stored or imported dictionary.

        Older exports used ``formula`` for the expression and ``used`` for
        the use count; both spellings are accepted.

        Raises:
            ValidationError: If required fields are missing or malformed
        """
        if not isinstance(data, dict):
            raise ValidationError(
                f"Formula entry must be an object, got {type(data).__name__}",
                "INVALID_FORMULA",
            )
        name = data.get("name")
        expression = data.get("expression", data.get("formula"))
        if not isinstance(name, str) or not isinstance(expression, str):
            raise ValidationError(
                "Formula entry needs string 'name' and 'expression' fields",
                "INVALID_FORMULA",
            )
        variables = data.get("variables") or []
        if not isinstance(variables, list) or not all(
            isinstance(v, str) for v in variables
        ):
            raise ValidationError(
                f"Formula '{name}' has a malformed variable list", "INVALID_FORMULA"
            )
        try:
            use_count = int(data.get("useCount", data.get("used", 0)) or 0)
        except (TypeError, ValueError):
            raise ValidationError(
                f"Formula '{name}' has a non-numeric use count", "INVALID_FORMULA"
            )
        return cls(
            name=name,
            expression=expression,
            variables=list(variables),
            created=str(data.get("created") or ""),
            description=str(data.get("description") or ""),
            use_count=use_count,
        )


@dataclass
class EvalResult:
    """Result of evaluating a formula expression."""

    ok: bool
    value: float | None = None
    expression: str | None = None
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok}
        if self.value is not None:
            result_dict["value"] = self.value
        if self.expression is not None:
            result_dict["expression"] = self.expression
        if self.error is not None:
            result_dict["error"] = self.error
        if self.error_code is not None:
            result_dict["error_code"] = self.error_code
        return result_dict

    def __repr__(self) -> str:
        """Return string representation of the result."""
        if not self.ok:
            return f"EvalResult(ok=False, error={self.error!r}, error_code={self.error_code!r})"
        parts = [f"ok={self.ok}"]
        if self.value is not None:
            parts.append(f"value={self.value!r}")
        if self.expression is not None:
            parts.append(f"expression={self.expression!r}")
        return f"EvalResult({', '.join(parts)})"


class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class InvalidIdentifierError(ValidationError):
    """Raised when a formula or variable name is not identifier-shaped."""

    def __init__(self, message: str, code: str = "INVALID_IDENTIFIER"):
        super().__init__(message, code)


class DuplicateNameError(ValidationError):
    """Raised when saving a formula whose name is already stored."""

    def __init__(self, message: str, code: str = "DUPLICATE_NAME"):
        super().__init__(message, code)


class FormulaNotFoundError(ValidationError):
    """Raised when a formula name is not in the store."""

    def __init__(self, message: str, code: str = "FORMULA_NOT_FOUND"):
        super().__init__(message, code)


class EvaluationError(Exception):
    """Raised when an expression cannot be evaluated to a number."""

    def __init__(self, message: str, code: str = "EVAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

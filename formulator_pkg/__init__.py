"""Formulator package: custom calculator formulas with substitution, storage and CLI."""

__all__ = [
    "config",
    "types",
    "parser",
    "arithmetic",
    "evaluator",
    "store",
    "manager",
    "export",
    "api",
    "cli",
    "logging_config",
]

# Public API exports

__api_exports__ = [
    "evaluate",
    "substitute",
    "check_formula",
    "default_evaluator",
]

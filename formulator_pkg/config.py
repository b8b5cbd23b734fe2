"""Centralized configuration for Formulator.

This module defines:
- Input validation limits (length, depth, node count)
- Cache sizes for parsed expressions
- Allowed SymPy functions and parser transformations
- Identifier pattern and the ordered symbol replacements used by substitution
- Location of the persisted formula state

Configuration can be overridden via:
- CLI flags (see cli.py)
- Environment variables (prefixed with FORMULATOR_)
"""

import math
import os
import re
from pathlib import Path

import sympy as sp
from sympy.parsing.sympy_parser import (
    convert_xor,
    implicit_multiplication,
    standard_transformations,
)

# Version is defined in pyproject.toml [project] section
try:
    import importlib.metadata

    VERSION = importlib.metadata.version("formulator")
except importlib.metadata.PackageNotFoundError:
    # Running from a source checkout
    VERSION = "1.0.0"

# Input validation limits
MAX_INPUT_LENGTH = int(os.getenv("FORMULATOR_MAX_INPUT_LENGTH", "10000"))  # characters
MAX_EXPRESSION_DEPTH = int(
    os.getenv("FORMULATOR_MAX_EXPRESSION_DEPTH", "100")
)  # tree depth
MAX_EXPRESSION_NODES = int(
    os.getenv("FORMULATOR_MAX_EXPRESSION_NODES", "5000")
)  # total nodes

# Cache configuration
CACHE_SIZE_PARSE = int(os.getenv("FORMULATOR_CACHE_SIZE_PARSE", "1024"))

# Significant digits used when printing results for humans
OUTPUT_PRECISION = int(os.getenv("FORMULATOR_OUTPUT_PRECISION", "12"))

# Digits used for numeric evaluation before conversion to float
EVAL_PRECISION = 15

# Persisted formula collection
STATE_FILE = Path(
    os.getenv("FORMULATOR_STATE_FILE", str(Path.home() / ".formulator" / "state.json"))
)
STATE_VERSION = 1  # Increment when the state file format changes
FORMULAS_STATE_KEY = "customFormulas"

VAR_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

PI_LITERAL = repr(math.pi)

# Applied in this order after variable substitution; √ is rewritten last
SYMBOL_REPLACEMENTS = (
    ("π", PI_LITERAL),
    ("²", "**2"),
    ("³", "**3"),
)
SQRT_PREFIX = "sqrt"

SQRT_UNICODE_REGEX = re.compile(r"√\s*\(")
SQRT_OPERAND_REGEX = re.compile(
    r"√\s*(\d+(?:\.\d*)?(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?|[A-Za-z_][A-Za-z0-9_]*)"
)


def _log10(arg):
    return sp.log(arg, 10)


ALLOWED_SYMPY_NAMES = {
    "pi": sp.pi,
    "E": sp.E,
    "e": sp.E,
    "sqrt": sp.sqrt,
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "asin": sp.asin,
    "acos": sp.acos,
    "atan": sp.atan,
    "log": sp.log,
    "ln": sp.log,
    "log10": _log10,
    "exp": sp.exp,
    "Abs": sp.Abs,
    "abs": sp.Abs,  # lowercase alias for convenience
    "factorial": sp.factorial,
}

TRANSFORMATIONS = standard_transformations + (
    implicit_multiplication,
    convert_xor,
)

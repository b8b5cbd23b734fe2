"""Main entry point for running formulator_pkg as a module.

This allows running Formulator with:
    python -m formulator_pkg
    python -m formulator_pkg --health-check
    python -m formulator_pkg -e "π * r²" --var r=2

This is equivalent to running:
    python -m formulator_pkg.cli
"""

from __future__ import annotations

import sys

from .cli import main_entry

if __name__ == "__main__":
    sys.exit(main_entry())

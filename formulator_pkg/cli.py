from __future__ import annotations

import argparse
import json
import math
import os
import platform
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import STATE_FILE, VERSION
from .logging_config import get_logger, setup_logging
from .parser import format_number
from .types import EvalResult, EvaluationError, Formula, ValidationError

logger = get_logger("cli")


def _parse_bindings(pairs: list[str] | None) -> dict[str, str]:
    """Turn ["r=2", "h = 3.5"] into {"r": "2", "h": "3.5"}."""
    bindings: dict[str, str] = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise ValidationError(
                f"Variable assignment '{pair}' must look like NAME=VALUE",
                "INVALID_ASSIGNMENT",
            )
        name, value = pair.split("=", 1)
        bindings[name.strip()] = value.strip()
    return bindings


def _emit(data: dict[str, Any], human: str, output_format: str) -> None:
    if output_format == "json":
        print(json.dumps(data))
    else:
        print(human)


def _emit_error(error: ValidationError | EvaluationError, output_format: str) -> int:
    result = EvalResult(ok=False, error=error.message, error_code=error.code)
    if output_format == "json":
        print(json.dumps(result.to_dict()))
    else:
        print(f"Error: {error.message}")
    return 1


def _describe(formula: Formula) -> str:
    variables = ", ".join(formula.variables)
    line = f"{formula.name}({variables}) = {formula.expression}"
    if formula.description:
        line += f"  # {formula.description}"
    return f"{line}  [used {formula.use_count}x]"


def _storage_check(state_path: Path) -> dict[str, Any]:
    directory = state_path.parent
    while not directory.exists() and directory != directory.parent:
        directory = directory.parent
    writable = os.access(directory, os.W_OK)
    return {
        "status": "healthy" if writable else "degraded",
        "path": str(state_path),
        "writable": writable,
    }


def _health_check(state_path: Path) -> dict[str, Any]:
    """Run health checks and build a status object.

    Returns:
        Dict with "overall" ("healthy", "degraded" or "unhealthy"),
        per-check results under "checks" and "metadata"
    """
    start = time.perf_counter()
    checks: dict[str, dict[str, Any]] = {}

    try:
        import sympy

        checks["dependencies"] = {"status": "healthy", "sympy": sympy.__version__}
    except ImportError as e:
        checks["dependencies"] = {"status": "unhealthy", "error": str(e)}

    try:
        from .api import default_evaluator

        value = default_evaluator().evaluate_formula("π * r²", {"r": 2})
        if math.isclose(value, 4 * math.pi, rel_tol=1e-12):
            checks["evaluation"] = {"status": "healthy", "result": value}
        else:
            checks["evaluation"] = {
                "status": "unhealthy",
                "error": f"expected {4 * math.pi}, got {value}",
            }
    except (EvaluationError, ValidationError, ImportError) as e:
        checks["evaluation"] = {"status": "unhealthy", "error": str(e)}

    checks["storage"] = _storage_check(state_path)

    statuses = [check["status"] for check in checks.values()]
    if "unhealthy" in statuses:
        overall = "unhealthy"
    elif all(status == "healthy" for status in statuses):
        overall = "healthy"
    else:
        overall = "degraded"

    return {
        "overall": overall,
        "checks": checks,
        "metadata": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "responseTime": round((time.perf_counter() - start) * 1000, 3),
            "version": VERSION,
            "python": platform.python_version(),
        },
    }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="formulator",
        description="Evaluate and manage custom calculator formulas",
    )
    parser.add_argument(
        "-e",
        "--eval",
        type=str,
        help="Evaluate one formula expression and exit (e.g. 'π * r²')",
        dest="eval_expr",
    )
    parser.add_argument(
        "--var",
        action="append",
        metavar="NAME=VALUE",
        help="Bind a variable for --eval or --use (repeatable)",
    )
    parser.add_argument("--save", metavar="NAME", help="Store a new formula")
    parser.add_argument("--expr", type=str, help="Expression for --save")
    parser.add_argument(
        "--vars", type=str, default="", help="Comma separated variables for --save"
    )
    parser.add_argument(
        "--description", type=str, default="", help="Description for --save"
    )
    parser.add_argument("--use", metavar="NAME", help="Evaluate a stored formula")
    parser.add_argument("--delete", metavar="NAME", help="Delete a stored formula")
    parser.add_argument("--list", action="store_true", help="List stored formulas")
    parser.add_argument("--export", metavar="PATH", help="Export stored formulas")
    parser.add_argument(
        "--export-format",
        choices=["json", "csv"],
        default="json",
        help="Format for --export (default: json)",
    )
    parser.add_argument(
        "--import", metavar="PATH", dest="import_path", help="Import formulas from a JSON export"
    )
    parser.add_argument(
        "--state-file",
        type=str,
        help=f"Formula state file (default: {STATE_FILE})",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["json", "human"],
        default="human",
        help="Output format: json (machine-readable) or human (human-readable)",
    )
    parser.add_argument(
        "-v", "--version", action="store_true", help="Show program version"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set logging level",
    )
    parser.add_argument("--log-file", type=str, help="Write logs to file")
    parser.add_argument(
        "--health-check",
        action="store_true",
        help="Run health check and print a JSON status object",
    )
    return parser


def _run_command(args: argparse.Namespace, output_format: str) -> int:
    from .api import default_evaluator
    from .export import export_to_file, import_from_file
    from .manager import FormulaManager, parse_variables
    from .store import JsonFileState, StateFormulaStore

    evaluator = default_evaluator()

    if args.eval_expr is not None:
        bindings = _parse_bindings(args.var)
        substituted = evaluator.substitute(args.eval_expr, bindings)
        value = evaluator.evaluate_substituted(substituted)
        result = EvalResult(ok=True, value=value, expression=substituted)
        _emit(result.to_dict(), format_number(value), output_format)
        return 0

    state_path = Path(args.state_file) if args.state_file else STATE_FILE
    manager = FormulaManager(StateFormulaStore(JsonFileState(state_path)), evaluator)

    if args.save:
        if not args.expr:
            raise ValidationError("--save requires --expr", "EMPTY_EXPRESSION")
        formula = manager.create_formula(
            args.save, args.expr, parse_variables(args.vars), args.description
        )
        _emit({"ok": True, "formula": formula.to_dict()}, f"Saved {_describe(formula)}", output_format)
        return 0

    if args.use:
        value = manager.use_formula(args.use, _parse_bindings(args.var))
        _emit(EvalResult(ok=True, value=value).to_dict(), format_number(value), output_format)
        return 0

    if args.delete:
        manager.delete_formula(args.delete)
        _emit({"ok": True, "deleted": args.delete}, f"Deleted {args.delete}", output_format)
        return 0

    if args.export:
        formulas = manager.list_formulas()
        export_to_file(formulas, args.export, args.export_format)
        _emit(
            {"ok": True, "exported": len(formulas), "path": args.export},
            f"Exported {len(formulas)} formula(s) to {args.export}",
            output_format,
        )
        return 0

    if args.import_path:
        imported, skipped = [], []
        for formula in import_from_file(args.import_path):
            if any(f.name == formula.name for f in manager.list_formulas()):
                logger.warning("Skipping imported formula %s: name exists", formula.name)
                skipped.append(formula.name)
                continue
            manager.store.save_formula(formula)
            imported.append(formula.name)
        _emit(
            {"ok": True, "imported": imported, "skipped": skipped},
            f"Imported {len(imported)} formula(s), skipped {len(skipped)}",
            output_format,
        )
        return 0

    # --list
    formulas = manager.list_formulas()
    human = "\n".join(_describe(f) for f in formulas) if formulas else "No formulas stored."
    _emit({"ok": True, "formulas": [f.to_dict() for f in formulas]}, human, output_format)
    return 0


def main_entry(argv: list[str] | None = None) -> int:
    """
    Main entry point for Formulator CLI.

    Args:
        argv: Optional command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    output_format = args.format

    setup_logging(level=args.log_level, log_file=args.log_file)

    if args.version:
        print(VERSION)
        return 0

    if args.health_check:
        state_path = Path(args.state_file) if args.state_file else STATE_FILE
        status = _health_check(state_path)
        print(json.dumps(status, indent=2))
        return 0 if status["overall"] == "healthy" else 1

    actions = (
        args.eval_expr is not None,
        args.save,
        args.use,
        args.delete,
        args.list,
        args.export,
        args.import_path,
    )
    if not any(actions):
        parser.print_help()
        return 0

    try:
        return _run_command(args, output_format)
    except (ValidationError, EvaluationError) as e:
        logger.debug("Command failed: %s (%s)", e.message, e.code)
        return _emit_error(e, output_format)
    except OSError as e:
        logger.error("File operation failed: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main_entry())

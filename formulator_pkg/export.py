"""Formula export and import.

Exports carry a metadata header so a file can be recognized later:

    {
      "metadata": {"exportDate": ..., "totalFormulas": 2, "format": "json", "type": "formulas"},
      "formulas": [{"name": ..., "expression": ..., "variables": [...], ...}]
    }

CSV exports are meant for spreadsheets and are not importable.
"""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from .logging_config import get_logger
from .manager import check_definition
from .types import DuplicateNameError, Formula, ValidationError

logger = get_logger("export")

EXPORT_FORMATS = ("json", "csv")
CSV_HEADER = ["Name", "Formula", "Description", "Created", "Use Count"]


def _export_json(formulas: Sequence[Formula]) -> str:
    data: dict[str, Any] = {
        "metadata": {
            "exportDate": datetime.now(timezone.utc).isoformat(),
            "totalFormulas": len(formulas),
            "format": "json",
            "type": "formulas",
        },
        "formulas": [formula.to_dict() for formula in formulas],
    }
    return json.dumps(data, ensure_ascii=False, indent=2)


def _export_csv(formulas: Sequence[Formula]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for formula in formulas:
        writer.writerow(
            [
                formula.name,
                formula.expression,
                formula.description,
                formula.created,
                formula.use_count,
            ]
        )
    return buffer.getvalue()


def export_formulas(formulas: Sequence[Formula], fmt: str = "json") -> str:
    """Serialize formulas to JSON or CSV text.

    Raises:
        ValidationError: If there is nothing to export or the format is unknown
    """
    if not formulas:
        raise ValidationError("No formulas to export", "NO_FORMULAS")
    fmt = fmt.lower()
    if fmt == "json":
        return _export_json(formulas)
    if fmt == "csv":
        return _export_csv(formulas)
    raise ValidationError(
        f"Unsupported export format '{fmt}'. Use one of: {', '.join(EXPORT_FORMATS)}",
        "UNSUPPORTED_FORMAT",
    )


def export_to_file(formulas: Sequence[Formula], file_path: str | Path, fmt: str = "json") -> None:
    """Write an export to ``file_path`` (UTF-8)."""
    content = export_formulas(formulas, fmt)
    with open(file_path, "w", encoding="utf-8", newline="") as f:
        f.write(content)
    logger.info("Exported %d formula(s) to %s", len(formulas), file_path)


def import_formulas(text: str) -> list[Formula]:
    """Parse formulas from a JSON export (or a bare JSON list of formulas).

    Raises:
        ValidationError: If the text is not a formula export, or an entry
            repeats a variable or has an empty expression
        InvalidIdentifierError: If a name or variable is not an identifier
        DuplicateNameError: If the export repeats a formula name
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Import is not valid JSON: {e}", "INVALID_IMPORT") from e

    if isinstance(data, dict):
        entries = data.get("formulas")
        kind = (data.get("metadata") or {}).get("type", "formulas")
        if kind != "formulas":
            raise ValidationError(
                f"Import contains '{kind}', not formulas", "INVALID_IMPORT"
            )
    else:
        entries = data
    if not isinstance(entries, list):
        raise ValidationError("Import has no formula list", "INVALID_IMPORT")

    formulas: list[Formula] = []
    names: set[str] = set()
    for entry in entries:
        formula = Formula.from_dict(entry)
        check_definition(formula.name, formula.expression, formula.variables)
        if formula.name in names:
            raise DuplicateNameError(f"Import repeats formula name '{formula.name}'")
        names.add(formula.name)
        formulas.append(formula)
    logger.debug("Parsed %d formula(s) from import", len(formulas))
    return formulas


def import_from_file(file_path: str | Path) -> list[Formula]:
    with open(file_path, encoding="utf-8") as f:
        return import_formulas(f.read())

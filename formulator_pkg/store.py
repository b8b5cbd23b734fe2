"""Formula storage.

This module provides:
- State stores exposing ``get_state()`` / ``update_state(partial)``: an
  in-memory one and a JSON file one that survives process restarts
- ``StateFormulaStore``: the formula collection kept under the
  ``customFormulas`` key of any state store
- ``InMemoryFormulaStore``: the same collection without persistence

Stores are passed explicitly to the code that needs them; there is no
module-level formula registry.
"""

from __future__ import annotations

import contextlib
import copy
import json
from pathlib import Path
from typing import Any, Protocol

from .config import FORMULAS_STATE_KEY, STATE_FILE, STATE_VERSION
from .logging_config import get_logger
from .types import DuplicateNameError, Formula, FormulaNotFoundError

logger = get_logger("store")


class StateStore(Protocol):
    def get_state(self) -> dict[str, Any]: ...

    def update_state(self, partial: dict[str, Any]) -> None: ...


class FormulaStore(Protocol):
    def get_formulas(self) -> list[Formula]: ...

    def get_formula(self, name: str) -> Formula: ...

    def save_formula(self, formula: Formula) -> None: ...

    def update_formula(self, formula: Formula) -> None: ...

    def delete_formula(self, name: str) -> None: ...


class InMemoryState:
    """State held in a dictionary for the lifetime of the process."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._state: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get_state(self) -> dict[str, Any]:
        return copy.deepcopy(self._state)

    def update_state(self, partial: dict[str, Any]) -> None:
        self._state.update(copy.deepcopy(partial))


class JsonFileState:
    """State persisted to a JSON file, loaded lazily on first access.

    File layout::

        {"version": 1, "state": {"customFormulas": [...]}}

    A missing, unreadable or outdated file yields an empty state.  Every
    ``update_state`` rewrites the file atomically (temp file then rename).
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path is not None else STATE_FILE
        self._state: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to load state from %s: %s, starting empty", self.path, e)
            return {}

        if not isinstance(data, dict) or data.get("version") != STATE_VERSION:
            logger.info("State file version mismatch, ignoring %s", self.path)
            return {}
        state = data.get("state")
        if not isinstance(state, dict):
            logger.warning("State file %s has no state object, starting empty", self.path)
            return {}
        logger.debug("Loaded state with keys %s from %s", sorted(state), self.path)
        return state

    def _save(self, state: dict[str, Any]) -> None:
        payload = {"version": STATE_VERSION, "state": state}
        temp_file = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            temp_file.replace(self.path)
        except OSError as e:
            logger.error("Failed to save state to %s: %s", self.path, e)
            with contextlib.suppress(OSError):
                temp_file.unlink(missing_ok=True)
            raise
        logger.debug("Saved state to %s", self.path)

    def get_state(self) -> dict[str, Any]:
        if self._state is None:
            self._state = self._load()
        return copy.deepcopy(self._state)

    def update_state(self, partial: dict[str, Any]) -> None:
        """Merge ``partial`` and persist it; memory is unchanged if the write fails."""
        state = self.get_state()
        state.update(copy.deepcopy(partial))
        self._save(state)
        self._state = state


class StateFormulaStore:
    """Formula collection kept in a state store under ``customFormulas``."""

    def __init__(self, state: StateStore):
        self.state = state

    def _entries(self) -> list[dict[str, Any]]:
        entries = self.state.get_state().get(FORMULAS_STATE_KEY) or []
        if not isinstance(entries, list):
            logger.warning("Ignoring malformed %s entry in state", FORMULAS_STATE_KEY)
            return []
        return entries

    def _write(self, formulas: list[Formula]) -> None:
        self.state.update_state({FORMULAS_STATE_KEY: [f.to_dict() for f in formulas]})

    def get_formulas(self) -> list[Formula]:
        """Return stored formulas in insertion order."""
        return [Formula.from_dict(entry) for entry in self._entries()]

    def get_formula(self, name: str) -> Formula:
        for formula in self.get_formulas():
            if formula.name == name:
                return formula
        raise FormulaNotFoundError(f"Formula '{name}' is not defined")

    def save_formula(self, formula: Formula) -> None:
        """Append a formula.

        Raises:
            DuplicateNameError: If a formula with the same name exists; the
                stored collection is left unchanged
        """
        formulas = self.get_formulas()
        if any(existing.name == formula.name for existing in formulas):
            raise DuplicateNameError(
                f"A formula named '{formula.name}' already exists"
            )
        formulas.append(formula)
        self._write(formulas)
        logger.info("Saved formula %s", formula.name)

    def update_formula(self, formula: Formula) -> None:
        """Replace the stored formula with the same name, keeping its position."""
        formulas = self.get_formulas()
        for index, existing in enumerate(formulas):
            if existing.name == formula.name:
                formulas[index] = formula
                self._write(formulas)
                return
        raise FormulaNotFoundError(f"Formula '{formula.name}' is not defined")

    def delete_formula(self, name: str) -> None:
        formulas = self.get_formulas()
        remaining = [f for f in formulas if f.name != name]
        if len(remaining) == len(formulas):
            raise FormulaNotFoundError(f"Formula '{name}' is not defined")
        self._write(remaining)
        logger.info("Deleted formula %s", name)


class InMemoryFormulaStore(StateFormulaStore):
    """Formula store without persistence."""

    def __init__(self, formulas: list[Formula] | None = None):
        super().__init__(InMemoryState())
        for formula in formulas or []:
            self.save_formula(formula)

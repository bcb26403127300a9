"""
State Store - Persists carried per-unit engine state between feeds.

The document is a JSON object keyed by unit id; each value holds the
engine state plus the last ratio and timestamp seen for that unit.
"""

import json
import logging

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .types import UnitClassification

logger = logging.getLogger(__name__)


class StateStore:
    """
    JSON file store for UnitClassification records.

    Usage:
        store = StateStore("./artifacts/hysteresis-state.json")
        states = store.load()
        ...
        store.save(states)
    """

    def __init__(self, path: str):
        """
        Initialize the state store.

        Args:
            path: JSON file holding the unit states
        """
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> dict[str, UnitClassification]:
        """
        Load every carried unit state.

        Returns:
            Mapping of unit id to classification; empty if no file yet

        Raises:
            ValueError: If the file is not a valid state document
        """
        if not self.path.exists():
            return {}

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid JSON in state file {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"state file {self.path} must hold a JSON object")

        for unit, entry in data.items():
            if not isinstance(entry, dict):
                raise ValueError(f"state for unit {unit!r} in {self.path} must be a JSON object")

        try:
            states = {
                unit: UnitClassification.from_state_dict(unit, entry)
                for unit, entry in data.items()
            }
        except (KeyError, TypeError) as e:
            raise ValueError(f"malformed unit state in {self.path}: {e}") from e

        logger.debug(f"Loaded state for {len(states)} units from {self.path}")
        return states

    def save(self, states: Mapping[str, UnitClassification]) -> None:
        """Write every unit state, replacing the previous document."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        document: dict[str, Any] = {
            unit: classification.to_state_dict()
            for unit, classification in sorted(states.items())
        }
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2)
        tmp_path.replace(self.path)

        logger.debug(f"Saved state for {len(document)} units to {self.path}")

    def clear(self) -> bool:
        """
        Delete the state file.

        Returns:
            True if deleted, False if there was nothing to delete
        """
        if self.path.exists():
            self.path.unlink()
            return True
        return False

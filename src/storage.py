# storage.py
# Key-value persistence for the grid, score and high score. The session calls
# into a GameStorage after each successful move and on restart.

from abc import ABC, abstractmethod
import json
import logging
import os
import tempfile
from typing import Dict, Optional, Tuple

from grid_engine import Grid, validate_grid

logger = logging.getLogger(__name__)

GRID_KEY = "grid"
SCORE_KEY = "score"
HIGH_SCORE_KEY = "highScore"


class StorageError(Exception):
    """Raised when persisted state cannot be read, parsed or written."""


def _parse_score(raw: str, key: str) -> int:
    try:
        value = json.loads(raw)
    except (ValueError, RecursionError) as e:
        raise StorageError(f"Stored {key} is not valid JSON: {e}") from e
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise StorageError(f"Stored {key} must be a non-negative integer, got {value!r}.")
    return value


class GameStorage(ABC):
    """
    Base class for storage backends. Subclasses implement the three raw
    key-value operations; values are JSON text.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Returns the stored text for key, or None when absent."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Stores text under key, replacing any previous value."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Deletes key; a missing key is not an error."""

    # --- Typed helpers used by the game session ---

    def save_progress(self, grid: Grid, score: int) -> None:
        self.set_item(GRID_KEY, json.dumps(grid))
        self.set_item(SCORE_KEY, json.dumps(score))

    def save_high_score(self, high_score: int) -> None:
        self.set_item(HIGH_SCORE_KEY, json.dumps(high_score))

    def clear_progress(self) -> None:
        """Removes grid and score; the high score entry stays."""
        self.remove_item(GRID_KEY)
        self.remove_item(SCORE_KEY)

    def load_high_score(self) -> int:
        raw = self.get_item(HIGH_SCORE_KEY)
        if raw is None:
            return 0
        return _parse_score(raw, HIGH_SCORE_KEY)

    def load_progress(self) -> Optional[Tuple[Grid, int]]:
        """
        Reads the saved grid and score.
        Returns:
            Optional[Tuple[Grid, int]]: The grid and score, or None when
                                        either entry is missing.
        Raises:
            StorageError: If an entry is present but malformed.
        """
        raw_grid = self.get_item(GRID_KEY)
        raw_score = self.get_item(SCORE_KEY)
        if raw_grid is None or raw_score is None:
            return None

        try:
            grid = json.loads(raw_grid)
        except (ValueError, RecursionError) as e:
            raise StorageError(f"Stored grid is not valid JSON: {e}") from e
        if not isinstance(grid, list) or not all(isinstance(row, list) for row in grid):
            raise StorageError("Stored grid must be a list of rows.")
        try:
            validate_grid(grid)
        except ValueError as e:
            raise StorageError(f"Stored grid is malformed: {e}") from e

        return grid, _parse_score(raw_score, SCORE_KEY)


class InMemoryStorage(GameStorage):
    """Dictionary-backed storage; nothing survives the process."""

    def __init__(self, items: Optional[Dict[str, str]] = None):
        self.items: Dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class JsonFileStorage(GameStorage):
    """
    Stores all entries as one JSON object in a file. Every write replaces the
    whole file through a temporary file in the same directory, so a crash
    mid-write leaves the previous contents in place.
    """

    def __init__(self, path: str):
        self.path = os.path.abspath(os.path.expanduser(path))

    def _read_all(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError, RecursionError) as e:
            raise StorageError(f"Could not read save file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Save file {self.path} does not hold a JSON object.")
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(self.path)
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".grid2048-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(data, fh)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            raise StorageError(f"Could not write save file {self.path}: {e}") from e
        logger.debug("Wrote %d entries to %s", len(data), self.path)

    def get_item(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        if value is not None and not isinstance(value, str):
            raise StorageError(f"Save file entry {key!r} is not a string.")
        return value

    def set_item(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)

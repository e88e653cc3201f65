"""
Pytest fixtures for grid game tests.
"""

import random

import pytest

from storage import GameStorage, InMemoryStorage, StorageError


class ScriptedRng:
    """Stands in for random.Random: picks a fixed cell index and returns scripted floats."""

    def __init__(self, index: int = 0, rolls=(0.5,)):
        self.index = index
        self.rolls = list(rolls)
        self.choices_seen = []

    def choice(self, seq):
        self.choices_seen.append(list(seq))
        return seq[min(self.index, len(seq) - 1)]

    def random(self):
        return self.rolls.pop(0) if len(self.rolls) > 1 else self.rolls[0]


class FailingStorage(GameStorage):
    """Storage whose every operation fails."""

    def __init__(self):
        self.calls = 0

    def get_item(self, key):
        self.calls += 1
        raise StorageError("read failed")

    def set_item(self, key, value):
        self.calls += 1
        raise StorageError("write failed")

    def remove_item(self, key):
        self.calls += 1
        raise StorageError("remove failed")


@pytest.fixture
def rng() -> random.Random:
    return random.Random(2048)


@pytest.fixture
def scripted_rng() -> ScriptedRng:
    return ScriptedRng()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def failing_storage() -> FailingStorage:
    return FailingStorage()


@pytest.fixture
def terminal_grid():
    """A full 4x4 grid with no equal neighbours."""
    return [
        [2, 4, 2, 4],
        [4, 2, 4, 2],
        [2, 4, 2, 4],
        [4, 2, 4, 2],
    ]

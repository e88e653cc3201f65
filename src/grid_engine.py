# grid_engine.py
# Stateless transition engine for the sliding-tile grid: compaction, merging,
# rotation, tile spawning and terminal-state detection.

from enum import Enum
from typing import List, NamedTuple, Optional, Tuple
import random

Grid = List[List[int]]

DEFAULT_GRID_SIZE = 4
FOUR_TILE_PROBABILITY = 0.1


class GameProgressState(Enum):
    """Represents the current progress state of the game."""
    PLAYING = 1
    GAME_OVER = 2


class Direction(Enum):
    """Represents the possible move directions."""
    UP = 1
    DOWN = 2
    LEFT = 3
    RIGHT = 4

    @classmethod
    def from_name(cls, name: str) -> "Direction":
        """
        Parses a direction name such as "left" or "UP".
        Raises:
            ValueError: If the name is not one of the four directions.
        """
        try:
            return cls[name.strip().upper()]
        except (KeyError, AttributeError):
            raise ValueError(f"Unknown direction: {name!r}") from None


# Counter-clockwise quarter turns that bring each direction onto LEFT.
_ROTATIONS = {
    Direction.LEFT: 0,
    Direction.UP: 1,
    Direction.RIGHT: 2,
    Direction.DOWN: 3,
}


class LineResult(NamedTuple):
    line: List[int]
    score_gained: int
    changed: bool


class MoveResult(NamedTuple):
    grid: Grid
    moved: bool
    score_gained: int


# --- Grid Helper Functions ---

def get_grid_size(grid: Grid) -> int:
    """
    Gets the size (N) of an N x N grid.
    Args:
        grid (Grid): The game grid.
    Returns:
        int: The dimension of the grid.
    Raises:
        ValueError: If the grid is not square or empty.
    """
    if not grid or not all(len(row) == len(grid) for row in grid):
        raise ValueError("Grid must be a non-empty square matrix.")
    return len(grid)


def _is_tile_value(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return value == 0 or (value >= 2 and value & (value - 1) == 0)


def validate_grid(grid: Grid) -> int:
    """
    Checks that a grid is square and holds only zeros and powers of two.
    Args:
        grid (Grid): The grid to check.
    Returns:
        int: The dimension of the grid.
    Raises:
        ValueError: On the first malformed row or cell found.
    """
    n = get_grid_size(grid)
    for r, row in enumerate(grid):
        for c, value in enumerate(row):
            if not _is_tile_value(value):
                raise ValueError(
                    f"Invalid tile value {value!r} at ({r}, {c}); "
                    "cells must be 0 or a power of two."
                )
    return n


def create_empty_grid(size: int = DEFAULT_GRID_SIZE) -> Grid:
    """
    Creates an N x N grid of zeros.
    Raises:
        ValueError: If size is not a positive integer.
    """
    if not isinstance(size, int) or size <= 0:
        raise ValueError("Grid size must be a positive integer.")
    return [[0] * size for _ in range(size)]


def copy_grid(grid: Grid) -> Grid:
    return [list(row) for row in grid]


def get_empty_cells(grid: Grid) -> List[Tuple[int, int]]:
    """
    Get coordinates of empty (0-value) cells in the given grid.
    Args:
        grid (Grid): The grid to check.
    Returns:
        List[Tuple[int, int]]: List of (row, col) tuples for empty cells, row-major.
    """
    n = get_grid_size(grid)
    empty_cells = []
    for row in range(n):
        for col in range(n):
            if grid[row][col] == 0:
                empty_cells.append((row, col))
    return empty_cells


def spawn_random_tile(grid: Grid, rng: Optional[random.Random] = None) -> Grid:
    """
    Places a new tile (90% chance of 2, 10% chance of 4) on a random empty cell.
    Args:
        grid (Grid): The current game grid; it is not modified.
        rng: Source of randomness exposing ``choice`` and ``random``.
             Defaults to the ``random`` module.
    Returns:
        Grid: A new grid with the added tile, or an unchanged copy when the
              grid has no empty cell.
    """
    if rng is None:
        rng = random
    new_grid = copy_grid(grid)
    empty_cells = get_empty_cells(grid)
    if not empty_cells:
        return new_grid

    row, col = rng.choice(empty_cells)
    new_grid[row][col] = 4 if rng.random() < FOUR_TILE_PROBABILITY else 2
    return new_grid


# --- Line Manipulation (Core Move Logic) ---

def compact_and_merge_line(line: List[int]) -> LineResult:
    """
    Slides a single line toward index 0, merging equal neighbours once.

    Zeros are dropped, then the compacted values are scanned left to right.
    When two adjacent values match they become one tile of their sum and the
    scan skips past both, so a freshly merged tile never merges again in the
    same pass ([2, 2, 2, 2] gives [4, 4, 0, 0]). The result is padded with
    zeros back to the input length.

    Args:
        line (List[int]): The line to process.
    Returns:
        LineResult: The processed line, the score from merges, and whether
                    any position differs from the input.
    """
    n = len(line)
    compacted = [value for value in line if value != 0]

    merged: List[int] = []
    score_gained = 0
    idx = 0
    while idx < len(compacted):
        value = compacted[idx]
        if idx + 1 < len(compacted) and compacted[idx + 1] == value:
            merged.append(value * 2)
            score_gained += value * 2
            idx += 2
        else:
            merged.append(value)
            idx += 1

    merged += [0] * (n - len(merged))
    changed = merged != list(line)
    return LineResult(merged, score_gained, changed)


# --- Grid Transformations ---

def rotate_grid(grid: Grid, times: int = 1) -> Grid:
    """
    Rotates a grid counter-clockwise by the given number of quarter turns.
    Args:
        grid (Grid): The grid to rotate.
        times (int): Number of quarter turns; taken modulo 4.
    Returns:
        Grid: A new rotated grid.
    """
    n = get_grid_size(grid)
    rotated = copy_grid(grid)
    for _ in range(times % 4):
        # Column c of the source becomes row (n - 1 - c).
        rotated = [[rotated[r][n - 1 - c] for r in range(n)] for c in range(n)]
    return rotated


# --- Core Game Move Processing ---

def apply_direction(grid: Grid, direction: Direction) -> MoveResult:
    """
    Applies a swipe in the given direction to a copy of the grid.

    The grid is rotated so the direction lines up with LEFT, every row goes
    through compact_and_merge_line, and the result is rotated back.

    Args:
        grid (Grid): The current game grid.
        direction (Direction): The direction to move.
    Returns:
        MoveResult: The new grid, whether any row changed, and the total
                    score gained from merges.
    Raises:
        ValueError: If an invalid direction is specified.
    """
    if direction not in _ROTATIONS:
        raise ValueError("Invalid direction specified for apply_direction.")

    turns = _ROTATIONS[direction]
    rotated = rotate_grid(grid, turns)

    moved = False
    score_gained = 0
    processed_rows = []
    for row in rotated:
        result = compact_and_merge_line(row)
        processed_rows.append(result.line)
        score_gained += result.score_gained
        moved = moved or result.changed

    new_grid = rotate_grid(processed_rows, (4 - turns) % 4)
    return MoveResult(new_grid, moved, score_gained)


# --- Game State Checks ---

def is_terminal(grid: Grid) -> bool:
    """
    Checks whether no move is possible: the grid is full and no two
    horizontally or vertically adjacent cells are equal.
    Args:
        grid (Grid): The game grid.
    Returns:
        bool: True if the game is over, False otherwise.
    """
    n = get_grid_size(grid)
    for r in range(n):
        for c in range(n):
            value = grid[r][c]
            if value == 0:
                return False
            if c < n - 1 and value == grid[r][c + 1]:
                return False
            if r < n - 1 and value == grid[r + 1][c]:
                return False
    return True


def available_directions(grid: Grid) -> List[Direction]:
    """Lists the directions that would change the grid."""
    return [d for d in Direction if apply_direction(grid, d).moved]


def determine_progress(grid: Grid) -> GameProgressState:
    if is_terminal(grid):
        return GameProgressState.GAME_OVER
    return GameProgressState.PLAYING

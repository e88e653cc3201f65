# game_session.py
# Sequences grid engine calls for one player: swipe, spawn, score, game over,
# restart. Session values are immutable; every transition returns a new one.

import dataclasses
import logging
import random
from dataclasses import dataclass
from typing import Any, NamedTuple, Optional

from grid_engine import (
    DEFAULT_GRID_SIZE,
    Direction,
    GameProgressState,
    Grid,
    apply_direction,
    create_empty_grid,
    determine_progress,
    get_grid_size,
    is_terminal,
    spawn_random_tile,
)
from storage import GameStorage, StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionState:
    """A snapshot of one game: the grid, current score and best score."""
    grid: Grid
    score: int = 0
    high_score: int = 0
    progress: GameProgressState = GameProgressState.PLAYING

    @property
    def size(self) -> int:
        return get_grid_size(self.grid)

    @property
    def is_game_over(self) -> bool:
        return self.progress == GameProgressState.GAME_OVER

    def with_changes(self, **changes: Any) -> "SessionState":
        return dataclasses.replace(self, **changes)


class SwipeResult(NamedTuple):
    session: SessionState
    game_over: bool
    moved: bool


def _read_high_score(storage: Optional[GameStorage]) -> int:
    if storage is None:
        return 0
    try:
        return storage.load_high_score()
    except StorageError:
        logger.warning("Ignoring unreadable stored high score.", exc_info=True)
        return 0


def _fresh_grid(size: int, rng: Optional[random.Random]) -> Grid:
    grid = create_empty_grid(size)
    grid = spawn_random_tile(grid, rng)
    return spawn_random_tile(grid, rng)


def new_game(
    size: int = DEFAULT_GRID_SIZE,
    storage: Optional[GameStorage] = None,
    rng: Optional[random.Random] = None,
) -> SessionState:
    """
    Starts a game on an empty grid with two spawned tiles and score 0.
    Args:
        size (int): Dimension of the N x N grid.
        storage (Optional[GameStorage]): Source of a previously saved high score.
        rng: Randomness for tile placement (defaults to the random module).
    Returns:
        SessionState: The new session, in the PLAYING state.
    """
    return SessionState(
        grid=_fresh_grid(size, rng),
        score=0,
        high_score=_read_high_score(storage),
        progress=GameProgressState.PLAYING,
    )


def load_session(
    storage: Optional[GameStorage],
    size: int = DEFAULT_GRID_SIZE,
    rng: Optional[random.Random] = None,
) -> SessionState:
    """
    Restores the saved game, falling back to new_game when nothing usable is stored.

    A saved grid of a different size than requested is discarded. The game
    progress is recomputed from the grid, so a finished board resumes as over.
    """
    if storage is None:
        return new_game(size, rng=rng)

    high_score = _read_high_score(storage)
    try:
        saved = storage.load_progress()
    except StorageError:
        logger.warning("Saved game is unreadable; starting a new game.", exc_info=True)
        saved = None

    if saved is None:
        return new_game(size, storage, rng)

    grid, score = saved
    if get_grid_size(grid) != size:
        logger.info("Saved grid is %dx%d, wanted %dx%d; starting a new game.",
                    len(grid), len(grid), size, size)
        return new_game(size, storage, rng)

    return SessionState(
        grid=grid,
        score=score,
        high_score=max(high_score, score),
        progress=determine_progress(grid),
    )


def _persist(storage: Optional[GameStorage], session: SessionState, high_score_raised: bool) -> None:
    if storage is None:
        return
    try:
        storage.save_progress(session.grid, session.score)
        if high_score_raised:
            storage.save_high_score(session.high_score)
    except StorageError:
        logger.error("Could not save game progress; continuing in memory.", exc_info=True)


def handle_swipe(
    session: SessionState,
    direction: Direction,
    storage: Optional[GameStorage] = None,
    rng: Optional[random.Random] = None,
) -> SwipeResult:
    """
    Applies one swipe to the session.

    1. Slide and merge the grid in the given direction.
    2. If nothing moved, return the session untouched (no spawn, no save).
    3. Otherwise spawn a tile, add the merge score, raise the high score if
       it was beaten, save, and check whether any move remains.

    Swipes on a finished game are ignored until restart.

    Args:
        session (SessionState): The current session.
        direction (Direction): The swipe direction.
        storage (Optional[GameStorage]): Where progress is saved after a move.
        rng: Randomness for the spawned tile.
    Returns:
        SwipeResult: The next session, whether the game is over, and whether
                     the swipe changed the grid.
    """
    if session.is_game_over:
        logger.warning("Ignoring %s swipe: the game is over, restart to continue.", direction.name)
        return SwipeResult(session, True, False)

    result = apply_direction(session.grid, direction)
    if not result.moved:
        return SwipeResult(session, False, False)

    grid = spawn_random_tile(result.grid, rng)
    score = session.score + result.score_gained
    high_score_raised = score > session.high_score
    game_over = is_terminal(grid)

    next_session = SessionState(
        grid=grid,
        score=score,
        high_score=score if high_score_raised else session.high_score,
        progress=GameProgressState.GAME_OVER if game_over else GameProgressState.PLAYING,
    )
    _persist(storage, next_session, high_score_raised)

    if game_over:
        logger.info("Game over with score %d.", score)
    return SwipeResult(next_session, game_over, True)


def restart(
    session: SessionState,
    storage: Optional[GameStorage] = None,
    rng: Optional[random.Random] = None,
) -> SessionState:
    """
    Starts over on a fresh grid of the same size. The score resets to 0 and
    the high score is kept, both in memory and in storage.
    """
    if storage is not None:
        try:
            storage.clear_progress()
        except StorageError:
            logger.error("Could not clear saved progress.", exc_info=True)

    return SessionState(
        grid=_fresh_grid(session.size, rng),
        score=0,
        high_score=session.high_score,
        progress=GameProgressState.PLAYING,
    )

"""
Tests for the game session.

Tests:
- New game and startup loading
- Swipe sequencing (spawn, score, high score, persistence)
- Game over state machine
- Restart
- Storage failures
"""

import json
import logging
import random

import pytest

from game_session import (
    SessionState,
    handle_swipe,
    load_session,
    new_game,
    restart,
)
from grid_engine import Direction, GameProgressState, get_empty_cells
from storage import InMemoryStorage, JsonFileStorage

from conftest import ScriptedRng


def _non_zero(grid):
    return [v for row in grid for v in row if v]


@pytest.fixture
def mergeable_session() -> SessionState:
    return SessionState(
        grid=[
            [2, 2, 0, 0],
            [0, 0, 0, 0],
            [0, 0, 0, 0],
            [0, 0, 0, 0],
        ],
        score=0,
        high_score=0,
    )


@pytest.fixture
def last_move_session() -> SessionState:
    """A 2x2 game where LEFT followed by a spawned 2 ends the game."""
    return SessionState(grid=[[2, 2], [8, 4]], score=10, high_score=50)


class TestNewGame:
    """Tests for starting a game."""

    def test_two_tiles_and_zero_score(self, rng):
        session = new_game(4, rng=rng)
        assert len(session.grid) == 4
        assert len(_non_zero(session.grid)) == 2
        assert set(_non_zero(session.grid)) <= {2, 4}
        assert session.score == 0
        assert session.high_score == 0
        assert session.progress == GameProgressState.PLAYING

    def test_high_score_comes_from_storage(self, rng, storage):
        storage.save_high_score(120)
        assert new_game(4, storage, rng).high_score == 120

    def test_unreadable_high_score_falls_back_to_zero(self, rng):
        storage = InMemoryStorage({"highScore": "not a number"})
        assert new_game(4, storage, rng).high_score == 0

    def test_custom_size(self, rng):
        session = new_game(6, rng=rng)
        assert session.size == 6
        assert len(get_empty_cells(session.grid)) == 34


class TestLoadSession:
    """Tests for restoring a saved game at startup."""

    def test_restores_saved_grid_and_score(self, rng, storage):
        grid = [[2, 4, 0, 0], [0, 0, 0, 0], [0, 0, 8, 0], [0, 0, 0, 0]]
        storage.save_progress(grid, 36)
        storage.save_high_score(500)

        session = load_session(storage, 4, rng)

        assert session.grid == grid
        assert session.score == 36
        assert session.high_score == 500
        assert session.progress == GameProgressState.PLAYING

    def test_high_score_is_never_below_restored_score(self, rng, storage):
        storage.save_progress([[2, 0], [0, 0]], 80)
        storage.save_high_score(40)
        assert load_session(storage, 2, rng).high_score == 80

    def test_nothing_saved_starts_new_game(self, rng, storage):
        storage.save_high_score(64)
        session = load_session(storage, 4, rng)
        assert session.score == 0
        assert session.high_score == 64
        assert len(_non_zero(session.grid)) == 2

    def test_grid_without_score_starts_new_game(self, rng, storage):
        storage.set_item("grid", json.dumps([[2, 0], [0, 0]]))
        session = load_session(storage, 2, rng)
        assert len(_non_zero(session.grid)) == 2

    @pytest.mark.parametrize("raw_grid, raw_score", [
        ("{not json", "12"),
        (json.dumps([[3, 0], [0, 0]]), "12"),
        (json.dumps([[2, 0, 0], [0, 0]]), "12"),
        (json.dumps([[2, 0], [0, 0]]), "-5"),
        (json.dumps([[2, 0], [0, 0]]), "\"twelve\""),
    ])
    def test_malformed_save_falls_back_to_new_game(self, rng, raw_grid, raw_score, caplog):
        storage = InMemoryStorage({"grid": raw_grid, "score": raw_score, "highScore": "30"})

        with caplog.at_level(logging.WARNING, logger="game_session"):
            session = load_session(storage, 2, rng)

        assert session.score == 0
        assert session.high_score == 30
        assert len(_non_zero(session.grid)) == 2
        assert "unreadable" in caplog.text

    def test_non_utf8_save_file_starts_new_game(self, rng, tmp_path):
        path = tmp_path / "save.json"
        path.write_bytes(b'{"score": "\xff\xfe"}')

        session = load_session(JsonFileStorage(str(path)), 4, rng)

        assert session.score == 0
        assert session.high_score == 0
        assert session.progress == GameProgressState.PLAYING
        assert len(_non_zero(session.grid)) == 2

    def test_deeply_nested_grid_starts_new_game(self, rng):
        storage = InMemoryStorage({"grid": "[" * 200000, "score": "0", "highScore": "16"})

        session = load_session(storage, 4, rng)

        assert session.score == 0
        assert session.high_score == 16
        assert len(_non_zero(session.grid)) == 2

    def test_saved_grid_of_other_size_is_discarded(self, rng, storage):
        storage.save_progress([[2, 0], [0, 0]], 4)
        session = load_session(storage, 4, rng)
        assert session.size == 4
        assert session.score == 0

    def test_finished_board_resumes_as_game_over(self, rng, storage, terminal_grid):
        storage.save_progress(terminal_grid, 200)
        session = load_session(storage, 4, rng)
        assert session.progress == GameProgressState.GAME_OVER

    def test_without_storage(self, rng):
        session = load_session(None, 3, rng)
        assert session.size == 3


class TestHandleSwipe:
    """Tests for applying swipes to a session."""

    def test_no_op_swipe_leaves_everything_alone(self, mergeable_session, storage, scripted_rng):
        result = handle_swipe(mergeable_session, Direction.UP, storage, scripted_rng)

        assert result.session is mergeable_session
        assert not result.moved
        assert not result.game_over
        assert storage.items == {}
        assert scripted_rng.choices_seen == []

    def test_effective_swipe_spawns_scores_and_saves(self, mergeable_session, storage, scripted_rng):
        result = handle_swipe(mergeable_session, Direction.LEFT, storage, scripted_rng)

        # Merge lands at (0, 0); the first empty cell row-major is (0, 1).
        assert result.session.grid[0] == [4, 2, 0, 0]
        assert result.moved
        assert not result.game_over
        assert result.session.score == 4
        assert result.session.high_score == 4
        assert json.loads(storage.items["grid"]) == result.session.grid
        assert json.loads(storage.items["score"]) == 4
        assert json.loads(storage.items["highScore"]) == 4

    def test_input_session_is_not_modified(self, mergeable_session, scripted_rng):
        before = [list(row) for row in mergeable_session.grid]
        handle_swipe(mergeable_session, Direction.RIGHT, rng=scripted_rng)
        assert mergeable_session.grid == before
        assert mergeable_session.score == 0

    def test_score_is_merge_gain_only(self, scripted_rng):
        session = SessionState(grid=[[64, 64], [32, 0]], score=100, high_score=1000)
        result = handle_swipe(session, Direction.LEFT, rng=scripted_rng)
        assert result.session.score == 228

    def test_high_score_not_written_when_not_beaten(self, storage, scripted_rng):
        session = SessionState(grid=[[2, 2], [0, 0]], score=0, high_score=100)

        result = handle_swipe(session, Direction.LEFT, storage, scripted_rng)

        assert result.session.score == 4
        assert result.session.high_score == 100
        assert "highScore" not in storage.items
        assert "grid" in storage.items

    def test_move_that_ends_the_game(self, last_move_session, storage, scripted_rng):
        result = handle_swipe(last_move_session, Direction.LEFT, storage, scripted_rng)

        assert result.session.grid == [[4, 2], [8, 4]]
        assert result.moved
        assert result.game_over
        assert result.session.progress == GameProgressState.GAME_OVER
        assert result.session.score == 14

    def test_swipes_after_game_over_are_ignored(self, last_move_session, storage, scripted_rng, caplog):
        finished = handle_swipe(last_move_session, Direction.LEFT, storage, scripted_rng).session
        saved = dict(storage.items)

        with caplog.at_level(logging.WARNING, logger="game_session"):
            for direction in Direction:
                result = handle_swipe(finished, direction, storage, scripted_rng)
                assert result.session is finished
                assert result.game_over
                assert not result.moved

        assert storage.items == saved
        assert "game is over" in caplog.text

    def test_score_never_decreases_over_a_long_game(self, rng, storage):
        session = new_game(4, storage, rng)
        directions = list(Direction)
        for _ in range(500):
            result = handle_swipe(session, rng.choice(directions), storage, rng)
            assert result.session.score >= session.score
            assert result.session.high_score >= result.session.score
            session = result.session
            if result.game_over:
                assert session.is_game_over
                break


class TestRestart:
    """Tests for restarting a game."""

    def test_resets_score_and_keeps_high_score(self, mergeable_session, storage, rng):
        played = handle_swipe(mergeable_session, Direction.LEFT, storage, rng).session

        fresh = restart(played, storage, rng)

        assert fresh.score == 0
        assert fresh.high_score == played.high_score == 4
        assert fresh.size == 4
        assert fresh.progress == GameProgressState.PLAYING
        assert len(_non_zero(fresh.grid)) == 2

    def test_clears_saved_progress_but_not_high_score(self, mergeable_session, storage, rng):
        played = handle_swipe(mergeable_session, Direction.LEFT, storage, rng).session
        restart(played, storage, rng)

        assert "grid" not in storage.items
        assert "score" not in storage.items
        assert json.loads(storage.items["highScore"]) == 4

    def test_restart_leaves_game_over(self, last_move_session, scripted_rng):
        finished = handle_swipe(last_move_session, Direction.LEFT, rng=scripted_rng).session
        fresh = restart(finished, rng=random.Random(3))
        assert not fresh.is_game_over
        assert fresh.high_score == 50
        assert handle_swipe(fresh, Direction.LEFT, rng=random.Random(3)).game_over is False


class TestStorageFailures:
    """Storage errors are logged and never interrupt play."""

    def test_new_game_with_broken_storage(self, failing_storage, rng):
        assert new_game(4, failing_storage, rng).high_score == 0

    def test_load_with_broken_storage(self, failing_storage, rng):
        session = load_session(failing_storage, 4, rng)
        assert session.score == 0
        assert len(_non_zero(session.grid)) == 2

    def test_swipe_with_broken_storage(self, mergeable_session, failing_storage, scripted_rng, caplog):
        with caplog.at_level(logging.ERROR, logger="game_session"):
            result = handle_swipe(mergeable_session, Direction.LEFT, failing_storage, scripted_rng)

        assert result.moved
        assert result.session.score == 4
        assert "Could not save" in caplog.text

    def test_restart_with_broken_storage(self, mergeable_session, failing_storage, rng, caplog):
        with caplog.at_level(logging.ERROR, logger="game_session"):
            fresh = restart(mergeable_session, failing_storage, rng)

        assert fresh.score == 0
        assert "Could not clear" in caplog.text


class TestSessionState:
    """Tests for the session value itself."""

    def test_with_changes_returns_new_value(self):
        session = SessionState(grid=[[2, 0], [0, 4]])
        changed = session.with_changes(high_score=32)
        assert changed.high_score == 32
        assert session.high_score == 0

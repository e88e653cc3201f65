# cli_driver.py
# Terminal front end: reads W/A/S/D moves, draws the grid and saves progress
# to a JSON file between runs.

import argparse
import random
from typing import Callable, List, Optional

from config import configure_logging, load_settings
from game_session import SessionState, handle_swipe, load_session, restart
from grid_engine import Direction, GameProgressState
from storage import GameStorage, JsonFileStorage

KEY_TO_DIRECTION = {
    'W': Direction.UP,
    'A': Direction.LEFT,
    'S': Direction.DOWN,
    'D': Direction.RIGHT,
}


def build_parser() -> argparse.ArgumentParser:
    settings = load_settings()
    parser = argparse.ArgumentParser(
        prog="grid2048",
        description="Play the sliding-tile grid game in the terminal.",
    )
    parser.add_argument("--size", type=int, default=settings.grid_size,
                        help="Grid dimension N (default: %(default)s)")
    parser.add_argument("--save-file", default=settings.save_file,
                        help="Where progress and the high score are kept (default: %(default)s)")
    parser.add_argument("--no-save", action="store_true",
                        help="Play without reading or writing the save file")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for tile placement, for reproducible games")
    parser.add_argument("--log-level", default=settings.log_level,
                        help="Logging level (default: %(default)s)")
    return parser


def play(
    session: SessionState,
    storage: Optional[GameStorage] = None,
    rng: Optional[random.Random] = None,
    read_input: Optional[Callable[[str], str]] = None,
) -> SessionState:
    """
    Runs the interactive loop until the player quits or input runs out.
    Returns:
        SessionState: The session as it was when the loop ended.
    """
    if read_input is None:
        read_input = input
    # High score to beat in the current game; reset on restart.
    best_before_game = session.high_score
    display_board_state(session)

    while True:
        if session.is_game_over:
            prompt = "No more moves! Enter R to restart or Q to quit: "
        else:
            prompt = "Enter move (W/A/S/D for Up/Left/Down/Right, R to restart, Q to quit): "
        try:
            move_input = read_input(prompt).strip().upper()
        except EOFError:
            print()
            break

        if move_input == 'Q':
            print("Quitting game.")
            break

        if move_input == 'R':
            session = restart(session, storage, rng)
            best_before_game = session.high_score
            display_board_state(session)
            continue

        if session.is_game_over:
            print("The game is over. Use R to restart.")
            continue

        chosen_direction = KEY_TO_DIRECTION.get(move_input)
        if not chosen_direction:
            print("Invalid input. Use W, A, S, D.")
            continue

        result = handle_swipe(session, chosen_direction, storage, rng)
        if not result.moved:
            print("Move did not change the board. Try a different direction.")
            continue

        session = result.session
        display_board_state(session)
        if result.game_over:
            show_game_over(session, best_before_game)

    return session


# --- Display Functions ---

def format_board(grid: List[List[int]]) -> str:
    width = max(4, max(len(str(v)) for row in grid for v in row) + 1)
    lines = []
    for row in grid:
        lines.append("".join((str(v) if v else ".").rjust(width) for v in row))
    return "\n".join(lines)


def display_board_state(session: SessionState):
    """Prints the grid, score, and high score to the console."""
    print(f"\nScore: {session.score}    High Score: {session.high_score}")
    if session.progress == GameProgressState.GAME_OVER:
        print("GAME OVER!")
    print(format_board(session.grid))
    print("-" * (session.size * 6))


def show_game_over(session: SessionState, best_before_game: int):
    print("\n--- Game Over ---")
    print("No more moves left!")
    if session.high_score > best_before_game:
        print(f"New high score: {session.high_score}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    if args.size < 2:
        print("Grid size must be at least 2.")
        return 2

    rng = random.Random(args.seed) if args.seed is not None else None
    storage = None if args.no_save else JsonFileStorage(args.save_file)

    session = load_session(storage, args.size, rng)
    session = play(session, storage, rng)

    print(f"\nFinal score: {session.score}    High Score: {session.high_score}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

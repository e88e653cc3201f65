import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field, field_validator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

import game_session
import grid_engine
from config import load_settings

logger = logging.getLogger(__name__)
settings = load_settings()

# Initialize the rate limiter
limiter = Limiter(key_func=get_remote_address)
app = FastAPI(
    title="2048 Grid API",
    description="A stateless API for playing the sliding-tile grid game. "\
                "Keep your session state (grid, score, high_score) on the client side "\
                "and send it with every request.",
    version="1.0.0"
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- Pydantic Models for API requests and responses ---

def _check_grid(grid: List[List[int]]) -> List[List[int]]:
    # ValueError here surfaces as a 422 validation error.
    grid_engine.validate_grid(grid)
    if len(grid) < 2:
        raise ValueError("Grid must be at least 2x2.")
    return grid


class NewGameSettings(BaseModel):
    """Settings for creating a new game."""
    size: int = Field(
        default=settings.grid_size,
        gt=1, # Grid size must be at least 2x2
        description="Size of the N x N game grid (e.g., 4 for a 4x4 grid)."
    )
    high_score: int = Field(
        default=0,
        ge=0,
        description="Best score the client has recorded so far; carried into the new game."
    )


class SessionData(BaseModel):
    """The client-held session state sent with move and restart requests."""
    grid: List[List[int]] = Field(..., description="The N x N game grid, represented as a list of lists.")
    score: int = Field(..., ge=0, description="Current score of the game.")
    high_score: int = Field(default=0, ge=0, description="Best score recorded by the client.")

    @field_validator("grid")
    @classmethod
    def check_grid(cls, value: List[List[int]]) -> List[List[int]]:
        return _check_grid(value)

    def to_session(self) -> game_session.SessionState:
        return game_session.SessionState(
            grid=self.grid,
            score=self.score,
            high_score=max(self.high_score, self.score),
            progress=grid_engine.determine_progress(self.grid),
        )


class GameStateData(BaseModel):
    """Represents the complete state of a game instance."""
    grid: List[List[int]] = Field(..., description="The N x N game grid.")
    score: int = Field(..., ge=0, description="Current score of the game.")
    high_score: int = Field(..., ge=0, description="Highest score reached, never lower than score.")
    progress: grid_engine.GameProgressState = Field(
        ...,
        description="Current progress state of the game (PLAYING, GAME_OVER)."
    )
    grid_size: int = Field(..., gt=0, description="The dimension N of the N x N grid.")

    @classmethod
    def from_session(cls, session: game_session.SessionState, **extra):
        return cls(
            grid=session.grid,
            score=session.score,
            high_score=session.high_score,
            progress=session.progress,
            grid_size=session.size,
            **extra,
        )


class MoveRequestData(SessionData):
    """Data required to make a move."""
    direction: grid_engine.Direction = Field(
        ...,
        description="Direction of the move (up, down, left, right)."
    )

    @field_validator("direction", mode="before")
    @classmethod
    def parse_direction(cls, value):
        if isinstance(value, str):
            return grid_engine.Direction.from_name(value)
        return value


class MoveResponseData(GameStateData):
    """Response after a move, including the new game state and move effectiveness."""
    moved: bool = Field(
        ...,
        description="True if the move changed the grid, False otherwise."
    )
    score_gained: int = Field(..., ge=0, description="Score earned by merges during this move.")
    game_over: bool = Field(..., description="True if no move is possible after this one.")
    message: Optional[str] = Field(
        default=None,
        description="An optional message, e.g., if a move was not effective or the game ended."
    )

# --- API Endpoints ---

@app.get("/health", summary="Service health check")
async def health():
    return {"status": "ok"}


@app.post("/game/new", response_model=GameStateData, summary="Start a New Game")
@limiter.limit(settings.rate_limit)
async def start_new_game(request: Request, new_game_settings: NewGameSettings):
    """
    Initializes a new game of the requested size.

    - **size**: Dimension of the N x N grid (e.g., 4 for 4x4). Default is 4.
    - **high_score**: The client's best score, kept in the returned state.

    Returns the initial game state with two random tiles, score 0 and
    progress PLAYING.
    """
    try:
        session = game_session.new_game(new_game_settings.size)
        session = session.with_changes(high_score=new_game_settings.high_score)
        return GameStateData.from_session(session)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected error in /game/new: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected error occurred during game creation.")


@app.post("/game/move", response_model=MoveResponseData, summary="Make a Move in the Game")
@limiter.limit(settings.rate_limit)
async def make_move(request: Request, request_data: MoveRequestData):
    """
    Processes a player's move in the game.

    The API will:
    1. Slide and merge the grid in the requested direction.
    2. If the grid changed, add a new random tile (2 or 4) and the merge score.
    3. Report whether any move remains.

    A grid with no possible move is rejected with 409; start a new game instead.
    """
    session = request_data.to_session()
    if session.is_game_over:
        raise HTTPException(status_code=409, detail="Game is over; start a new game to keep playing.")

    try:
        result = game_session.handle_swipe(session, request_data.direction)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Error processing move: {str(e)}")
    except Exception as e:
        logger.error(f"Unexpected error in /game/move: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected server error occurred while processing the move.")

    message_for_client: Optional[str] = None
    if not result.moved:
        message_for_client = "Move was not effective; grid unchanged."
    elif result.game_over:
        message_for_client = "Game Over. No more valid moves."

    return MoveResponseData.from_session(
        result.session,
        moved=result.moved,
        score_gained=result.session.score - session.score,
        game_over=result.game_over,
        message=message_for_client,
    )


@app.post("/game/restart", response_model=GameStateData, summary="Restart the Game")
@limiter.limit(settings.rate_limit)
async def restart_game(request: Request, request_data: SessionData):
    """Starts a fresh grid of the same size, resetting the score and keeping the high score."""
    try:
        session = game_session.restart(request_data.to_session())
        return GameStateData.from_session(session)
    except Exception as e:
        logger.error(f"Unexpected error in /game/restart: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected error occurred while restarting.")

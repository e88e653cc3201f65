# config.py
# Environment configuration shared by the CLI and the HTTP service.

from dataclasses import dataclass
import logging
import os

DEFAULT_SAVE_FILE = "~/.grid2048.json"


@dataclass(frozen=True)
class Settings:
    grid_size: int = 4
    save_file: str = DEFAULT_SAVE_FILE
    rate_limit: str = "100/minute"
    log_level: str = "WARNING"


def _int_from_env(name: str, default: int, minimum: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be at least {minimum}, got {value}")
    return value


def load_settings() -> Settings:
    """
    Reads settings from the environment:

    - GRID2048_SIZE: grid dimension N (default 4, at least 2)
    - GRID2048_SAVE_FILE: JSON save file used by the CLI
    - GRID2048_RATE_LIMIT: slowapi limit string applied to each endpoint
    - GRID2048_LOG_LEVEL: logging level name
    """
    log_level = os.getenv("GRID2048_LOG_LEVEL", "WARNING").upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"GRID2048_LOG_LEVEL must be a logging level name, got {log_level!r}")

    return Settings(
        grid_size=_int_from_env("GRID2048_SIZE", 4, minimum=2),
        save_file=os.getenv("GRID2048_SAVE_FILE", DEFAULT_SAVE_FILE),
        rate_limit=os.getenv("GRID2048_RATE_LIMIT", "100/minute"),
        log_level=log_level,
    )


def configure_logging(level: str = "WARNING") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

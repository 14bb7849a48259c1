from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    rows: int = 6
    cols: int = 6
    player_count: int = 2
    host: str = "0.0.0.0"
    port: int = 5000
    debug: bool = False
    log_level: str = "INFO"

    def __post_init__(self):
        if self.rows < 2 or self.cols < 2:
            raise ValueError(f"board must be at least 2x2, got {self.rows}x{self.cols}")
        if self.player_count < 2:
            raise ValueError("at least two players are required")

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()  # picks up a local .env if there is one
        return cls(
            rows=int(os.getenv("CHAIN_ROWS", "6")),
            cols=int(os.getenv("CHAIN_COLS", "6")),
            player_count=int(os.getenv("CHAIN_PLAYERS", "2")),
            host=os.getenv("CHAIN_HOST", "0.0.0.0"),
            port=int(os.getenv("CHAIN_PORT", "5000")),
            debug=_env_bool("CHAIN_DEBUG", False),
            log_level=os.getenv("CHAIN_LOG_LEVEL", "INFO").upper(),
        )

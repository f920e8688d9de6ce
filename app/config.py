# app/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_seed(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return int(raw)


@dataclass(frozen=True)
class Settings:
    """
    Process settings read from the environment (and a .env file, if any).

    idle_wait is only the *initial* tier; the REPL can change it at runtime
    and the scheduler re-reads it every tick.
    """
    idle_wait: str = field(default_factory=lambda: _env_str("IDLE_WAIT", "regular").strip().lower())
    content_path: str = field(default_factory=lambda: _env_str("IDLE_CONTENT_PATH", "idle_dialogue.csv"))
    character_name: str = field(default_factory=lambda: _env_str("IDLE_CHARACTER", "Monika"))
    debug: bool = field(default_factory=lambda: _env_str("IDLE_DEBUG", "0") == "1")
    seed: Optional[int] = field(default_factory=lambda: _env_seed("IDLE_SEED"))
    tick_interval: float = field(default_factory=lambda: _env_float("IDLE_TICK_INTERVAL", 1.0))
    frame_interval: float = field(default_factory=lambda: _env_float("IDLE_FRAME_INTERVAL", 0.1))

    def redacted(self) -> dict[str, object]:
        return {
            "idle_wait": self.idle_wait,
            "content_path": self.content_path,
            "character_name": self.character_name,
            "debug": self.debug,
            "seed_set": self.seed is not None,
            "tick_interval": self.tick_interval,
            "frame_interval": self.frame_interval,
        }


def configure_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

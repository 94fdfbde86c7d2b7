from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def load_local_env_file(env_path: str = ".env") -> None:
    """Load key=value pairs from a local .env file into process env.

    Existing environment variables are preserved and not overwritten.
    """

    path = Path(env_path)
    if not path.exists():
        return

    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")

        if key and key not in os.environ:
            os.environ[key] = value


def _env_int(name: str, fallback: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return fallback
    try:
        return int(raw)
    except ValueError:
        return fallback


def _env_float(name: str, fallback: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return fallback
    try:
        return float(raw)
    except ValueError:
        return fallback


@dataclass(slots=True)
class EngineSettings:
    history_size: int = 50
    max_candidates: int = 10
    acceptance_threshold: float = 0.5
    switch_margin: float = 0.1
    reinforce_factor: float = 1.05
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> EngineSettings:
        return cls(
            history_size=_env_int("TRACKID_HISTORY_SIZE", 50),
            max_candidates=_env_int("TRACKID_MAX_CANDIDATES", 10),
            acceptance_threshold=_env_float("TRACKID_ACCEPTANCE_THRESHOLD", 0.5),
            switch_margin=_env_float("TRACKID_SWITCH_MARGIN", 0.1),
            reinforce_factor=_env_float("TRACKID_REINFORCE_FACTOR", 1.05),
            log_level=(os.getenv("TRACKID_LOG_LEVEL") or "INFO").upper(),
        )


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )

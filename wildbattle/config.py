from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


PROJECT_ROOT = Path(__file__).resolve().parents[1]


@dataclass(frozen=True, slots=True)
class Settings:
    redis_url: str
    log_level: str
    # Delay between narrated log entries pushed to WebSocket listeners.
    pacing_ms: int
    strict_species: bool


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes"}


def load_dotenv_if_present(*, root: Path = PROJECT_ROOT) -> None:
    env_path = root / ".env"
    if env_path.exists():
        # Real environment variables always win over the file.
        load_dotenv(dotenv_path=env_path, override=False)


def settings_from_env() -> Settings:
    raw_pacing = os.environ.get("WILDBATTLE_PACING_MS", "0").strip() or "0"
    try:
        pacing_ms = max(0, int(raw_pacing))
    except ValueError as e:
        raise RuntimeError(f"WILDBATTLE_PACING_MS must be an integer, got {raw_pacing!r}") from e

    return Settings(
        redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
        log_level=os.environ.get("WILDBATTLE_LOG_LEVEL", "INFO").upper(),
        pacing_ms=pacing_ms,
        strict_species=_env_flag("WILDBATTLE_STRICT_SPECIES"),
    )

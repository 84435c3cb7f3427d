from __future__ import annotations

import json
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

CONFIG_FILE_NAME = "settings.json"
DB_FILE_NAME = "stockledger.db"
ENV_DATA_DIR = "STOCKLEDGER_DATA_DIR"
ENV_BUSY_TIMEOUT = "STOCKLEDGER_BUSY_TIMEOUT"

DEFAULT_BUSY_TIMEOUT = 5.0


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    busy_timeout: float = DEFAULT_BUSY_TIMEOUT


def _default_data_dir() -> Path:
    return Path.home() / ".stockledger"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
    return {}


def _busy_timeout_from_env() -> float:
    raw = os.getenv(ENV_BUSY_TIMEOUT)
    if not raw:
        return DEFAULT_BUSY_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{ENV_BUSY_TIMEOUT} must be a number of seconds, got {raw!r}.")
    if value < 0:
        raise ValueError(f"{ENV_BUSY_TIMEOUT} must be >= 0.")
    return value


def persist_data_dir(data_dir_str: str, *, config_dir: Path | None = None) -> Path:
    """Remember ``data_dir_str`` as the data directory for future runs."""
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    config_dir = config_dir or _default_data_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    cfg = config_dir / CONFIG_FILE_NAME
    payload = {"data_dir": str(data_dir)}
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    get_settings.cache_clear()
    return data_dir


def load_settings() -> Settings:
    # Priority order:
    # 1) Environment variable
    # 2) Persisted settings in default folder
    # 3) Default folder
    if os.getenv(ENV_DATA_DIR):
        data_dir = Path(os.getenv(ENV_DATA_DIR, "")).expanduser().resolve()
    else:
        default_dir = _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        data_dir = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()

    data_dir.mkdir(parents=True, exist_ok=True)
    db_path = data_dir / DB_FILE_NAME
    return Settings(
        data_dir=data_dir,
        db_path=db_path,
        busy_timeout=_busy_timeout_from_env(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()

"""
config.py
Minimal runtime configuration read from the environment (and `.env`).
"""

from __future__ import annotations

import os
from dataclasses import dataclass

import dotenv

dotenv.load_dotenv()

DEFAULT_MODEL = "gpt-4o-mini"


def _to_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def _to_float(val: str | None, default: float) -> float:
    if val is None or not str(val).strip():
        return default
    try:
        return float(val)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    openai_api_key: str | None
    openai_model: str
    request_timeout_s: float
    store_dir: str
    log_to_stdout: bool
    log_dir: str | None = None
    log_file: str | None = None
    log_level: str = "INFO"


def get_settings() -> Settings:
    """Read settings fresh on every call so tests can monkeypatch the env."""
    model = (os.getenv("OPENAI_MODEL") or "").strip() or DEFAULT_MODEL
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=model,
        request_timeout_s=_to_float(os.getenv("OPENAI_TIMEOUT_S"), 60.0),
        store_dir=os.getenv("REGISTRY_STORE_DIR", "local_store"),
        log_to_stdout=_to_bool(os.getenv("LOG_TO_STDOUT"), default=True),
        log_dir=os.getenv("LOG_DIR") or None,
        log_file=os.getenv("LOG_FILE") or None,
        log_level=(os.getenv("LOG_LEVEL") or "INFO").strip() or "INFO",
    )

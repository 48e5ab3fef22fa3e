# usecase_registry/app_logger.py
"""
JSONL application log for the registry assistant.

One line per event, UTC timestamps, a fixed set of top-level keys:

    {"ts", "lvl", "event", "cid", "session_id", "msg", "payload"?, "step"?}

Event names in use:
    TURN                           one per session turn (controller)
    Orchestrator.TURN_REJECTED     empty input
    Orchestrator.UPSTREAM_FAILED   model call failed (error envelope as payload)
    Orchestrator.STRUCTURED_MISSING
    Orchestrator.TURN_COMPLETED
    Store.STATE_CORRUPT            unreadable state.json, loaded as empty
    Store.WRITE_FAILED / Store.TURN_LOG_FAILED

Location and level come from Settings (LOG_DIR, LOG_FILE, LOG_LEVEL,
LOG_TO_STDOUT); configure() arguments are the fallbacks.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

from usecase_registry.config import get_settings

LOGGER_NAME = "usecase_registry"


class _JsonlFormatter(logging.Formatter):
    converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        line: Dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%SZ"),
            "lvl": record.levelname,
            "event": getattr(record, "event", None),
            "cid": getattr(record, "correlation_id", None),
            "session_id": getattr(record, "session_id", None),
            "msg": record.getMessage() or None,
        }
        payload = getattr(record, "payload", None)
        if isinstance(payload, dict) and payload:
            line["payload"] = payload
        step = getattr(record, "step", None)
        if step is not None:
            line["step"] = step
        return json.dumps(line, ensure_ascii=False, separators=(",", ":"), default=str)


_logger: Optional[logging.Logger] = None
_log_file: Optional[Path] = None


def configure(
    *,
    root_dir: str | Path = "logs",
    filename: str = "app.jsonl",
    level: str | int | None = None,
    to_stdout: bool | None = None,
) -> None:
    """Attach the JSONL file handler (and optional INFO+ stdout mirror). Runs once per process."""
    global _logger, _log_file
    if _logger is not None:
        return

    settings = get_settings()
    log_dir = Path(settings.log_dir or root_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / (settings.log_file or filename)

    lvl = level or settings.log_level
    if isinstance(lvl, str):
        lvl = getattr(logging, lvl.upper(), logging.INFO)
    if to_stdout is None:
        to_stdout = settings.log_to_stdout

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(lvl)
    logger.propagate = False

    fmt = _JsonlFormatter()
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(lvl)
    file_handler.setFormatter(fmt)
    logger.addHandler(file_handler)

    if to_stdout:
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(logging.INFO)
        stream_handler.setFormatter(fmt)
        logger.addHandler(stream_handler)

    _logger = logger
    _log_file = log_file


def get() -> logging.Logger:
    if _logger is None:
        configure()
    return _logger  # type: ignore[return-value]


def current_log_file() -> Optional[Path]:
    return _log_file


# ------------------------- event helpers -------------------------

def log_event(
    event: str,
    payload: Dict[str, Any],
    *,
    correlation_id: Optional[str] = None,
    session_id: Optional[str] = None,
    level: int = logging.INFO,
    step: Optional[int] = None,
) -> None:
    get().log(
        level,
        event,
        extra={
            "event": event,
            "payload": payload,
            "correlation_id": correlation_id,
            "session_id": session_id,
            "step": step,
        },
    )


def log_turn_packet(
    packet: Dict[str, Any],
    *,
    correlation_id: Optional[str] = None,
    session_id: Optional[str] = None,
    step: Optional[int] = None,
) -> None:
    """The per-turn summary line; WARNING when the turn failed."""
    log_event(
        "TURN",
        packet,
        correlation_id=correlation_id or packet.get("correlation_id"),
        session_id=session_id,
        level=logging.INFO if packet.get("ok", True) else logging.WARNING,
        step=step,
    )


def log_error_event(
    event: str,
    error_obj: Dict[str, Any],
    *,
    correlation_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> None:
    """ERROR line whose payload is an error_handler envelope."""
    log_event(
        event,
        error_obj,
        correlation_id=correlation_id or error_obj.get("correlation_id"),
        session_id=session_id,
        level=logging.ERROR,
    )


def log_orchestrator_event(
    event: str,
    payload: Dict[str, Any],
    *,
    correlation_id: Optional[str] = None,
    level: int = logging.INFO,
) -> None:
    log_event(f"Orchestrator.{event}", payload, correlation_id=correlation_id, level=level)


def log_store_event(
    event: str,
    payload: Dict[str, Any],
    *,
    session_id: Optional[str] = None,
    level: int = logging.INFO,
) -> None:
    log_event(f"Store.{event}", payload, session_id=session_id, level=level)

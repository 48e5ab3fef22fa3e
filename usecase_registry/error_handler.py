# usecase_registry/error_handler.py
"""
Unified, actionable error envelope for the Use Case Registry Assistant.

This module defines a single, stable "error object" shape that travels in a
TurnResult at result.error (or None when no error). It also provides small
helpers to construct and log-friendly-wrap errors consistently.

Only hard failures produce an envelope: an empty user turn and a failed
upstream model call. A missing or malformed structured block in the model
reply is NOT an error; the turn succeeds with no state updates.

Error object contract (MUST NOT BREAK):
---------------------------------------
{
  "code": <ENUM>,              # stable, app-specific
  "origin": <str>,             # "input" | "upstream" | "config" | "io" | "unknown"
  "retryable": <bool>,         # can the user simply try again?
  "status": <int>,             # non-success status surfaced to the caller
  "user_message": <str>,       # short, clear, user-safe message (rendered verbatim)
  "next_actions": <list[str]>, # 1–3 verbs the UI maps to quick replies
  "dev_message": <str|None>,   # terse technical reason, safe to log (not shown to users)
  "details": <dict>,           # diagnostics (exception type, model, upstream status…)
  "timestamp": <iso-utc>,      # when the error was produced
  "correlation_id": <str>      # ties together logs for this turn
}

Usage (Orchestrator):
---------------------
err = make_error(
    code=ErrorCode.UPSTREAM_TIMEOUT,
    origin=ErrorOrigin.UPSTREAM,
    retryable=True,
    dev_message=str(exc),
    details={"model": model_name},
    correlation_id=cid,
)
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union


# ----------------------------- Enums & constants -----------------------------

class ErrorCode(str, Enum):
    EMPTY_INPUT = "EMPTY_INPUT"
    CONFIG_MISSING = "CONFIG_MISSING"
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    UPSTREAM_HTTP_ERROR = "UPSTREAM_HTTP_ERROR"
    IO_PERSISTENCE_FAILURE = "IO_PERSISTENCE_FAILURE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ErrorOrigin(str, Enum):
    INPUT = "input"
    UPSTREAM = "upstream"
    CONFIG = "config"
    IO = "io"
    UNKNOWN = "unknown"


class NextAction(str, Enum):
    TRY_REPHRASE = "TRY_REPHRASE"
    RETRY_LATER = "RETRY_LATER"
    CHECK_CONFIG = "CHECK_CONFIG"
    SELECT_ROLE = "SELECT_ROLE"


_DEFAULT_USER_MESSAGES: Mapping[ErrorCode, str] = {
    ErrorCode.EMPTY_INPUT: "Please type a message before sending.",
    ErrorCode.CONFIG_MISSING: "The assistant is not configured yet (missing API key).",
    ErrorCode.UPSTREAM_TIMEOUT: "The assistant took too long to answer. Please try again.",
    ErrorCode.UPSTREAM_UNAVAILABLE: "I couldn’t reach the assistant service. Please try again shortly.",
    ErrorCode.UPSTREAM_HTTP_ERROR: "The assistant service returned an error. Please try again.",
    ErrorCode.IO_PERSISTENCE_FAILURE: "Your session could not be saved. Your last change may be lost.",
    ErrorCode.UNKNOWN_ERROR: "Something went wrong. Please try again.",
}

_DEFAULT_ACTIONS: Mapping[ErrorCode, Tuple[NextAction, ...]] = {
    ErrorCode.EMPTY_INPUT: (NextAction.TRY_REPHRASE, NextAction.SELECT_ROLE),
    ErrorCode.CONFIG_MISSING: (NextAction.CHECK_CONFIG,),
    ErrorCode.UPSTREAM_TIMEOUT: (NextAction.RETRY_LATER, NextAction.TRY_REPHRASE),
    ErrorCode.UPSTREAM_UNAVAILABLE: (NextAction.RETRY_LATER,),
    ErrorCode.UPSTREAM_HTTP_ERROR: (NextAction.RETRY_LATER, NextAction.CHECK_CONFIG),
    ErrorCode.IO_PERSISTENCE_FAILURE: (NextAction.RETRY_LATER,),
    ErrorCode.UNKNOWN_ERROR: (NextAction.TRY_REPHRASE,),
}

_DEFAULT_STATUS: Mapping[ErrorCode, int] = {
    ErrorCode.EMPTY_INPUT: 400,
    ErrorCode.CONFIG_MISSING: 500,
    ErrorCode.UPSTREAM_TIMEOUT: 504,
    ErrorCode.UPSTREAM_UNAVAILABLE: 502,
    ErrorCode.UPSTREAM_HTTP_ERROR: 502,
    ErrorCode.IO_PERSISTENCE_FAILURE: 500,
    ErrorCode.UNKNOWN_ERROR: 500,
}


# ----------------------------- Utility helpers ------------------------------

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def new_correlation_id(prefix: str = "turn") -> str:
    """Build a correlation id that can be grepped across the JSONL log and the turn log."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _ensure_actions(values: Optional[Sequence[Union[str, NextAction]]]) -> List[str]:
    if not values:
        return []
    out: List[str] = []
    for v in values:
        s = v.value if isinstance(v, NextAction) else str(v)
        if s and s not in out:
            out.append(s)
    # keep at most 3 per the UI guidance
    return out[:3]


# ------------------------------- Main factory --------------------------------

def make_error(
    *,
    code: Union[ErrorCode, str],
    origin: Union[ErrorOrigin, str] = ErrorOrigin.UNKNOWN,
    retryable: bool,
    status: Optional[int] = None,
    user_message: Optional[str] = None,
    next_actions: Optional[Sequence[Union[str, NextAction]]] = None,
    dev_message: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
    correlation_id: Optional[str] = None,
    now: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Construct a fully-formed error object (dict) consistent with the app-wide contract.

    - `user_message`, `next_actions` and `status` are optional; if omitted, defaults
      are derived from the `code`.
    - `details` is pass-through diagnostics; avoid putting user content here.
    - `correlation_id`: pass the per-turn id if you have it; else a new id is generated.
    """
    try:
        code_enum = ErrorCode(code)
    except ValueError:
        code_enum = ErrorCode.UNKNOWN_ERROR

    try:
        origin_enum = ErrorOrigin(origin)
    except ValueError:
        origin_enum = ErrorOrigin.UNKNOWN

    msg = (user_message or _DEFAULT_USER_MESSAGES.get(code_enum) or _DEFAULT_USER_MESSAGES[ErrorCode.UNKNOWN_ERROR]).strip()
    actions = _ensure_actions(next_actions) or list(a.value for a in _DEFAULT_ACTIONS.get(code_enum, (NextAction.TRY_REPHRASE,)))
    code_status = int(status) if status else _DEFAULT_STATUS.get(code_enum, 500)

    return {
        "code": code_enum.value,
        "origin": origin_enum.value,
        "retryable": bool(retryable),
        "status": code_status,
        "user_message": msg,
        "next_actions": actions,
        "dev_message": (dev_message or None),
        "details": dict(details or {}),
        "timestamp": (now or _now_iso()),
        "correlation_id": correlation_id or new_correlation_id(),
    }


# ------------------------------- Introspection --------------------------------

def summarize_for_log(error_obj: Optional[Mapping[str, Any]]) -> str:
    """
    Produce a compact single-line summary suitable for the turn log.
    """
    if not error_obj:
        return ""
    code = error_obj.get("code", "UNKNOWN")
    origin = error_obj.get("origin", "unknown")
    status = error_obj.get("status", "")
    retryable = error_obj.get("retryable", False)
    cid = error_obj.get("correlation_id", "")
    return f"{code} origin={origin} status={status} retryable={retryable} cid={cid}"

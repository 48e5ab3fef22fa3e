"""
sanitizer.py

Coerce untrusted, JSON-shaped model output into well-typed partial state.

Everything here is total: any shape mismatch degrades to omitting that field
(or that section), never to an exception. The producer is an LLM, so wrong
shapes are expected on some turns.

Public API
- sanitize_state_updates(raw) -> StateUpdates
- sanitize_string_list(raw, limit) -> list[str] | None
- sanitize_roadmap(raw) -> list[RoadmapEntry] | None
- fallback_use_case_id(index) -> str
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from usecase_registry.registry_state import (
    ORG_FIELDS,
    RISK_LEVELS,
    OrgInfo,
    RiskAssessment,
    RoadmapEntry,
    RoadmapTask,
    StateUpdates,
    UseCase,
)

MAX_DUE_IN_DAYS = 90

_USE_CASE_TEXT_FIELDS = ("name", "description", "process", "model", "owner")
_USE_CASE_LIST_FIELDS = ("data", "subjects", "jurisdictions")


# ----------------------------- scalar helpers -----------------------------

def _is_sequence(v: Any) -> bool:
    return isinstance(v, (list, tuple))


def _coerce_str(v: Any) -> Optional[str]:
    """Truthy → string; falsy → None (omitted)."""
    if not v:
        return None
    if isinstance(v, str):
        return v
    if isinstance(v, bool):
        return "true"
    return str(v)


def _strings_only(v: Any) -> Optional[List[str]]:
    if not _is_sequence(v):
        return None
    return [x for x in v if isinstance(x, str)]


def fallback_use_case_id(index: int) -> str:
    """
    Id for a use case the model sent without one: millisecond timestamp plus
    batch position, with a random suffix so two batches in the same tick
    cannot collide.
    """
    return f"uc-{int(time.time() * 1000)}-{index}-{uuid.uuid4().hex[:6]}"


# ----------------------------- state updates -----------------------------

def _sanitize_org(raw: Mapping) -> OrgInfo:
    fields: Dict[str, str] = {}
    for key in ORG_FIELDS:
        val = _coerce_str(raw.get(key))
        if val is not None:
            fields[key] = val
    return OrgInfo(**fields)


def _sanitize_use_case(raw: Mapping, index: int) -> UseCase:
    fields: Dict[str, Any] = {"id": _coerce_str(raw.get("id")) or fallback_use_case_id(index)}

    for key in _USE_CASE_TEXT_FIELDS:
        val = _coerce_str(raw.get(key))
        if val is not None:
            fields[key] = val

    in_scope = raw.get("inScope")
    if isinstance(in_scope, bool):
        fields["in_scope"] = in_scope

    risk = raw.get("risk")
    if isinstance(risk, str) and risk in RISK_LEVELS:
        fields["risk"] = risk

    for key in _USE_CASE_LIST_FIELDS:
        vals = _strings_only(raw.get(key))
        if vals is not None:
            fields[key] = vals

    return UseCase(**fields)


def sanitize_state_updates(raw: Any) -> StateUpdates:
    """
    Validate and coerce an arbitrary `stateUpdates` payload.

    Returns an empty StateUpdates (a no-op for the merger) when `raw` is not
    object-shaped. Sections that are missing or mis-shaped are left unset.
    """
    if not isinstance(raw, Mapping):
        return StateUpdates()

    fields: Dict[str, Any] = {}

    org = raw.get("org")
    if isinstance(org, Mapping):
        fields["org"] = _sanitize_org(org)

    roles = _strings_only(raw.get("roles"))
    if roles is not None:
        fields["roles"] = roles

    use_cases = raw.get("useCases")
    if _is_sequence(use_cases):
        fields["use_cases"] = [
            _sanitize_use_case(uc, idx)
            for idx, uc in enumerate(use_cases)
            if isinstance(uc, Mapping)
        ]

    return StateUpdates(**fields)


# ----------------------------- display lists -----------------------------

def sanitize_string_list(raw: Any, limit: int) -> Optional[List[str]]:
    """String elements of a sequence, in order, truncated to `limit`. None if not a sequence."""
    vals = _strings_only(raw)
    if vals is None:
        return None
    return vals[: max(0, int(limit))]


# ------------------------------- roadmap ---------------------------------

def _sanitize_due_in_days(v: Any) -> Optional[int]:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    if v != v or v < 0:  # NaN or negative
        return None
    if v >= MAX_DUE_IN_DAYS:  # also catches inf
        return MAX_DUE_IN_DAYS
    return int(round(v))


def _sanitize_task(raw: Any) -> Optional[RoadmapTask]:
    if not isinstance(raw, Mapping):
        return None
    fields: Dict[str, Any] = {}
    for key in ("title", "owner", "acceptance"):
        val = _coerce_str(raw.get(key))
        if val is not None:
            fields[key] = val
    due = _sanitize_due_in_days(raw.get("dueInDays"))
    if due is not None:
        fields["due_in_days"] = due
    if not fields.get("title"):
        return None
    return RoadmapTask(**fields)


def _sanitize_risk(raw: Any) -> Optional[RiskAssessment]:
    if not isinstance(raw, Mapping):
        return None
    fields: Dict[str, Any] = {}
    level = raw.get("level")
    if isinstance(level, str) and level in RISK_LEVELS:
        fields["level"] = level
    rationale = _coerce_str(raw.get("rationale"))
    if rationale is not None:
        fields["rationale"] = rationale
    return RiskAssessment(**fields) if fields else None


def _sanitize_roadmap_entry(raw: Any) -> Optional[RoadmapEntry]:
    if not isinstance(raw, Mapping):
        return None
    use_case_id = _coerce_str(raw.get("useCaseId"))
    if use_case_id is None:
        return None

    tasks: List[RoadmapTask] = []
    if _is_sequence(raw.get("tasks")):
        for t in raw["tasks"]:
            task = _sanitize_task(t)
            if task is not None:
                tasks.append(task)

    return RoadmapEntry(
        use_case_id=use_case_id,
        use_case_name=_coerce_str(raw.get("useCaseName")),
        risk=_sanitize_risk(raw.get("risk")),
        tasks=tasks,
    )


def sanitize_roadmap(raw: Any) -> Optional[List[RoadmapEntry]]:
    """
    Field-by-field validation of the optional roadmap: entries need a
    useCaseId, tasks need a title, dueInDays is clamped to 0..90.
    Returns None when `raw` is not array-shaped.
    """
    if not _is_sequence(raw):
        return None
    out: List[RoadmapEntry] = []
    for item in raw:
        entry = _sanitize_roadmap_entry(item)
        if entry is not None:
            out.append(entry)
    return out

#!/usr/bin/env python3
"""
Project: Use Case Registry Assistant
File: registry_state.py

Canonical session state for the AI use case registry, with merge semantics:
- org merges field by field (incoming wins on conflict),
- roles are replaced wholesale when present in an update,
- use cases upsert by id with field-level union (absent fields keep prior values),
- existing use cases keep their position; new ones append.

Methods & Classes
- RiskLevel: the five accepted risk literals
- OrgInfo, UseCase: section models (every field optional except UseCase.id)
- SessionState: root aggregate (org, roles, use_cases)
  - model_merge_updates(update) -> SessionState
  - to_payload() -> dict   # camelCase, absent fields omitted
- StateUpdates: partial session state produced by the sanitizer
- RiskAssessment, RoadmapTask, RoadmapEntry: sanitized roadmap shapes
- merge_state(current, update) -> SessionState
- IntakeStep / compute_intake_step(state) -> IntakeStep

Conventions
- "Provided" means set on the model and not None. An explicit empty string
  still overwrites (that is how a user clears an org field).
- Wire names are camelCase (useCases, inScope, useCaseId, dueInDays);
  attributes are snake_case. Both are accepted on input.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict, List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field

# ------------------------------------------------------------------------------
# Constants
# ------------------------------------------------------------------------------

RiskLevel = Literal["minimal", "limited", "high", "prohibited", "unknown"]
RISK_LEVELS = frozenset(get_args(RiskLevel))

ORG_FIELDS = ("name", "country", "industry", "size")

_MODEL_CONFIG = ConfigDict(populate_by_name=True, extra="ignore")


# ------------------------------------------------------------------------------
# Section Models (STATE)
# ------------------------------------------------------------------------------

class OrgInfo(BaseModel):
    name: Optional[str] = None
    country: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[str] = None

    model_config = _MODEL_CONFIG


class UseCase(BaseModel):
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    process: Optional[str] = None
    in_scope: Optional[bool] = Field(default=None, alias="inScope")
    risk: Optional[RiskLevel] = None
    model: Optional[str] = None
    data: Optional[List[str]] = None
    subjects: Optional[List[str]] = None
    owner: Optional[str] = None
    jurisdictions: Optional[List[str]] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore", protected_namespaces=())


# ------------------------------------------------------------------------------
# Roadmap (sanitized pass-through for display)
# ------------------------------------------------------------------------------

class RiskAssessment(BaseModel):
    level: Optional[RiskLevel] = None
    rationale: Optional[str] = None

    model_config = _MODEL_CONFIG


class RoadmapTask(BaseModel):
    title: Optional[str] = None
    owner: Optional[str] = None
    due_in_days: Optional[int] = Field(default=None, ge=0, le=90, alias="dueInDays")
    acceptance: Optional[str] = None

    model_config = _MODEL_CONFIG


class RoadmapEntry(BaseModel):
    use_case_id: str = Field(alias="useCaseId")
    use_case_name: Optional[str] = Field(default=None, alias="useCaseName")
    risk: Optional[RiskAssessment] = None
    tasks: List[RoadmapTask] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


# ------------------------------------------------------------------------------
# Partial state (sanitizer output)
# ------------------------------------------------------------------------------

class StateUpdates(BaseModel):
    org: Optional[OrgInfo] = None
    roles: Optional[List[str]] = None
    use_cases: Optional[List[UseCase]] = Field(default=None, alias="useCases")

    model_config = _MODEL_CONFIG

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_unset=True, exclude_none=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)


# ------------------------------------------------------------------------------
# SessionState Root
# ------------------------------------------------------------------------------

class SessionState(BaseModel):
    org: Optional[OrgInfo] = None
    roles: List[str] = Field(default_factory=list)
    use_cases: List[UseCase] = Field(default_factory=list, alias="useCases")

    model_config = _MODEL_CONFIG

    def model_merge_updates(self, update: Optional[StateUpdates]) -> "SessionState":
        """Return a new SessionState with `update` folded in (self is untouched)."""
        return merge_state(self, update)

    def to_payload(self) -> Dict[str, Any]:
        """camelCase snapshot for the model envelope and the persisted JSON document."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        data.setdefault("roles", [])
        data.setdefault("useCases", [])
        return data


# -------------------------------- Merge -----------------------------------

def _provided(model: Optional[BaseModel]) -> Dict[str, Any]:
    if model is None:
        return {}
    return model.model_dump(exclude_unset=True, exclude_none=True)


def merge_state(current: SessionState, update: Optional[StateUpdates]) -> SessionState:
    """
    Fold a partial update into the current session state.

    Pure: `current` is never mutated. Fields absent from `update` are left
    untouched. No error conditions; malformed input is the sanitizer's job.
    """
    data = current.model_dump(exclude_none=True)
    if update is None:
        return SessionState.model_validate(data)

    incoming = update.model_dump(exclude_unset=True, exclude_none=True)

    if "org" in incoming:
        org = dict(data.get("org") or {})
        org.update(incoming["org"])
        data["org"] = org

    if "roles" in incoming:
        data["roles"] = list(incoming["roles"])

    if "use_cases" in incoming:
        # dict keeps first-seen order; re-assigning a key does not move it
        by_id: Dict[str, Dict[str, Any]] = {}
        for uc in data.get("use_cases") or []:
            by_id[uc["id"]] = uc
        for uc in incoming["use_cases"]:
            existing = by_id.get(uc["id"], {})
            by_id[uc["id"]] = {**existing, **uc}
        data["use_cases"] = list(by_id.values())

    return SessionState.model_validate(data)


# ------------------------------------------------------------------------------
# Intake step (derived view, never stored)
# ------------------------------------------------------------------------------

class IntakeStep(IntEnum):
    ROLE = 1
    USE_CASES = 2
    REGISTRY = 3


def compute_intake_step(state: SessionState) -> IntakeStep:
    if not state.roles:
        return IntakeStep.ROLE
    if not state.use_cases:
        return IntakeStep.USE_CASES
    return IntakeStep.REGISTRY

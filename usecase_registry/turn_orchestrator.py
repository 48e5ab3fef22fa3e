"""
usecase_registry.turn_orchestrator
==================================

Orchestrator for a single user turn of the Use Case Registry Assistant.

The `TurnOrchestrator` takes the raw user text and the caller's current
`SessionState`, sends one request to the upstream model, and returns a
`TurnResult` bundle: narrative reply, display lists, optional roadmap, the
sanitized state updates, and the merged state.

Pipeline
--------
1) **Guard input**: empty / whitespace-only text is rejected before any
   network activity (status 400, EMPTY_INPUT).
2) **Envelope**: fixed system instruction + `<INPUT>` + JSON
   `{"message": <text>, "state": <snapshot>}`.
3) **Model call**: `llm_client` (temperature 0, store=False, no retries,
   timeout). Transport failures stop the pipeline and leave state untouched.
4) **Extract → sanitize → merge**: `response_extractor`, `sanitizer`,
   `registry_state.merge_state`. A missing or malformed structured block is
   not an error: the narrative is returned and state gets no updates.

The orchestrator is stateless between calls and never persists anything;
the caller commits `result.state` if it wants it.

TurnResult.as_response() (wire shape)
-------------------------------------
    {"reply": str, "guidance"?: [str]<=6, "suggestions"?: [str]<=4,
     "questions"?: [str]<=3, "examples"?: [str]<=3, "roadmap"?: [...],
     "stateUpdates"?: {...}, "useCases"?: [...]}
or, on failure,
    {"error": <user message>}
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from usecase_registry.app_logger import log_error_event, log_orchestrator_event
from usecase_registry.error_handler import ErrorCode, ErrorOrigin, make_error, new_correlation_id
from usecase_registry.llm_client import ModelCallError, ModelClient, ModelFactory
from usecase_registry.registry_state import (
    RoadmapEntry,
    SessionState,
    StateUpdates,
    UseCase,
    merge_state,
)
from usecase_registry.response_extractor import extract_structured_reply
from usecase_registry.sanitizer import (
    sanitize_roadmap,
    sanitize_state_updates,
    sanitize_string_list,
)

MAX_GUIDANCE = 6
MAX_SUGGESTIONS = 4
MAX_QUESTIONS = 3
MAX_EXAMPLES = 3

ALLOWED_ROLES = ("provider", "deployer", "importer", "distributor", "manufacturer", "other")
_ROLE_LIST = ", ".join(f'"{r}"' for r in ALLOWED_ROLES)


# ----------------------------- prompt -----------------------------

SYSTEM_PROMPT = f"""
You are an EU AI Act compliance assistant designed for small and medium-sized enterprises (SMEs, 50–300 employees).
Your goal is to help organizations go through the EU AI Act compliance process with the minimum number of steps.

Follow this structured reasoning order:
1. Identify the organization’s role(s) in the AI ecosystem. Allowed roles: {_ROLE_LIST}.
2. Inventory all AI use cases within the organization.
3. Build a structured AI Use Case Registry summarizing those use cases.

Guidelines:
- Always stay factual and concise.
- Never invent details — if missing, ask the user directly.
- If using a third-party AI system without modifying or selling it, classify as "deployer".
- Use business-friendly language.
- Be deterministic and consistent.

Output format:
1. Start with a short summary.
2. Provide concise, actionable guidance that references the user's current use cases by name, with a brief "why this matters" for each item.
3. Ask targeted follow-up questions to collect missing details (data categories, owners, jurisdictions, risk rationale).
4. Provide a roadmap (only if you have enough details): tasks with owners, due dates (<= 90 days) and acceptance criteria, one section per use case.
5. If the user asks for examples, provide 2–3 short, concrete examples tailored to their use cases.
6. Then include **exactly one fenced JSON block** with this structure:

```json
{{
  "guidance": ["..."],
  "suggestions": ["Add another AI use case", "Generate compliance summary"],
  "questions": ["Q1?"],
  "examples": ["..."],
  "roadmap": [
    {{
      "useCaseId": "uc-1",
      "useCaseName": "Customer Support Chatbot",
      "risk": {{ "level": "limited", "rationale": "short reason" }},
      "tasks": [
        {{ "title": "Define human oversight SOP", "owner": "Support Lead", "dueInDays": 30,
          "acceptance": "SOP approved and communicated to agents" }}
      ]
    }}
  ],
  "stateUpdates": {{
    "org": {{ "name": "ExampleCorp", "country": "Latvia", "industry": "Retail", "size": "SME" }},
    "roles": ["deployer"],
    "useCases": [
      {{
        "id": "uc-1", "name": "Recommendation Engine",
        "description": "AI system recommending products to customers",
        "process": "E-commerce personalization", "inScope": true, "risk": "limited",
        "model": "Google Recommendations AI", "data": ["browsing data", "purchase history"],
        "subjects": ["customers"], "owner": "Marketing Department", "jurisdictions": ["EU"]
      }}
    ]
  }}
}}
```

Rules:
- Do not output more than {MAX_SUGGESTIONS} suggestions.
- Do not output more than {MAX_GUIDANCE} guidance items.
- Do not output more than {MAX_QUESTIONS} questions.
- Do not output more than {MAX_EXAMPLES} examples.
- risk must be one of "minimal", "limited", "high", "prohibited", "unknown".
- Reuse the existing id when updating a use case from the provided state.
- Only include a roadmap if you can infer meaningful tasks; otherwise ask questions first.
- Keep JSON valid and parseable.
- Do not repeat or explain JSON outside the fenced block.
""".strip()


def build_model_input(user_text: str, state: SessionState) -> str:
    envelope = {"message": user_text, "state": state.to_payload()}
    return f"{SYSTEM_PROMPT}\n\n<INPUT>\n{json.dumps(envelope, ensure_ascii=False)}"


# ----------------------------- result -----------------------------

class TurnResult(BaseModel):
    ok: bool
    status: int = 200
    reply: str = ""
    guidance: Optional[List[str]] = None
    suggestions: Optional[List[str]] = None
    questions: Optional[List[str]] = None
    examples: Optional[List[str]] = None
    roadmap: Optional[List[RoadmapEntry]] = None
    state_updates: Optional[StateUpdates] = None
    state: SessionState = Field(default_factory=SessionState)
    error: Optional[Dict[str, Any]] = None
    correlation_id: str = ""
    model: Optional[str] = None
    tokens: Dict[str, int] = Field(default_factory=lambda: {"in": 0, "out": 0})

    model_config = ConfigDict(protected_namespaces=())

    @property
    def use_cases(self) -> Optional[List[UseCase]]:
        """Convenience alias for state_updates.use_cases."""
        if self.state_updates is None:
            return None
        return self.state_updates.use_cases

    def as_response(self) -> Dict[str, Any]:
        if not self.ok:
            return {"error": (self.error or {}).get("user_message", "Unknown error")}
        out: Dict[str, Any] = {"reply": self.reply}
        for key in ("guidance", "suggestions", "questions", "examples"):
            val = getattr(self, key)
            if val is not None:
                out[key] = list(val)
        if self.roadmap is not None:
            out["roadmap"] = [r.model_dump(by_alias=True, exclude_none=True) for r in self.roadmap]
        if self.state_updates is not None:
            out["stateUpdates"] = self.state_updates.to_payload()
            if self.state_updates.use_cases is not None:
                out["useCases"] = out["stateUpdates"].get("useCases", [])
        return out

    def to_packet(self) -> Dict[str, Any]:
        """Flat dict for the turn log (state snapshot included)."""
        pkt = self.model_dump(mode="json", exclude_none=True)
        pkt["state"] = self.state.to_payload()
        if self.state_updates is not None:
            pkt["state_updates"] = self.state_updates.to_payload()
        return pkt


# ----------------------------- orchestrator -----------------------------

_ERROR_CODES_BY_KIND = {
    "config": (ErrorCode.CONFIG_MISSING, ErrorOrigin.CONFIG, False),
    "timeout": (ErrorCode.UPSTREAM_TIMEOUT, ErrorOrigin.UPSTREAM, True),
    "connection": (ErrorCode.UPSTREAM_UNAVAILABLE, ErrorOrigin.UPSTREAM, True),
    "http": (ErrorCode.UPSTREAM_HTTP_ERROR, ErrorOrigin.UPSTREAM, True),
}


class TurnOrchestrator:
    def __init__(self, client: Optional[ModelClient] = None, *, model_name: Optional[str] = None):
        """
        Args:
            client: anything exposing complete(prompt, model_name=...) -> ModelReply.
                    Defaults to the cached OpenAI Responses client, built lazily.
            model_name: default model override for every turn.
        """
        self._client = client
        self._model_name = model_name

    def _get_client(self) -> ModelClient:
        if self._client is None:
            self._client = ModelFactory.get()
        return self._client

    def _failure(self, state: SessionState, err: Dict[str, Any], *, cid: str, model: Optional[str] = None) -> TurnResult:
        return TurnResult(
            ok=False,
            status=err["status"],
            state=state,
            error=err,
            correlation_id=cid,
            model=model,
        )

    def handle_turn(
        self,
        user_text: str,
        state: Optional[SessionState] = None,
        *,
        model_name: Optional[str] = None,
    ) -> TurnResult:
        cid = new_correlation_id()
        state = state if state is not None else SessionState()
        mdl = model_name or self._model_name

        # 1) input guard
        if not isinstance(user_text, str) or not user_text.strip():
            err = make_error(
                code=ErrorCode.EMPTY_INPUT,
                origin=ErrorOrigin.INPUT,
                retryable=False,
                dev_message='Missing "input" string',
                correlation_id=cid,
            )
            log_orchestrator_event("TURN_REJECTED", {"code": err["code"]}, correlation_id=cid)
            return self._failure(state, err, cid=cid)

        # 2-3) envelope + single model call
        prompt = build_model_input(user_text, state)
        try:
            reply = self._get_client().complete(prompt, model_name=mdl)
        except ModelCallError as e:
            code, origin, retryable = _ERROR_CODES_BY_KIND.get(
                e.kind, (ErrorCode.UNKNOWN_ERROR, ErrorOrigin.UNKNOWN, False)
            )
            err = make_error(
                code=code,
                origin=origin,
                retryable=retryable,
                status=e.status if e.kind == "http" else None,
                dev_message=str(e),
                details={"kind": e.kind, "upstream_status": e.status, "model": mdl},
                correlation_id=cid,
            )
            log_error_event("Orchestrator.UPSTREAM_FAILED", err, correlation_id=cid)
            return self._failure(state, err, cid=cid, model=mdl)

        # 4) extract → sanitize → merge
        extracted = extract_structured_reply(reply.text)
        obj = extracted.structured
        if obj is None:
            log_orchestrator_event(
                "STRUCTURED_MISSING",
                {"candidate_found": extracted.candidate_found, "source": extracted.source},
                correlation_id=cid,
                level=logging.WARNING if extracted.candidate_found else logging.INFO,
            )
            obj = {}

        updates: Optional[StateUpdates] = None
        if isinstance(obj.get("stateUpdates"), dict):
            updates = sanitize_state_updates(obj["stateUpdates"])
        new_state = merge_state(state, updates)

        result = TurnResult(
            ok=True,
            reply=extracted.narrative,
            guidance=sanitize_string_list(obj.get("guidance"), MAX_GUIDANCE),
            suggestions=sanitize_string_list(obj.get("suggestions"), MAX_SUGGESTIONS),
            questions=sanitize_string_list(obj.get("questions"), MAX_QUESTIONS),
            examples=sanitize_string_list(obj.get("examples"), MAX_EXAMPLES),
            roadmap=sanitize_roadmap(obj.get("roadmap")),
            state_updates=updates,
            state=new_state,
            correlation_id=cid,
            model=reply.model,
            tokens=dict(reply.tokens or {}),
        )
        log_orchestrator_event(
            "TURN_COMPLETED",
            {
                "structured": extracted.structured is not None,
                "source": extracted.source,
                "use_cases": len(new_state.use_cases),
                "roles": list(new_state.roles),
                "tokens": result.tokens,
            },
            correlation_id=cid,
        )
        return result

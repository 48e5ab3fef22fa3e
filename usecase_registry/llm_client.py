"""
llm_client.py

Single-shot transport to the upstream model (OpenAI Responses API).

One request per turn, deterministic sampling (temperature 0), no server-side
storage (store=False), no SDK retries, bounded by a timeout. Every failure is
raised as ModelCallError with a `kind` the orchestrator maps to an error
envelope; nothing here retries or falls back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Optional, Protocol

import openai

from usecase_registry.config import get_settings


class ModelCallError(RuntimeError):
    """Raised when the upstream call fails (no auto-retry)."""

    def __init__(self, message: str, *, kind: str, status: Optional[int] = None):
        super().__init__(message)
        self.kind = kind        # "config" | "timeout" | "connection" | "http"
        self.status = status    # upstream HTTP status for kind="http"


@dataclass
class ModelReply:
    text: str
    model: str
    tokens: Dict[str, int] = field(default_factory=lambda: {"in": 0, "out": 0})
    raw: Optional[Dict[str, Any]] = None


class ModelClient(Protocol):
    def complete(self, prompt: str, *, model_name: Optional[str] = None) -> ModelReply: ...


# ------------------------------------------------------------------------------
# Response text recovery
# ------------------------------------------------------------------------------

def extract_output_text(data: Any) -> str:
    """
    Pull reply text out of any OpenAI response shape:
    - {"output_text": "..."}
    - {"output": [{"content": [{"text": "..."} | {"text": {"value": "..."}}]}]}
    - {"choices": [{"message": {"content": "..." | [{"text": "..."}]}}]}
    """
    if not isinstance(data, dict):
        return ""

    output_text = data.get("output_text")
    if isinstance(output_text, str) and output_text.strip():
        return output_text

    output = data.get("output")
    if isinstance(output, list):
        parts: List[str] = []
        for item in output:
            content = item.get("content") if isinstance(item, dict) else None
            if not isinstance(content, list):
                continue
            for c in content:
                if not isinstance(c, dict):
                    continue
                text = c.get("text")
                if isinstance(text, dict):
                    text = text.get("value")
                if isinstance(text, str) and text:
                    parts.append(text)
        if "".join(parts).strip():
            return "\n".join(parts)

    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        content = (choices[0].get("message") or {}).get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return "\n".join(
                (c.get("text") or "") if isinstance(c, dict) else "" for c in content
            )
    return ""


def _usage_tokens(data: Dict[str, Any]) -> Dict[str, int]:
    usage = data.get("usage") or {}
    return {
        "in": int(usage.get("input_tokens", usage.get("prompt_tokens", 0)) or 0),
        "out": int(usage.get("output_tokens", usage.get("completion_tokens", 0)) or 0),
    }


# ------------------------------------------------------------------------------
# OpenAI Responses client
# ------------------------------------------------------------------------------

class ResponsesClient:
    def __init__(
        self,
        client: Optional[openai.OpenAI] = None,
        *,
        model_name: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ):
        settings = get_settings()
        self._model_name = model_name or settings.openai_model
        if client is None:
            if not settings.openai_api_key:
                raise ModelCallError("OPENAI_API_KEY is not set", kind="config")
            client = openai.OpenAI(
                api_key=settings.openai_api_key,
                timeout=timeout_s or settings.request_timeout_s,
                max_retries=0,
            )
        self._client = client

    @property
    def model_name(self) -> str:
        return self._model_name

    def complete(self, prompt: str, *, model_name: Optional[str] = None) -> ModelReply:
        mdl = (model_name or "").strip() or self._model_name
        try:
            resp = self._client.responses.create(
                model=mdl,
                input=prompt,
                temperature=0,
                store=False,
            )
        except openai.APITimeoutError as e:
            raise ModelCallError(f"upstream timeout: {e}", kind="timeout") from e
        except openai.APIConnectionError as e:
            raise ModelCallError(f"upstream unreachable: {e}", kind="connection") from e
        except openai.APIStatusError as e:
            raise ModelCallError(
                f"OpenAI error: {e.message}", kind="http", status=e.status_code
            ) from e

        data = resp.model_dump() if hasattr(resp, "model_dump") else dict(resp)
        text = getattr(resp, "output_text", None)
        if not isinstance(text, str) or not text.strip():
            text = extract_output_text(data)
        return ModelReply(text=text, model=mdl, tokens=_usage_tokens(data), raw=data)


class ModelFactory:
    @staticmethod
    @lru_cache(maxsize=1)
    def get() -> ResponsesClient:
        return ResponsesClient()

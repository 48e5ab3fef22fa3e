"""
response_extractor.py

Split a free-form model reply into the human-readable narrative and the
embedded structured (JSON object) payload.

Candidate selection
- A fenced block tagged ```json wins (first one, case-insensitive tag).
- Otherwise the greedy span from the first "{" to the last "}" of the text.

Parsing is lenient: if the candidate does not parse as a whole, the brace
span inside it is tried, then a raw_decode from its first "{" (tolerates
trailing prose after the object). Anything that still fails, or that is not a
JSON object, yields structured=None. Extraction never raises.

The narrative is the reply with every fenced block removed (tagged or not),
trimmed.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

_JSON_FENCE_RE = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)
_ANY_FENCE_RE = re.compile(r"```[\s\S]*?```")
_BRACE_SPAN_RE = re.compile(r"\{[\s\S]*\}")

_DECODER = json.JSONDecoder()

CandidateSource = Literal["fence", "braces"]


@dataclass(frozen=True)
class ExtractedReply:
    narrative: str
    structured: Optional[Dict[str, Any]]
    source: Optional[CandidateSource] = None  # where the candidate text came from
    candidate_found: bool = False


def _find_candidate(text: str) -> tuple[Optional[str], Optional[CandidateSource]]:
    fenced = _JSON_FENCE_RE.search(text)
    if fenced:
        return fenced.group(1), "fence"
    plain = _BRACE_SPAN_RE.search(text)
    if plain:
        return plain.group(0), "braces"
    return None, None


def _parse_object(candidate: str) -> Optional[Dict[str, Any]]:
    attempts: List[str] = [candidate.strip()]
    span = _BRACE_SPAN_RE.search(candidate)
    if span and span.group(0) != attempts[0]:
        attempts.append(span.group(0))

    for attempt in attempts:
        try:
            parsed = json.loads(attempt)
        except (ValueError, RecursionError):
            continue
        return parsed if isinstance(parsed, dict) else None

    start = candidate.find("{")
    if start == -1:
        return None
    try:
        parsed, _ = _DECODER.raw_decode(candidate[start:])
    except (ValueError, RecursionError):
        return None
    return parsed if isinstance(parsed, dict) else None


def strip_fenced_blocks(text: str) -> str:
    cleaned = _JSON_FENCE_RE.sub("", text or "")
    cleaned = _ANY_FENCE_RE.sub("", cleaned)
    return cleaned.strip()


def extract_structured_reply(text: str) -> ExtractedReply:
    """Locate and parse the structured block of a model reply; see module docstring."""
    text = text if isinstance(text, str) else ""
    candidate, source = _find_candidate(text)
    structured = _parse_object(candidate) if candidate is not None else None
    return ExtractedReply(
        narrative=strip_fenced_blocks(text),
        structured=structured,
        source=source,
        candidate_found=candidate is not None,
    )

# intake_agent/mapping.py
from __future__ import annotations

from typing import List, Optional

from usecase_registry.registry_state import IntakeStep, SessionState, compute_intake_step
from usecase_registry.turn_orchestrator import TurnResult

ROLE_OPTIONS = ("Provider", "Deployer", "Importer", "Distributor")

_STEP_LABELS = {
    IntakeStep.ROLE: "1. Role",
    IntakeStep.USE_CASES: "2. Use cases",
    IntakeStep.REGISTRY: "3. Registry",
}


def _bullets(title: str, items: Optional[List[str]]) -> List[str]:
    if not items:
        return []
    return [f"{title}:"] + [f"• {it}" for it in items]


def render_progress(state: SessionState) -> str:
    """'[1. Role] → 2. Use cases → 3. Registry' with the active step bracketed."""
    active = compute_intake_step(state)
    parts = [f"[{label}]" if step == active else label for step, label in _STEP_LABELS.items()]
    return " → ".join(parts)


def render_turn(result: TurnResult) -> str:
    """
    Deterministic mapping: TurnResult -> reply text for the transcript.
    Errors render the envelope's user message verbatim.
    """
    if not result.ok:
        msg = (result.error or {}).get("user_message") or "Something went wrong."
        return msg

    lines: List[str] = [result.reply.strip() or "(no response)"]

    sections = (
        _bullets("Guidance", result.guidance)
        + _bullets("Questions", result.questions)
        + _bullets("Examples", result.examples)
    )
    if sections:
        lines.append("")
        lines.extend(sections)

    if result.roadmap:
        lines.append("")
        lines.append("Roadmap:")
        for entry in result.roadmap:
            risk = entry.risk.level if entry.risk and entry.risk.level else "unknown"
            lines.append(f"• {entry.use_case_name or entry.use_case_id} (risk: {risk})")
            for task in entry.tasks:
                due = f", due in {task.due_in_days}d" if task.due_in_days is not None else ""
                owner = f" [{task.owner}]" if task.owner else ""
                lines.append(f"    - {task.title}{owner}{due}")

    if result.suggestions:
        lines.append("")
        lines.append("Suggestions: " + " | ".join(result.suggestions))

    return "\n".join(lines)


def render_registry(state: SessionState) -> str:
    """Use-case cards, the way the registry panel lists them."""
    org = state.org
    head: List[str] = []
    if org and any((org.name, org.country, org.industry, org.size)):
        head.append(
            "Organization: "
            + ", ".join(v for v in (org.name, org.country, org.industry, org.size) if v)
        )
    head.append("Roles: " + (", ".join(state.roles) if state.roles else "(none selected)"))

    if not state.use_cases:
        return "\n".join(head + ["No AI use cases yet."])

    lines = head + [f"AI Use Cases ({len(state.use_cases)})"]
    for uc in state.use_cases:
        lines.append(f"• {uc.name or uc.id}  [{uc.risk or 'unknown'}]")
        if uc.description:
            lines.append(f"    {uc.description}")
        meta = []
        if uc.owner:
            meta.append(f"owner: {uc.owner}")
        if uc.in_scope is not None:
            meta.append("in scope" if uc.in_scope else "out of scope")
        if uc.jurisdictions:
            meta.append("jurisdictions: " + ", ".join(uc.jurisdictions))
        if meta:
            lines.append("    " + "; ".join(meta))
    return "\n".join(lines)


def role_ack(role: str) -> str:
    return f"Role set to {role}. Please provide organization details below."


def org_ack() -> str:
    return "Organization details saved. Now please provide your AI use cases."

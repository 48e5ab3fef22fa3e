#!/usr/bin/env python3
# intake_agent/controller.py
from __future__ import annotations

"""
IntakeSession: thin, session-first wrapper around the TurnOrchestrator.

Responsibilities
---------------
- Load the SessionState for a session id from LocalStore (fail-open to empty).
- Run one user turn through TurnOrchestrator.handle_turn(text, state).
- Commit the returned state only when the turn succeeded, then persist it and
  append a turn-log line. A failed save turns the result into an
  IO_PERSISTENCE_FAILURE error and keeps the previous state.
- Apply direct user actions (select a role, save organization details)
  through the same merge path the model updates use.
- Serialize turns per session: at most one turn is in flight for a given
  session id, across every IntakeSession instance in this process.

Public API (used by cli.py)
---------------------------
IntakeSession(store: LocalStore, session_id: str, *, orchestrator=None)

state -> SessionState
step -> IntakeStep
handle(user_text) -> dict       # {"result": TurnResult, "reply": str}
select_role(role) -> str        # acknowledgment text
save_org(name=..., country=..., industry=..., size=...) -> str
reset() -> None
"""

import logging
import threading
import weakref
from typing import Any, Dict, Optional

from intake_agent.local_store import LocalStore
from intake_agent.mapping import org_ack, render_turn, role_ack
from usecase_registry import app_logger
from usecase_registry.error_handler import ErrorCode, ErrorOrigin, make_error, summarize_for_log
from usecase_registry.registry_state import (
    IntakeStep,
    OrgInfo,
    SessionState,
    StateUpdates,
    compute_intake_step,
    merge_state,
)
from usecase_registry.turn_orchestrator import TurnOrchestrator, TurnResult


class _SessionLock:
    """threading.Lock cannot be weakly referenced; this wrapper can."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def __enter__(self) -> "_SessionLock":
        self._lock.acquire()
        return self

    def __exit__(self, *exc: Any) -> None:
        self._lock.release()


_LOCKS_GUARD = threading.Lock()
# entries disappear once no IntakeSession for that id is alive
_SESSION_LOCKS: weakref.WeakValueDictionary[str, _SessionLock] = weakref.WeakValueDictionary()


def _session_lock(session_id: str) -> _SessionLock:
    with _LOCKS_GUARD:
        lock = _SESSION_LOCKS.get(session_id)
        if lock is None:
            lock = _SessionLock()
            _SESSION_LOCKS[session_id] = lock
        return lock


class IntakeSession:
    def __init__(
        self,
        store: LocalStore,
        session_id: str,
        *,
        orchestrator: Optional[TurnOrchestrator] = None,
    ) -> None:
        self.store = store
        self.session_id = LocalStore.validate_session_id(session_id)
        self.orchestrator = orchestrator or TurnOrchestrator()
        self._lock = _session_lock(self.session_id)
        self._state = store.read_state(self.session_id)

    # ---------- State ----------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def step(self) -> IntakeStep:
        return compute_intake_step(self._state)

    def _commit(self, state: SessionState) -> None:
        self.store.write_state(self.session_id, state)
        self._state = state

    # ---------- Turn handling ----------

    def handle(self, user_text: str, *, model_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Run a single user turn and persist effects.

        Returns:
            {"result": <TurnResult>, "reply": <display string>}
        """
        with self._lock:
            # re-read so a turn started from another instance is not overwritten
            current = self.store.read_state(self.session_id)
            result = self.orchestrator.handle_turn(user_text, current, model_name=model_name)

            if result.ok:
                try:
                    self._commit(result.state)
                except OSError as e:
                    result = self._persistence_failure(result, current, e)
            else:
                self._state = current

            try:
                self.store.append_turn_log(self.session_id, result.to_packet())
            except OSError as e:
                app_logger.log_store_event(
                    "TURN_LOG_FAILED",
                    {"error": f"{type(e).__name__}: {e}", "cid": result.correlation_id},
                    session_id=self.session_id,
                    level=logging.ERROR,
                )
            app_logger.log_turn_packet(
                {
                    "ok": result.ok,
                    "status": result.status,
                    "error": summarize_for_log(result.error),
                    "use_cases": len(self._state.use_cases),
                },
                correlation_id=result.correlation_id,
                session_id=self.session_id,
                step=int(self.step),
            )
            return {"result": result, "reply": render_turn(result)}

    def _persistence_failure(self, result: TurnResult, current: SessionState, exc: OSError) -> TurnResult:
        """The model answered but the state could not be saved: report it and keep the old state."""
        err = make_error(
            code=ErrorCode.IO_PERSISTENCE_FAILURE,
            origin=ErrorOrigin.IO,
            retryable=True,
            dev_message=f"{type(exc).__name__}: {exc}",
            details={"session_id": self.session_id},
            correlation_id=result.correlation_id,
        )
        app_logger.log_error_event("Store.WRITE_FAILED", err, session_id=self.session_id)
        self._state = current
        return result.model_copy(
            update={"ok": False, "status": err["status"], "error": err, "state": current}
        )

    # ---------- Direct user actions ----------

    def select_role(self, role: str) -> str:
        """Single active role: replaces whatever roles were set before."""
        role = (role or "").strip()
        if not role:
            raise ValueError("role must be a non-empty string")
        with self._lock:
            current = self.store.read_state(self.session_id)
            self._commit(merge_state(current, StateUpdates(roles=[role])))
        return role_ack(role)

    def save_org(
        self,
        *,
        name: Optional[str] = None,
        country: Optional[str] = None,
        industry: Optional[str] = None,
        size: Optional[str] = None,
    ) -> str:
        """Trimmed values overwrite; an explicit empty string clears the field, None leaves it."""
        provided = {
            k: v.strip()
            for k, v in (("name", name), ("country", country), ("industry", industry), ("size", size))
            if v is not None
        }
        with self._lock:
            current = self.store.read_state(self.session_id)
            self._commit(merge_state(current, StateUpdates(org=OrgInfo(**provided))))
        return org_ack()

    def reset(self) -> None:
        with self._lock:
            self._commit(SessionState())

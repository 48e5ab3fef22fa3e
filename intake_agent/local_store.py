# intake_agent/local_store.py
from __future__ import annotations

import json
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from usecase_registry.app_logger import log_store_event
from usecase_registry.registry_state import SessionState


@dataclass(frozen=True)
class _Paths:
    root: Path
    session: str

    @property
    def session_dir(self) -> Path:
        return self.root / "sessions" / self.session

    @property
    def state_json(self) -> Path:
        return self.session_dir / "state.json"

    @property
    def turn_log_jsonl(self) -> Path:
        return self.session_dir / "turn_log.jsonl"


class LocalStore:
    """
    Local, session-first storage for the intake assistant.

    PUBLIC API (controller-facing):
    -------------------------------
      read_state(session) -> SessionState      # missing or corrupt → empty state
      write_state(session, state) -> None
      append_turn_log(session, packet) -> None
      read_turn_log(session) -> List[Dict[str, Any]]
      list_sessions() -> List[Dict[str, Any]]
      delete_session(session) -> bool

    INTERNALS:
      - On-disk layout is private to LocalStore.
      - The SessionState is the only persisted artifact that matters; it is a
        single JSON document rewritten atomically after every mutation.
    """

    def __init__(self, root: str | Path = "local_store") -> None:
        self.root = Path(root)
        (self.root / "sessions").mkdir(parents=True, exist_ok=True)

    # ------------------------------- helpers ---------------------------------

    @staticmethod
    def validate_session_id(session: str) -> str:
        """Session ids name a single directory under sessions/; anything path-like is refused."""
        sid = str(session).strip()
        if not sid or sid in (".", "..") or ".." in sid or "/" in sid or "\\" in sid or "\x00" in sid:
            raise ValueError(f"invalid session id: {session!r}")
        return sid

    def _p(self, session: str) -> _Paths:
        return _Paths(root=self.root, session=self.validate_session_id(session))

    @staticmethod
    def _write_json_atomic(path: Path, obj: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(obj, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(path)

    @staticmethod
    def _append_jsonl(path: Path, obj: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(obj, ensure_ascii=False, default=str) + "\n")

    # ------------------------------ core I/O ----------------------------------

    def read_state(self, session: str) -> SessionState:
        p = self._p(session)
        if not p.state_json.exists():
            return SessionState()
        try:
            raw = json.loads(p.state_json.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError(f"Expected object in {p.state_json}, got {type(raw).__name__}")
            # allow both shapes: {"state": {...}} or {...}
            return SessionState.model_validate(raw.get("state", raw))
        except (OSError, ValueError, ValidationError) as e:
            # fail open: a corrupt document is treated as "no prior state"
            log_store_event(
                "STATE_CORRUPT",
                {"path": str(p.state_json), "error": f"{type(e).__name__}: {e}"},
                session_id=str(session),
            )
            return SessionState()

    def write_state(self, session: str, state: SessionState) -> None:
        p = self._p(session)
        payload = {
            "state": state.to_payload(),
            "updated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        }
        self._write_json_atomic(p.state_json, payload)

    def append_turn_log(self, session: str, packet: Dict[str, Any]) -> None:
        p = self._p(session)
        pkt = dict(packet)
        pkt.setdefault("timestamp", time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()))
        self._append_jsonl(p.turn_log_jsonl, pkt)

    def read_turn_log(self, session: str) -> List[Dict[str, Any]]:
        p = self._p(session)
        if not p.turn_log_jsonl.exists():
            return []
        rows: List[Dict[str, Any]] = []
        with p.turn_log_jsonl.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    rows.append(json.loads(line))
                except json.JSONDecodeError:
                    continue
        return rows

    # ----------------------------- listings ----------------------------------

    def list_sessions(self) -> List[Dict[str, Any]]:
        """
        Compact list of stored sessions:
        [{"session_id": "...", "org_name": "...", "roles": [...], "use_cases": n, "updated_at": "..."}]
        """
        sessions_root = self.root / "sessions"
        out: List[Dict[str, Any]] = []
        for d in sorted((p for p in sessions_root.iterdir() if p.is_dir()), key=lambda p: p.name):
            state = self.read_state(d.name)
            out.append(
                {
                    "session_id": d.name,
                    "org_name": (state.org.name if state.org else None) or "",
                    "roles": list(state.roles),
                    "use_cases": len(state.use_cases),
                    "updated_at": self._updated_at(d.name) or "",
                }
            )
        return out

    def _updated_at(self, session: str) -> Optional[str]:
        p = self._p(session)
        if not p.state_json.exists():
            return None
        try:
            raw = json.loads(p.state_json.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        return raw.get("updated_at") if isinstance(raw, dict) else None

    def delete_session(self, session: str) -> bool:
        p = self._p(session)
        if not p.session_dir.exists():
            return False
        shutil.rmtree(p.session_dir)
        return True

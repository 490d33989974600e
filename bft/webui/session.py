from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

from bft.tape import DEFAULT_TAPE_SIZE
from bft.visualizer import VisualizerSession

logger = logging.getLogger(__name__)


@dataclass
class SessionRecord:
    session_id: str
    session: VisualizerSession
    total_steps: int = 0
    total_steps_capped: bool = False


class SessionStore:
    """Thread-safe registry for VisualizerSession instances."""

    def __init__(self) -> None:
        self._sessions: Dict[str, SessionRecord] = {}
        self._lock = threading.RLock()

    def create_session(
        self,
        *,
        code: str,
        input_template: bytes,
        tape_window: int = 10,
        max_steps: Optional[int] = None,
        history_limit: int = 200,
        tape_size: int = DEFAULT_TAPE_SIZE,
        growable: bool = False,
        total_steps: int = 0,
        total_steps_capped: bool = False,
    ) -> SessionRecord:
        session = VisualizerSession(
            code=code,
            input_template=input_template,
            tape_window=tape_window,
            max_steps=max_steps,
            history_limit=history_limit,
            tape_size=tape_size,
            growable=growable,
        )
        session_id = uuid.uuid4().hex
        record = SessionRecord(
            session_id=session_id,
            session=session,
            total_steps=total_steps,
            total_steps_capped=total_steps_capped,
        )
        with self._lock:
            self._sessions[session_id] = record
        logger.info("created session %s (%d instructions)", session_id, len(session.program))
        return record

    def get(self, session_id: str) -> SessionRecord:
        with self._lock:
            try:
                return self._sessions[session_id]
            except KeyError as exc:
                raise KeyError(f"Unknown session id: {session_id}") from exc

    def reset(self, session_id: str) -> SessionRecord:
        record = self.get(session_id)
        session = record.session
        session.history.clear()
        session.clear_breakpoints()
        session.hit_breakpoint = None
        session.restart()
        return record

    def remove(self, session_id: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.info("removed session %s", session_id)
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


__all__ = ["SessionRecord", "SessionStore"]

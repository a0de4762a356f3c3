"""
Session Logger — per-test-session structured logging.

Each workflow test session gets its own ``SessionLogger``. Entries are
written through a child of the ``agentdesk.session`` logger and kept
in a bounded in-memory list so the test harness can show a session
log next to the transcript.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

_ROOT_NAME = "agentdesk.session"
_DEFAULT_LIMIT = 500


@dataclass
class SessionLogEntry:
    """A single structured log record."""
    level: str
    event: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "event": self.event,
            "message": self.message,
            "data": self.data,
            "timestamp": self.timestamp,
        }


class SessionLogger:
    """Structured logger bound to one test session id."""

    def __init__(self, session_id: str, limit: int = _DEFAULT_LIMIT) -> None:
        self.session_id = session_id
        self._logger = logging.getLogger(f"{_ROOT_NAME}.{session_id}")
        self._entries: Deque[SessionLogEntry] = deque(maxlen=limit)

    # ── Events ──

    def log_session_created(self, workflow_id: str, message_count: int) -> None:
        self._record(
            logging.INFO, "session_created",
            f"Test session created for workflow {workflow_id}",
            workflow_id=workflow_id, message_count=message_count,
        )

    def log_user_message(self, content: str) -> None:
        self._record(
            logging.INFO, "user_message",
            f"User: {_preview(content)}",
            length=len(content),
        )

    def log_assistant_message(
        self,
        content: str,
        duration_ms: Optional[int] = None,
        success: bool = True,
        need_human_transfer: bool = False,
    ) -> None:
        self._record(
            logging.INFO if success else logging.WARNING,
            "assistant_message",
            f"Assistant: {_preview(content)}",
            duration_ms=duration_ms,
            success=success,
            need_human_transfer=need_human_transfer,
        )

    def log_node_trace(
        self,
        node_id: str,
        node_type: str,
        duration_ms: int,
        success: bool,
        label: Optional[str] = None,
    ) -> None:
        name = label or node_id
        status = "ok" if success else "FAILED"
        self._record(
            logging.DEBUG if success else logging.WARNING,
            "node_trace",
            f"{name} ({node_type}) {status} in {duration_ms}ms",
            node_id=node_id, node_type=node_type,
            duration_ms=duration_ms, success=success,
        )

    def log_history_cleared(self, remaining: int) -> None:
        self._record(
            logging.INFO, "history_cleared",
            f"Transcript cleared ({remaining} messages remain)",
            remaining=remaining,
        )

    def log_session_closed(self) -> None:
        self._record(logging.INFO, "session_closed", "Test session closed")

    def log_error(self, operation: str, error: str) -> None:
        self._record(
            logging.ERROR, "error",
            f"{operation} failed: {error}",
            operation=operation, error=error,
        )

    # ── Access ──

    @property
    def entries(self) -> List[SessionLogEntry]:
        return list(self._entries)

    def entries_for(self, event: str) -> List[SessionLogEntry]:
        return [e for e in self._entries if e.event == event]

    def clear(self) -> None:
        self._entries.clear()

    # ── Internals ──

    def _record(self, level: int, event: str, message: str, **data: Any) -> None:
        entry = SessionLogEntry(
            level=logging.getLevelName(level),
            event=event,
            message=message,
            data=data,
        )
        self._entries.append(entry)
        self._logger.log(level, f"[{self.session_id}] {message}")


def _preview(text: str, limit: int = 80) -> str:
    text = text.replace("\n", " ")
    return text if len(text) <= limit else text[:limit] + "…"


# ── Registry ──

_session_loggers: Dict[str, SessionLogger] = {}


def get_session_logger(session_id: str, limit: int = _DEFAULT_LIMIT) -> SessionLogger:
    """Return the logger for ``session_id``, creating it on first use."""
    session_logger = _session_loggers.get(session_id)
    if session_logger is None:
        session_logger = SessionLogger(session_id, limit=limit)
        _session_loggers[session_id] = session_logger
    return session_logger


def remove_session_logger(session_id: str) -> None:
    """Forget the logger for a closed session."""
    _session_loggers.pop(session_id, None)

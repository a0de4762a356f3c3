"""
Workflow Tester — client side of a sandbox test session.

Lets an author run a saved workflow turn by turn without touching
production conversations::

    NO_SESSION ──open──▶ ACTIVE ──send / clear / refresh──▶ ACTIVE
        ▲                                                    │
        └────────────────────────close───────────────────────┘

The server owns the session and its transcript; the harness keeps the
session id plus the last transcript it received, replaced wholesale by
every response. Sends are queued behind a lock so a session never has
two requests in flight. A failed send does not change state: the
optimistic user message stays in the transcript marked ``failed`` and
can be re-sent.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from enum import Enum
from logging import getLogger
from typing import Any, Dict, List, Optional

from agentdesk.api.exceptions import ConsoleAPIError
from agentdesk.api.models import TestMessage, WorkflowTestSession
from agentdesk.api.resources import WorkflowTestsResource
from agentdesk.config import get_config
from agentdesk.logging import SessionLogger, get_session_logger, remove_session_logger
from agentdesk.workflow.workflow_editor import OperationResult
from agentdesk.workflow.workflow_model import WorkflowDefinition
from agentdesk.workflow.workflow_trace import TraceView, build_trace_views

logger = getLogger(__name__)


class HarnessState(str, Enum):
    NO_SESSION = "no_session"
    ACTIVE = "active"


class WorkflowTestHarness:
    """Drives one test session for a saved workflow."""

    def __init__(
        self,
        api: WorkflowTestsResource,
        workflow_id: str,
        definition: Optional[WorkflowDefinition] = None,
        session_log_limit: Optional[int] = None,
    ) -> None:
        self.api = api
        self.workflow_id = workflow_id
        # Graph snapshot used to label trace entries.
        self.definition = definition
        self.state = HarnessState.NO_SESSION
        self.session_id: Optional[str] = None
        self.workflow_name: Optional[str] = None
        self.messages: List[TestMessage] = []
        self.last_error: Optional[str] = None
        self.session_logger: Optional[SessionLogger] = None
        self._lock = asyncio.Lock()
        if session_log_limit is None:
            session_log_limit = get_config("workflow_editor").session_log_limit
        self._log_limit = session_log_limit

    @property
    def is_active(self) -> bool:
        return self.state == HarnessState.ACTIVE

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def open(self, variables: Optional[Dict[str, Any]] = None) -> OperationResult:
        """Create a new server-side session.

        Every call creates a fresh session; an already open one is
        abandoned (it expires server-side).
        """
        try:
            session = await self.api.create_session(self.workflow_id, variables)
        except ConsoleAPIError as e:
            self.last_error = str(e)
            logger.error(f"Failed to create test session for workflow {self.workflow_id}: {e}")
            return OperationResult(ok=False, error=self.last_error)

        if self.is_active and self.session_id != session.test_session_id:
            logger.debug(f"Abandoning test session {self.session_id}")
            self._drop_logger()

        self.session_id = session.test_session_id
        self.workflow_name = session.workflow_name
        self.messages = list(session.messages)
        self.state = HarnessState.ACTIVE
        self.last_error = None
        self.session_logger = get_session_logger(self.session_id, limit=self._log_limit)
        self.session_logger.log_session_created(self.workflow_id, len(self.messages))
        logger.info(f"Test session {self.session_id} opened for workflow {self.workflow_id}")
        return OperationResult(ok=True, data=session)

    async def close(self, delete_remote: bool = False) -> None:
        """Forget the session; optionally delete it on the server."""
        if not self.is_active:
            return
        session_id = self.session_id
        if delete_remote and session_id:
            try:
                await self.api.delete_session(session_id)
            except ConsoleAPIError as e:
                logger.warning(f"Failed to delete test session {session_id}: {e}")
        if self.session_logger is not None:
            self.session_logger.log_session_closed()
        self._drop_logger()
        self.state = HarnessState.NO_SESSION
        self.session_id = None
        self.messages = []
        self.last_error = None
        logger.info(f"Test session {session_id} closed")

    # ========================================================================
    # Conversation
    # ========================================================================

    async def send_message(self, text: str) -> OperationResult:
        """Send one user turn and adopt the returned transcript."""
        if not self.is_active:
            return OperationResult(ok=False, error="No active test session")
        if not text.strip():
            return OperationResult(ok=False, error="Message is empty")

        optimistic = TestMessage(
            id=self._temp_id(),
            role="user",
            content=text,
            timestamp=datetime.now(timezone.utc).isoformat(),
            delivery="pending",
        )
        self.messages.append(optimistic)
        return await self._deliver(optimistic)

    async def resend_failed(self) -> OperationResult:
        """Retry the most recent message that failed to send."""
        failed = next((m for m in reversed(self.messages) if m.delivery == "failed"), None)
        if failed is None:
            return OperationResult(ok=False, error="No failed message to resend")
        if not self.is_active:
            return OperationResult(ok=False, error="No active test session")
        failed.delivery = "pending"
        failed.delivery_error = None
        return await self._deliver(failed)

    async def clear_history(self) -> OperationResult:
        if not self.is_active or self.session_id is None:
            return OperationResult(ok=False, error="No active test session")
        async with self._lock:
            try:
                session = await self.api.clear_history(self.session_id)
            except ConsoleAPIError as e:
                return self._failed("Clear history", e)
            self._adopt(session)
        if self.session_logger is not None:
            self.session_logger.log_history_cleared(len(self.messages))
        return OperationResult(ok=True, data=self.messages)

    async def refresh(self) -> OperationResult:
        """Re-read the transcript from the server."""
        if not self.is_active or self.session_id is None:
            return OperationResult(ok=False, error="No active test session")
        async with self._lock:
            try:
                session = await self.api.get_session(self.session_id)
            except ConsoleAPIError as e:
                return self._failed("Refresh", e)
            self._adopt(session)
        return OperationResult(ok=True, data=self.messages)

    async def update_variables(self, variables: Dict[str, Any]) -> OperationResult:
        if not self.is_active or self.session_id is None:
            return OperationResult(ok=False, error="No active test session")
        async with self._lock:
            try:
                session = await self.api.update_variables(self.session_id, variables)
            except ConsoleAPIError as e:
                return self._failed("Update variables", e)
            self._adopt(session)
        return OperationResult(ok=True, data=session)

    # ========================================================================
    # Traces
    # ========================================================================

    def trace_for(self, message_id: str) -> Optional[TraceView]:
        message = next((m for m in self.messages if m.id == message_id), None)
        if message is None or message.role != "assistant":
            return None
        return TraceView(message, self.definition)

    def traces(self) -> Dict[str, TraceView]:
        return build_trace_views(self.messages, self.definition)

    @property
    def failed_messages(self) -> List[TestMessage]:
        return [m for m in self.messages if m.delivery == "failed"]

    # ========================================================================
    # Internals
    # ========================================================================

    async def _deliver(self, message: TestMessage) -> OperationResult:
        async with self._lock:
            session_id = self.session_id
            if session_id is None:
                message.delivery = "failed"
                message.delivery_error = "Session closed"
                return OperationResult(ok=False, error="No active test session")
            if self.session_logger is not None:
                self.session_logger.log_user_message(message.content)
            try:
                session = await self.api.send_message(session_id, message.content, self.workflow_id)
            except ConsoleAPIError as e:
                message.delivery = "failed"
                message.delivery_error = str(e)
                return self._failed("Send message", e)
            if session_id != self.session_id:
                # Closed or reopened while waiting; the answer belongs to a dead session.
                return OperationResult(ok=False, error="Session changed while sending")
            self._adopt(session)
            self.last_error = None
        self._log_reply()
        return OperationResult(ok=True, data=self.messages)

    def _adopt(self, session: WorkflowTestSession) -> None:
        self.messages = list(session.messages)
        if session.workflow_name:
            self.workflow_name = session.workflow_name

    def _log_reply(self) -> None:
        if self.session_logger is None:
            return
        reply = next((m for m in reversed(self.messages) if m.role == "assistant"), None)
        if reply is None:
            return
        meta = reply.meta
        self.session_logger.log_assistant_message(
            reply.content,
            duration_ms=meta.duration_ms if meta else None,
            success=meta.success if meta else True,
            need_human_transfer=meta.need_human_transfer if meta else False,
        )
        for detail in reply.trace:
            node = self.definition.get_node(detail.node_id) if self.definition else None
            self.session_logger.log_node_trace(
                detail.node_id,
                detail.node_type,
                detail.duration_ms,
                detail.success,
                label=node.label if node is not None else None,
            )

    def _failed(self, operation: str, error: ConsoleAPIError) -> OperationResult:
        self.last_error = str(error)
        logger.error(f"{operation} failed for test session {self.session_id}: {error}")
        if self.session_logger is not None:
            self.session_logger.log_error(operation, self.last_error)
        return OperationResult(ok=False, error=self.last_error)

    def _drop_logger(self) -> None:
        if self.session_id:
            remove_session_logger(self.session_id)
        self.session_logger = None

    def _temp_id(self) -> str:
        stamp = int(time.time() * 1000)
        taken = {m.id for m in self.messages}
        while str(stamp) in taken:
            stamp += 1
        return str(stamp)

"""
Workflow Trace — display model for a test turn's execution path.

Each assistant message returned by a test session carries the ordered
list of nodes that ran for that turn. ``TraceView`` resolves those
node ids to the labels of the graph being edited (falling back to the
raw id for nodes that no longer exist), keeps per-entry
expand/collapse state, and renders a plain-text report.

The trace is for display only; nothing here feeds back into execution.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from logging import getLogger
from typing import Any, Dict, List, Optional

from agentdesk.api.models import NodeDetail, TestMessage, ToolExecution
from agentdesk.workflow.workflow_model import WorkflowDefinition

logger = getLogger(__name__)


def format_payload(value: Any) -> str:
    """Strings verbatim, everything else as indented JSON."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


@dataclass
class TraceEntry:
    index: int
    node_id: str
    node_type: str
    label: str
    duration_ms: int
    success: bool
    input: Any = None
    output: Any = None
    error_message: Optional[str] = None
    tool_executions: List[ToolExecution] = field(default_factory=list)
    expanded: bool = False

    @property
    def has_details(self) -> bool:
        return bool(
            self.input is not None
            or self.output is not None
            or self.error_message
            or self.tool_executions
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "node_id": self.node_id,
            "node_type": self.node_type,
            "label": self.label,
            "duration_ms": self.duration_ms,
            "success": self.success,
            "input": self.input,
            "output": self.output,
            "error_message": self.error_message,
            "tool_executions": [t.to_wire() for t in self.tool_executions],
            "expanded": self.expanded,
        }


class TraceView:
    """Expandable view over one assistant message's node trace."""

    def __init__(
        self,
        message: TestMessage,
        definition: Optional[WorkflowDefinition] = None,
    ) -> None:
        self.message = message
        self.expanded = False
        self.entries: List[TraceEntry] = [
            self._entry(i, detail, definition) for i, detail in enumerate(message.trace)
        ]

    @staticmethod
    def _entry(index: int, detail: NodeDetail, definition: Optional[WorkflowDefinition]) -> TraceEntry:
        node = definition.get_node(detail.node_id) if definition is not None else None
        label = node.label if node is not None and node.label else detail.node_id
        return TraceEntry(
            index=index,
            node_id=detail.node_id,
            node_type=detail.node_type or (node.type if node is not None else ""),
            label=label,
            duration_ms=detail.duration_ms,
            success=detail.success,
            input=detail.input,
            output=detail.output,
            error_message=detail.error_message,
            tool_executions=list(detail.tool_executions),
        )

    # ── Summary ──

    @property
    def success(self) -> bool:
        meta = self.message.meta
        if meta is not None and not meta.success:
            return False
        return all(e.success for e in self.entries)

    @property
    def duration_ms(self) -> int:
        meta = self.message.meta
        if meta is not None and meta.duration_ms:
            return meta.duration_ms
        return sum(e.duration_ms for e in self.entries)

    @property
    def failed_entries(self) -> List[TraceEntry]:
        return [e for e in self.entries if not e.success]

    # ── Expand / collapse ──

    def toggle(self) -> bool:
        self.expanded = not self.expanded
        return self.expanded

    def toggle_entry(self, index: int) -> bool:
        """Flip one entry; returns its new state (False for a bad index)."""
        if not 0 <= index < len(self.entries):
            return False
        entry = self.entries[index]
        entry.expanded = not entry.expanded
        return entry.expanded

    def expand_all(self) -> None:
        self.expanded = True
        for entry in self.entries:
            entry.expanded = True

    def collapse_all(self) -> None:
        self.expanded = False
        for entry in self.entries:
            entry.expanded = False

    # ── Rendering ──

    def render_text(self) -> str:
        status = "SUCCESS" if self.success else "FAILED"
        lines = [f"Execution path: {len(self.entries)} node(s), {self.duration_ms}ms [{status}]"]
        meta = self.message.meta
        if meta is not None and meta.error_message:
            lines.append(f"  Error: {meta.error_message}")
        if meta is not None and meta.need_human_transfer:
            lines.append("  Handed over to a human agent")
        if not self.expanded:
            return "\n".join(lines)

        for entry in self.entries:
            marker = "✓" if entry.success else "✗"
            lines.append(
                f"  {entry.index + 1}. {marker} {entry.label} ({entry.node_type}) {entry.duration_ms}ms"
            )
            if not entry.expanded:
                continue
            if entry.input is not None:
                lines.append(_indent("Input:", format_payload(entry.input)))
            if entry.output is not None:
                lines.append(_indent("Output:", format_payload(entry.output)))
            for tool in entry.tool_executions:
                tool_marker = "✓" if tool.success else "✗"
                lines.append(f"       {tool_marker} tool {tool.tool_name} {tool.duration_ms}ms")
                if tool.args is not None:
                    lines.append(_indent("Args:", format_payload(tool.args), depth=9))
                if tool.result is not None:
                    lines.append(_indent("Result:", format_payload(tool.result), depth=9))
                if tool.error:
                    lines.append(f"         Error: {tool.error}")
            if entry.error_message:
                lines.append(f"     Error: {entry.error_message}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message_id": self.message.id,
            "success": self.success,
            "duration_ms": self.duration_ms,
            "expanded": self.expanded,
            "entries": [e.to_dict() for e in self.entries],
        }


def _indent(title: str, body: str, depth: int = 5) -> str:
    pad = " " * depth
    body_lines = body.splitlines() or [""]
    return "\n".join([f"{pad}{title}"] + [f"{pad}  {line}" for line in body_lines])


def build_trace_views(
    messages: List[TestMessage],
    definition: Optional[WorkflowDefinition] = None,
) -> Dict[str, TraceView]:
    """One view per assistant message that carries a trace, keyed by message id."""
    return {
        m.id: TraceView(m, definition)
        for m in messages
        if m.role == "assistant" and m.trace
    }

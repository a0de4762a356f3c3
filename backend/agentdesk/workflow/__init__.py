"""
Workflow Core — the graph behind the visual workflow editor.

Architecture:
    nodes/             — BaseNode + every node kind, and the NodeRegistry
    workflow_model     — Node / edge / definition models and JSON codecs
    workflow_editor    — Editing session: mutations, catalogs, save
    workflow_variables — ``{{variable}}`` catalog and slash-insertion
    workflow_validator — Structural validation and save-time pruning
    workflow_layout    — Deterministic layered auto-layout
    workflow_store     — Console-backed persistence
    workflow_generator — Merge of LLM-generated graphs
    workflow_tester    — Sandbox test sessions
    workflow_trace     — Per-turn execution trace display
    templates          — Starter graphs
"""

from agentdesk.workflow.nodes import (
    BaseNode,
    NodeParameter,
    NodeRegistry,
    OutputPort,
    get_node_registry,
    register_all_nodes,
)
from agentdesk.workflow.editor_cache import EditorCache
from agentdesk.workflow.workflow_model import (
    WorkflowDefinition,
    WorkflowEdge,
    WorkflowNode,
    WorkflowSerializationError,
)
from agentdesk.workflow.workflow_variables import VariableRef, build_catalog, insert_variable
from agentdesk.workflow.workflow_validator import (
    ValidationResult,
    prepare_for_save,
    prune_for_save,
    validate_graph,
)
from agentdesk.workflow.workflow_layout import LayoutOptions, LayoutResult, apply_layout, compute_layout
from agentdesk.workflow.workflow_editor import OperationResult, WorkflowEditor
from agentdesk.workflow.workflow_store import SaveReport, WorkflowStore
from agentdesk.workflow.workflow_generator import merge_generated_workflow
from agentdesk.workflow.workflow_tester import HarnessState, WorkflowTestHarness
from agentdesk.workflow.workflow_trace import TraceView

__all__ = [
    "BaseNode",
    "NodeParameter",
    "NodeRegistry",
    "OutputPort",
    "get_node_registry",
    "register_all_nodes",
    "EditorCache",
    "WorkflowDefinition",
    "WorkflowEdge",
    "WorkflowNode",
    "WorkflowSerializationError",
    "VariableRef",
    "build_catalog",
    "insert_variable",
    "ValidationResult",
    "prepare_for_save",
    "prune_for_save",
    "validate_graph",
    "LayoutOptions",
    "LayoutResult",
    "apply_layout",
    "compute_layout",
    "OperationResult",
    "WorkflowEditor",
    "SaveReport",
    "WorkflowStore",
    "merge_generated_workflow",
    "HarnessState",
    "WorkflowTestHarness",
    "TraceView",
]

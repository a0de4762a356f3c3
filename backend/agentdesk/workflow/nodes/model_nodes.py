"""
Model Nodes — node kinds that call an LLM configured in the console.

All of them reference a model by ``modelId``. Selecting a model stamps
a denormalised ``model`` / ``modelDisplayName`` / ``provider`` into the
config for display; those copies are never re-derived afterwards, so
a renamed model keeps its old display name until it is re-selected.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from agentdesk.workflow.nodes.base import (
    BaseNode,
    ConfigIssue,
    config_list,
    NodeParameter,
    OutputPort,
    OutputVariable,
    register_node,
)

if TYPE_CHECKING:
    from agentdesk.workflow.editor_cache import EditorCache

logger = getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7


def _model_param(label: str = "Model", required: bool = True) -> NodeParameter:
    return NodeParameter(
        name="modelId",
        label=label,
        type="model",
        required=required,
        description="LLM model configured under Settings → Models.",
        group="model",
    )


def _temperature_param() -> NodeParameter:
    return NodeParameter(
        name="temperature",
        label="Temperature",
        type="number",
        default=DEFAULT_TEMPERATURE,
        min=0,
        max=2,
        group="model",
    )


def _messages_param() -> NodeParameter:
    return NodeParameter(
        name="messages",
        label="Example Messages",
        type="list",
        default=[],
        description="Few-shot messages with alternating user/assistant roles.",
        group="prompt",
    )


class ModelNode(BaseNode):
    """Shared update hook for kinds with a ``modelId`` field."""

    def on_config_patch(
        self,
        config: Dict[str, Any],
        patch: Dict[str, Any],
        cache: Optional["EditorCache"],
    ) -> Dict[str, Any]:
        extra: Dict[str, Any] = {}
        if "modelId" in patch and cache is not None:
            model = cache.get_model(patch["modelId"])
            if model is not None:
                extra.update({
                    "model": model.model_name,
                    "modelDisplayName": model.name,
                    "provider": model.provider,
                })
            else:
                logger.debug(f"Model {patch['modelId']} not in cache; display name not stamped")
        if "toolId" in patch and cache is not None:
            tool = cache.get_tool(patch["toolId"])
            extra["toolName"] = tool.title if tool else ""
        return extra

    def validate_config(self, config: Dict[str, Any]) -> List[ConfigIssue]:
        issues = super().validate_config(config)
        # Legacy configs carry only the model code.
        if config.get("model") and not config.get("modelId"):
            issues = [i for i in issues if i.field != "modelId"]
        for idx, msg in enumerate(config_list(config, "messages")):
            if not isinstance(msg, dict) or msg.get("role") not in ("user", "assistant"):
                issues.append(ConfigIssue("messages", f"Message #{idx + 1} needs a user/assistant role"))
        return issues


# ============================================================================
# LLM
# ============================================================================


@register_node
class LLMNode(ModelNode):
    """Generate text with an LLM; exposes ``<label>.text``."""

    node_type = "llm"
    label = "LLM"
    description = "Generate a response with an LLM"
    category = "model"
    icon = "🧠"
    color = "#8b5cf6"

    parameters = [
        _model_param(),
        NodeParameter(
            name="systemPrompt",
            label="System Prompt",
            type="prompt_template",
            default="",
            placeholder="Type '/' to insert variable...",
            group="prompt",
        ),
        _messages_param(),
        NodeParameter(
            name="tools",
            label="Tools",
            type="tool",
            default=[],
            description="Tools the model may call while generating.",
            group="tools",
        ),
        _temperature_param(),
        NodeParameter(
            name="useHistory",
            label="Use Conversation History",
            type="boolean",
            default=False,
            group="history",
        ),
        NodeParameter(
            name="readCount",
            label="History Messages",
            type="integer",
            default=10,
            min=1,
            max=50,
            description="Number of recent messages to include when history is enabled.",
            group="history",
        ),
    ]

    output_ports = [OutputPort(id="default", label="Next")]
    output_variable = OutputVariable(
        field="text", group="LLM", display_fallback="Generation", value_fallback="LLM",
    )


# ============================================================================
# Intent recognition
# ============================================================================


@register_node
class IntentNode(ModelNode):
    """Classify the user's message; one outgoing branch per intent.

    Intents are ``{id, label}``; the id is the branch's handle id, so
    renaming an intent keeps its edges while deleting it orphans them.
    """

    node_type = "intent"
    label = "Intent Recognition"
    description = "Route by the recognised intent of the user's message"
    category = "model"
    icon = "🎯"
    color = "#f59e0b"

    parameters = [
        _model_param(),
        NodeParameter(
            name="customPrompt",
            label="System Prompt",
            type="prompt_template",
            default="",
            placeholder="Enter system prompt for intent classification...",
            group="prompt",
        ),
        NodeParameter(
            name="historyCount",
            label="History Turns",
            type="integer",
            default=0,
            min=0,
            description="Number of historical messages to include (>=0).",
            group="history",
        ),
        NodeParameter(
            name="intents",
            label="Intents",
            type="list",
            default=[],
            group="routing",
        ),
    ]

    output_ports: List[OutputPort] = []
    dynamic_outputs = True
    named_outputs = True
    output_variable = OutputVariable(
        field="category", group="INTENT", display_fallback="Recognition", value_fallback="Intent",
    )

    def get_dynamic_output_ports(self, config: Dict[str, Any]) -> List[OutputPort]:
        ports = []
        for intent in config_list(config, "intents"):
            if isinstance(intent, dict) and intent.get("id"):
                ports.append(OutputPort(id=str(intent["id"]), label=str(intent.get("label") or "")))
        return ports

    def validate_config(self, config: Dict[str, Any]) -> List[ConfigIssue]:
        issues = super().validate_config(config)
        seen = set()
        for intent in config_list(config, "intents"):
            if not isinstance(intent, dict) or not intent.get("id"):
                issues.append(ConfigIssue("intents", "Intent is missing an id"))
                continue
            intent_id = str(intent["id"])
            if isinstance(intent["id"], (dict, list)):
                issues.append(ConfigIssue("intents", f"Intent id {intent_id} is not text"))
            if intent_id in seen:
                issues.append(ConfigIssue("intents", f"Duplicate intent id '{intent_id}'"))
            seen.add(intent_id)
            if not str(intent.get("label", "")).strip():
                issues.append(ConfigIssue("intents", f"Intent '{intent_id}' has no name"))
        return issues


# ============================================================================
# Parameter extraction
# ============================================================================


PARAMETER_TYPES = ["string", "number", "boolean", "array", "object"]


@register_node
class ParameterExtractionNode(ModelNode):
    """Extract structured arguments for a bound tool from the conversation."""

    node_type = "parameter_extraction"
    label = "Parameter Extraction"
    description = "Extract tool parameters from the conversation with an LLM"
    category = "model"
    icon = "🧩"
    color = "#7c3aed"

    parameters = [
        NodeParameter(
            name="toolId",
            label="Bind Tool",
            type="tool",
            required=True,
            group="tools",
        ),
        _model_param(label="Extraction Model"),
        _messages_param(),
        NodeParameter(
            name="parameters",
            label="Parameters",
            type="list",
            default=[],
            description="Each item: {name, type, description, required}.",
            group="extraction",
        ),
    ]

    output_ports = [OutputPort(id="default", label="Next")]

    def validate_config(self, config: Dict[str, Any]) -> List[ConfigIssue]:
        issues = super().validate_config(config)
        names = set()
        for idx, param in enumerate(config_list(config, "parameters")):
            if not isinstance(param, dict):
                issues.append(ConfigIssue("parameters", f"Parameter #{idx + 1} is malformed"))
                continue
            name = str(param.get("name", "")).strip()
            if not name:
                issues.append(ConfigIssue("parameters", f"Parameter #{idx + 1} has no name"))
            elif name in names:
                issues.append(ConfigIssue("parameters", f"Duplicate parameter '{name}'"))
            names.add(name)
            if param.get("type", "string") not in PARAMETER_TYPES:
                issues.append(ConfigIssue("parameters", f"Parameter '{name}' has unknown type '{param.get('type')}'"))
        return issues


# ============================================================================
# Translation
# ============================================================================


@register_node
class TranslationNode(ModelNode):
    node_type = "translation"
    label = "Translation"
    description = "Translate text into a target language"
    category = "model"
    icon = "🌐"
    color = "#14b8a6"

    parameters = [
        _model_param(required=False),
        NodeParameter(
            name="sourceText",
            label="Text",
            type="prompt_template",
            default="{{sys.lastoutput}}",
            group="prompt",
        ),
        NodeParameter(
            name="targetLanguage",
            label="Target Language",
            type="string",
            default="",
            required=True,
            placeholder="e.g. English",
        ),
        _temperature_param(),
    ]

    output_ports = [OutputPort(id="default", label="Next")]


# ============================================================================
# Agent
# ============================================================================


@register_node
class AgentNode(ModelNode):
    """Autonomous agent step: the model may call tools until it answers.

    The agent's system prompt is exposed to every node as
    ``{{agent.sysPrompt}}``.
    """

    node_type = "agent"
    label = "Agent"
    description = "Let an LLM agent reason and call tools"
    category = "model"
    icon = "🤖"
    color = "#a855f7"

    parameters = [
        _model_param(),
        NodeParameter(
            name="systemPrompt",
            label="Agent Instructions",
            type="prompt_template",
            default="",
            group="prompt",
        ),
        NodeParameter(
            name="tools",
            label="Tools",
            type="tool",
            default=[],
            group="tools",
        ),
        _temperature_param(),
        NodeParameter(
            name="maxIterations",
            label="Max Iterations",
            type="integer",
            default=5,
            min=1,
            max=20,
            description="Upper bound on tool-calling rounds per turn.",
            group="behavior",
        ),
    ]

    output_ports = [OutputPort(id="default", label="Next")]

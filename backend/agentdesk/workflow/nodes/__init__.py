"""
Workflow Nodes Package.

Auto-registers every node kind into the global NodeRegistry.
Import this package to ensure all kinds are available.
"""

from agentdesk.workflow.nodes.base import (
    BaseNode,
    ConfigIssue,
    HandleMode,
    HandleTopology,
    NodeDescriptor,
    NodeParameter,
    NodeRegistry,
    OutputPort,
    OutputVariable,
    config_list,
    get_node_registry,
    register_node,
)

# Import all node modules to trigger registration
from agentdesk.workflow.nodes import entry_nodes      # noqa: F401
from agentdesk.workflow.nodes import model_nodes      # noqa: F401
from agentdesk.workflow.nodes import logic_nodes      # noqa: F401
from agentdesk.workflow.nodes import knowledge_nodes  # noqa: F401


def register_all_nodes() -> NodeRegistry:
    """Ensure all node kinds are registered and return the registry.

    The module-level imports above trigger the ``@register_node``
    decorators; this function is the explicit entry point.
    """
    registry = get_node_registry()
    count = len(registry.list_all())
    from logging import getLogger
    getLogger(__name__).info(f"Workflow node kinds registered: {count}")
    return registry


__all__ = [
    "BaseNode",
    "ConfigIssue",
    "HandleMode",
    "HandleTopology",
    "NodeDescriptor",
    "NodeParameter",
    "NodeRegistry",
    "OutputPort",
    "OutputVariable",
    "config_list",
    "get_node_registry",
    "register_node",
    "register_all_nodes",
]

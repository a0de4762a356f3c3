"""
AgentDesk — support console workflow core.

The workflow graph subsystem of the agent-facing support console:
node type registry, graph model, variable resolution, validation,
auto-layout and the workflow test harness.
"""

__version__ = "0.4.0"

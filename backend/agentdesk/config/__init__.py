"""
Configuration Package.

Importing this package registers every built-in config section.
"""

from agentdesk.config.base import (
    BaseConfig,
    ConfigField,
    FieldType,
    get_config,
    list_configs,
    register_config,
    reset_config_cache,
)
from agentdesk.config.sub_config.general.api_config import ConsoleAPIConfig
from agentdesk.config.sub_config.workflow.editor_config import WorkflowEditorConfig

__all__ = [
    "BaseConfig",
    "ConfigField",
    "FieldType",
    "get_config",
    "list_configs",
    "register_config",
    "reset_config_cache",
    "ConsoleAPIConfig",
    "WorkflowEditorConfig",
]

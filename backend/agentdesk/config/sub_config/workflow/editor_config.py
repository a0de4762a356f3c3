"""
Workflow Editor Configuration.

Layout spacing, default node size, clone offset and the
model temperature floor used by the workflow editor core.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from agentdesk.config.base import BaseConfig, ConfigField, FieldType, register_config
from agentdesk.config.sub_config.general.env_utils import read_env_defaults

LAYOUT_DIRECTIONS = [
    {"value": "LR", "label": "Left → Right"},
    {"value": "TB", "label": "Top → Bottom"},
    {"value": "RL", "label": "Right → Left"},
    {"value": "BT", "label": "Bottom → Top"},
]


@register_config
@dataclass
class WorkflowEditorConfig(BaseConfig):
    """Workflow editor behaviour."""

    # Layout
    layout_direction: str = "LR"
    default_node_width: float = 280.0
    default_node_height: float = 150.0
    node_spacing: float = 50.0
    rank_spacing: float = 50.0

    # Editing
    clone_offset_x: float = 50.0
    clone_offset_y: float = 50.0

    # Save normalisation
    gpt5_min_temperature: float = 1.0

    # Test harness
    test_session_timeout_minutes: int = 30  # enforced server-side
    session_log_limit: int = 500

    _ENV_MAP = {
        "layout_direction": "AGENTDESK_LAYOUT_DIRECTION",
        "session_log_limit": "AGENTDESK_SESSION_LOG_LIMIT",
    }

    @classmethod
    def get_default_instance(cls) -> "WorkflowEditorConfig":
        defaults = read_env_defaults(cls._ENV_MAP, cls.__dataclass_fields__)
        return cls(**defaults)

    @classmethod
    def get_config_name(cls) -> str:
        return "workflow_editor"

    @classmethod
    def get_display_name(cls) -> str:
        return "Workflow Editor"

    @classmethod
    def get_description(cls) -> str:
        return "Auto-layout spacing, node defaults and save-time normalisation for workflows."

    @classmethod
    def get_category(cls) -> str:
        return "workflow"

    @classmethod
    def get_icon(cls) -> str:
        return "workflow"

    @classmethod
    def get_fields_metadata(cls) -> List[ConfigField]:
        return [
            ConfigField(
                name="layout_direction",
                field_type=FieldType.SELECT,
                label="Layout Direction",
                description="Rank direction used by auto-layout",
                default="LR",
                options=LAYOUT_DIRECTIONS,
                group="layout",
            ),
            ConfigField(
                name="default_node_width",
                field_type=FieldType.NUMBER,
                label="Default Node Width",
                description="Width used when a node has no measured size",
                default=280.0,
                min_value=40,
                group="layout",
            ),
            ConfigField(
                name="default_node_height",
                field_type=FieldType.NUMBER,
                label="Default Node Height",
                description="Height used when a node has no measured size",
                default=150.0,
                min_value=20,
                group="layout",
            ),
            ConfigField(
                name="node_spacing",
                field_type=FieldType.NUMBER,
                label="Node Spacing",
                description="Gap between nodes of the same rank",
                default=50.0,
                min_value=0,
                group="layout",
            ),
            ConfigField(
                name="rank_spacing",
                field_type=FieldType.NUMBER,
                label="Rank Spacing",
                description="Gap between consecutive ranks",
                default=50.0,
                min_value=0,
                group="layout",
            ),
            ConfigField(
                name="clone_offset_x",
                field_type=FieldType.NUMBER,
                label="Clone Offset X",
                default=50.0,
                group="editing",
            ),
            ConfigField(
                name="clone_offset_y",
                field_type=FieldType.NUMBER,
                label="Clone Offset Y",
                default=50.0,
                group="editing",
            ),
            ConfigField(
                name="gpt5_min_temperature",
                field_type=FieldType.NUMBER,
                label="GPT-5 Minimum Temperature",
                description="Temperature floor applied before save to nodes using a GPT-5 model",
                default=1.0,
                min_value=0,
                max_value=2,
                group="save",
            ),
            ConfigField(
                name="session_log_limit",
                field_type=FieldType.NUMBER,
                label="Session Log Size",
                description="Entries kept in memory per test session",
                default=500,
                min_value=10,
                group="testing",
            ),
        ]

    @classmethod
    def get_i18n(cls) -> Dict[str, Dict[str, Any]]:
        return {
            "zh": {
                "display_name": "工作流编辑器",
                "description": "自动布局间距、节点默认值与保存前规范化。",
                "groups": {
                    "layout": "布局",
                    "editing": "编辑",
                    "save": "保存",
                    "testing": "测试",
                },
            }
        }

"""
Console API Configuration.

Controls the backend base URL, bearer token, timeout and retry
budget used by ``agentdesk.api.ConsoleClient``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from agentdesk.config.base import BaseConfig, ConfigField, FieldType, register_config
from agentdesk.config.sub_config.general.env_utils import env_sync, read_env_defaults


@register_config
@dataclass
class ConsoleAPIConfig(BaseConfig):
    """Support-console backend connection settings."""

    base_url: str = "http://localhost:8080"
    api_prefix: str = "/api/v1"
    api_token: str = ""
    timeout_seconds: float = 30.0
    max_retries: int = 2

    _ENV_MAP = {
        "base_url": "AGENTDESK_BASE_URL",
        "api_token": "AGENTDESK_API_TOKEN",
        "timeout_seconds": "AGENTDESK_TIMEOUT",
        "max_retries": "AGENTDESK_MAX_RETRIES",
    }

    @classmethod
    def get_default_instance(cls) -> "ConsoleAPIConfig":
        defaults = read_env_defaults(cls._ENV_MAP, cls.__dataclass_fields__)
        return cls(**defaults)

    @classmethod
    def get_config_name(cls) -> str:
        return "console_api"

    @classmethod
    def get_display_name(cls) -> str:
        return "Console API"

    @classmethod
    def get_description(cls) -> str:
        return "Backend URL, access token and request limits for the support console."

    @classmethod
    def get_category(cls) -> str:
        return "general"

    @classmethod
    def get_icon(cls) -> str:
        return "api"

    @classmethod
    def get_i18n(cls) -> Dict[str, Dict[str, Any]]:
        return {
            "zh": {
                "display_name": "控制台 API",
                "description": "客服控制台后端地址、访问令牌与请求限制。",
                "groups": {
                    "connection": "连接设置",
                    "limits": "请求限制",
                },
                "fields": {
                    "base_url": {"label": "后端地址", "description": "控制台后端根地址"},
                    "api_token": {"label": "访问令牌", "description": "Bearer 访问令牌"},
                    "timeout_seconds": {"label": "超时（秒）", "description": "单次请求超时"},
                    "max_retries": {"label": "重试次数", "description": "连接失败时的重试次数"},
                },
            }
        }

    @classmethod
    def get_fields_metadata(cls) -> List[ConfigField]:
        return [
            ConfigField(
                name="base_url",
                field_type=FieldType.STRING,
                label="Base URL",
                description="Root URL of the console backend",
                required=True,
                default="http://localhost:8080",
                placeholder="https://console.example.com",
                group="connection",
                apply_change=env_sync("AGENTDESK_BASE_URL"),
            ),
            ConfigField(
                name="api_prefix",
                field_type=FieldType.STRING,
                label="API Prefix",
                description="Path prefix prepended to every endpoint",
                default="/api/v1",
                group="connection",
            ),
            ConfigField(
                name="api_token",
                field_type=FieldType.PASSWORD,
                label="Access Token",
                description="Bearer token sent with every request",
                group="connection",
                secure=True,
                apply_change=env_sync("AGENTDESK_API_TOKEN"),
            ),
            ConfigField(
                name="timeout_seconds",
                field_type=FieldType.NUMBER,
                label="Timeout (seconds)",
                description="Per-request timeout",
                default=30.0,
                min_value=1,
                max_value=600,
                group="limits",
            ),
            ConfigField(
                name="max_retries",
                field_type=FieldType.NUMBER,
                label="Connection Retries",
                description="Transport-level retries on connection failure",
                default=2,
                min_value=0,
                max_value=10,
                group="limits",
            ),
        ]

"""
Config Base — dataclass configuration registry.

Every configuration section is a ``@dataclass`` subclass of
``BaseConfig`` decorated with ``@register_config``. Sections expose
display metadata (name, category, icon, i18n) and per-field metadata
(``ConfigField``) so an editor UI can render them generically.

Instances are created lazily through ``get_default_instance`` (which
usually reads environment defaults) and cached per section name.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from logging import getLogger
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

logger = getLogger(__name__)

T = TypeVar("T", bound="BaseConfig")


class FieldType(str, Enum):
    """Input widget type for a config field."""
    STRING = "string"
    PASSWORD = "password"
    NUMBER = "number"
    BOOLEAN = "boolean"
    SELECT = "select"
    TEXTAREA = "textarea"
    LIST = "list"


@dataclass
class ConfigField:
    """Metadata for one field of a config section."""
    name: str
    field_type: FieldType
    label: str
    description: str = ""
    required: bool = False
    default: Any = None
    placeholder: str = ""
    options: List[Dict[str, Any]] = field(default_factory=list)
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    group: str = "general"
    secure: bool = False
    apply_change: Optional[Callable[[Any, Any], None]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.field_type.value,
            "label": self.label,
            "description": self.description,
            "required": self.required,
            "default": self.default,
            "placeholder": self.placeholder,
            "options": self.options,
            "min": self.min_value,
            "max": self.max_value,
            "group": self.group,
            "secure": self.secure,
        }


@dataclass
class BaseConfig:
    """Base class for all config sections."""

    @classmethod
    def get_default_instance(cls: Type[T]) -> T:
        return cls()

    @classmethod
    def get_config_name(cls) -> str:
        raise NotImplementedError

    @classmethod
    def get_display_name(cls) -> str:
        return cls.get_config_name()

    @classmethod
    def get_description(cls) -> str:
        return ""

    @classmethod
    def get_category(cls) -> str:
        return "general"

    @classmethod
    def get_icon(cls) -> str:
        return "settings"

    @classmethod
    def get_i18n(cls) -> Dict[str, Dict[str, Any]]:
        return {}

    @classmethod
    def get_fields_metadata(cls) -> List[ConfigField]:
        return []

    def to_dict(self, mask_secure: bool = True) -> Dict[str, Any]:
        """Serialize values, masking secure fields unless asked not to."""
        data = asdict(self)
        if mask_secure:
            for meta in self.get_fields_metadata():
                if meta.secure and data.get(meta.name):
                    data[meta.name] = "********"
        return data

    def update(self, values: Dict[str, Any]) -> List[str]:
        """Apply known fields from ``values``; returns the changed names.

        Unknown keys are ignored. ``apply_change`` hooks fire for every
        field whose value actually changed.
        """
        known = {f.name for f in fields(self)}
        hooks = {m.name: m.apply_change for m in self.get_fields_metadata()}
        changed: List[str] = []
        for name, value in values.items():
            if name not in known:
                logger.debug(f"Ignoring unknown field '{name}' for {self.get_config_name()}")
                continue
            old = getattr(self, name)
            if old == value:
                continue
            setattr(self, name, value)
            changed.append(name)
            hook = hooks.get(name)
            if hook:
                hook(old, value)
        if changed:
            logger.info(f"Config '{self.get_config_name()}' updated: {', '.join(changed)}")
        return changed


# ── Registry ──

_CONFIG_CLASSES: Dict[str, Type[BaseConfig]] = {}
_CONFIG_INSTANCES: Dict[str, BaseConfig] = {}


def register_config(cls: Type[T]) -> Type[T]:
    """Class decorator: register a config section by its config name."""
    name = cls.get_config_name()
    if name in _CONFIG_CLASSES and _CONFIG_CLASSES[name] is not cls:
        logger.warning(f"Config '{name}' registered twice; keeping {cls.__name__}")
    _CONFIG_CLASSES[name] = cls
    return cls


def get_config(name: str) -> BaseConfig:
    """Return the cached instance for a config section.

    Raises:
        KeyError: If no section with that name is registered.
    """
    if name not in _CONFIG_INSTANCES:
        cls = _CONFIG_CLASSES[name]
        _CONFIG_INSTANCES[name] = cls.get_default_instance()
    return _CONFIG_INSTANCES[name]


def list_configs() -> List[Type[BaseConfig]]:
    """All registered config classes, sorted by category then name."""
    return sorted(
        _CONFIG_CLASSES.values(),
        key=lambda c: (c.get_category(), c.get_config_name()),
    )


def reset_config_cache() -> None:
    """Drop cached instances so the next ``get_config`` re-reads defaults."""
    _CONFIG_INSTANCES.clear()

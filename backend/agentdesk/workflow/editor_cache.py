"""
Editor Cache — model and tool lookups owned by one editing session.

Holds the enabled LLM models and the AI tool list fetched from the
console so the registry can stamp display names into node configs
and the save pass can resolve a node's model name. A cache lives
exactly as long as the ``WorkflowEditor`` that owns it.
"""

from __future__ import annotations

from logging import getLogger
from typing import Any, Dict, Iterable, List, Optional

from agentdesk.api.models import AiTool, LlmModel

logger = getLogger(__name__)


class EditorCache:
    """Explicitly owned model/tool cache."""

    def __init__(
        self,
        models: Optional[Iterable[LlmModel]] = None,
        tools: Optional[Iterable[AiTool]] = None,
    ) -> None:
        self._models: Dict[str, LlmModel] = {}
        self._tools: Dict[str, AiTool] = {}
        self.models_loaded = False
        self.tools_loaded = False
        if models is not None:
            self.set_models(models)
        if tools is not None:
            self.set_tools(tools)

    # ── Models ──

    def set_models(self, models: Iterable[LlmModel]) -> None:
        # Disabled models are not selectable in the editor.
        self._models = {m.id: m for m in models if m.enabled}
        self.models_loaded = True
        logger.debug(f"Model cache loaded: {len(self._models)} enabled models")

    def get_model(self, model_id: Any) -> Optional[LlmModel]:
        if not model_id or isinstance(model_id, (dict, list)):
            return None
        return self._models.get(str(model_id))

    def resolve_model_name(self, model_id: Any) -> Optional[str]:
        model = self.get_model(model_id)
        return model.name if model else None

    @property
    def models(self) -> List[LlmModel]:
        return sorted(
            self._models.values(),
            key=lambda m: (m.sort_order if m.sort_order is not None else 0, m.name),
        )

    # ── Tools ──

    def set_tools(self, tools: Iterable[AiTool]) -> None:
        self._tools = {t.id: t for t in tools}
        self.tools_loaded = True
        logger.debug(f"Tool cache loaded: {len(self._tools)} tools")

    def get_tool(self, tool_id: Any) -> Optional[AiTool]:
        if not tool_id or isinstance(tool_id, (dict, list)):
            return None
        return self._tools.get(str(tool_id))

    @property
    def tools(self) -> List[AiTool]:
        return list(self._tools.values())

    # ── Lifecycle ──

    def invalidate(self) -> None:
        """Drop everything; the next refresh refetches."""
        self._models.clear()
        self._tools.clear()
        self.models_loaded = False
        self.tools_loaded = False

"""
Tests for the node type registry.

Descriptors, handle topology, default configs, advisory config
checks and the config update hook.
"""

import pytest

from agentdesk.workflow.nodes import HandleMode, NodeRegistry
from agentdesk.workflow.nodes.logic_nodes import ELSE_HANDLE, TOOL_EXECUTED, TOOL_NOT_EXECUTED


ALL_KINDS = [
    "start", "end", "flow_end", "agent_end", "human_transfer", "reply",
    "llm", "intent", "parameter_extraction", "translation", "agent",
    "condition", "tool", "variable", "setSessionMetadata", "flow", "flow_update",
    "agent_update",
    "knowledge", "kb_search", "imageTextSplit",
]


# =============================================================================
# Registration & descriptors
# =============================================================================


class TestRegistration:
    """Every node kind of the editor palette is registered."""

    @pytest.mark.parametrize("kind", ALL_KINDS)
    def test_kind_is_registered(self, registry, kind):
        assert registry.has(kind)
        assert registry.describe(kind).known

    def test_list_by_category_covers_all(self, registry):
        grouped = registry.list_by_category()
        kinds = {n.node_type for nodes in grouped.values() for n in nodes}
        assert set(ALL_KINDS) <= kinds

    def test_catalog_entries_are_serializable(self, registry):
        entry = next(e for e in registry.to_catalog() if e["node_type"] == "llm")
        assert entry["outputs"] == "fixed"
        assert any(p["name"] == "temperature" for p in entry["parameters"])

    def test_register_without_node_type_fails(self):
        from agentdesk.workflow.nodes import BaseNode

        class Nameless(BaseNode):
            pass

        with pytest.raises(ValueError):
            NodeRegistry().register(Nameless)


class TestDescriptors:
    """Input/output topology per kind."""

    def test_start_has_no_inputs(self, registry):
        desc = registry.describe("start")
        assert desc.inputs == 0
        assert desc.outputs.handles() == ["default"]

    @pytest.mark.parametrize("kind", ["end", "flow_end", "agent_end", "human_transfer", "reply"])
    def test_terminals_have_no_outputs(self, registry, kind):
        desc = registry.describe(kind)
        assert desc.is_terminal
        assert desc.inputs == 1
        assert desc.outputs.count() == 0

    @pytest.mark.parametrize("kind", ["llm", "knowledge", "kb_search", "translation", "flow", "variable", "agent_update"])
    def test_linear_kinds_have_single_output(self, registry, kind):
        desc = registry.describe(kind)
        assert desc.outputs.mode == HandleMode.FIXED
        assert desc.outputs.handles() == ["default"]
        assert not desc.has_named_handles

    def test_intent_handles_follow_intent_ids(self, registry):
        config = {"intents": [{"id": "a", "label": "A"}, {"id": "b", "label": "B"}]}
        desc = registry.describe("intent")
        assert desc.outputs.mode == HandleMode.DYNAMIC
        assert desc.has_named_handles
        assert registry.handles_for("intent", config) == ["a", "b"]

    def test_intent_without_intents_has_no_handles(self, registry):
        assert registry.handles_for("intent", {}) == []

    def test_malformed_branch_lists_have_no_handles(self, registry):
        assert registry.handles_for("intent", {"intents": 5}) == []
        assert registry.handles_for("intent", {"intents": "greet"}) == []
        assert registry.handles_for("condition", {"conditions": 3}) == [ELSE_HANDLE]

    def test_condition_else_is_always_last(self, registry):
        config = {"conditions": [{"id": "c1"}, {"id": "c2"}]}
        assert registry.handles_for("condition", config) == ["c1", "c2", ELSE_HANDLE]
        assert registry.handles_for("condition", {}) == [ELSE_HANDLE]

    def test_tool_has_fixed_named_handles(self, registry):
        desc = registry.describe("tool")
        assert desc.has_named_handles
        assert desc.outputs.handles() == [TOOL_EXECUTED, TOOL_NOT_EXECUTED]

    def test_unknown_kind_is_permissive(self, registry):
        desc = registry.describe("mystery")
        assert not desc.known
        assert desc.inputs == 1
        assert desc.outputs.handles() == ["default"]
        assert registry.validate_config("mystery", {"x": 1}) == []


# =============================================================================
# Config defaults & checks
# =============================================================================


class TestDefaultConfig:

    def test_llm_defaults(self, registry):
        config = registry.default_config("llm")
        assert config["temperature"] == 0.7
        assert config["readCount"] == 10
        assert config["useHistory"] is False
        assert config["messages"] == []
        assert "modelId" not in config

    def test_defaults_are_independent_copies(self, registry):
        first = registry.default_config("intent")
        first["intents"].append({"id": "x", "label": "X"})
        assert registry.default_config("intent")["intents"] == []

    def test_translation_reads_last_output(self, registry):
        assert registry.default_config("translation")["sourceText"] == "{{sys.lastoutput}}"

    def test_unknown_kind_has_empty_config(self, registry):
        assert registry.default_config("mystery") == {}


class TestValidateConfig:
    """Config checks are advisory and never raise."""

    def test_missing_model_is_reported(self, registry):
        issues = registry.validate_config("llm", registry.default_config("llm"))
        assert [i.field for i in issues] == ["modelId"]

    def test_legacy_model_code_satisfies_model(self, registry):
        issues = registry.validate_config("llm", {"model": "gpt-4o"})
        assert not [i for i in issues if i.field == "modelId"]

    def test_temperature_bounds(self, registry):
        issues = registry.validate_config("llm", {"modelId": "m", "temperature": 2.5})
        assert any("Temperature" in i.message for i in issues)

    def test_non_numeric_temperature(self, registry):
        issues = registry.validate_config("llm", {"modelId": "m", "temperature": "hot"})
        assert any("must be a number" in i.message for i in issues)

    def test_read_count_must_be_whole(self, registry):
        issues = registry.validate_config("llm", {"modelId": "m", "readCount": 2.5})
        assert any("whole number" in i.message for i in issues)

    def test_message_roles(self, registry):
        config = {"modelId": "m", "messages": [{"role": "user", "content": ""}, {"role": "bot"}]}
        issues = registry.validate_config("llm", config)
        assert [i.message for i in issues] == ["Message #2 needs a user/assistant role"]

    def test_duplicate_intent_ids(self, registry):
        config = {"modelId": "m", "intents": [{"id": "a", "label": "A"}, {"id": "a", "label": ""}]}
        messages = [i.message for i in registry.validate_config("intent", config)]
        assert "Duplicate intent id 'a'" in messages
        assert "Intent 'a' has no name" in messages

    def test_condition_operands(self, registry):
        config = {"conditions": [
            {"id": "c1", "sourceValue": "{{sys.query}}", "conditionType": "isEmpty"},
            {"id": "c2", "sourceValue": "{{sys.query}}", "conditionType": "equals"},
            {"id": "else", "sourceValue": "x", "conditionType": "between", "inputValue": "1"},
        ]}
        messages = [i.message for i in registry.validate_config("condition", config)]
        assert messages == [
            "Condition #2 needs a comparison value",
            "Condition #3 uses the reserved id 'else'",
            "Condition #3 has unknown operator 'between'",
        ]

    def test_parameter_extraction_parameters(self, registry):
        config = {"toolId": "t", "modelId": "m", "parameters": [
            {"name": "order_id", "type": "string"},
            {"name": "order_id", "type": "date"},
            {"name": ""},
        ]}
        messages = [i.message for i in registry.validate_config("parameter_extraction", config)]
        assert "Duplicate parameter 'order_id'" in messages
        assert "Parameter 'order_id' has unknown type 'date'" in messages
        assert "Parameter #3 has no name" in messages

    def test_query_source_must_be_an_option(self, registry):
        issues = registry.validate_config("knowledge", {"knowledgeBaseIds": ["kb1"], "querySource": "{{sys.query}}"})
        assert [i.message for i in issues] == ["Query Source must be one of userMessage, lastOutput"]
        assert registry.validate_config("knowledge", {"knowledgeBaseIds": ["kb1"], "querySource": "lastOutput"}) == []

    def test_knowledge_accepts_legacy_single_base(self, registry):
        assert registry.validate_config("knowledge", {"knowledgeBaseId": "kb1"}) == []
        assert [i.field for i in registry.validate_config("knowledge", {})] == ["knowledgeBaseIds"]

    def test_variable_rows_need_names(self, registry):
        issues = registry.validate_config("variable", {"assignments": [{"name": "", "value": "1"}]})
        assert [i.message for i in issues] == ["Row #1 has no name"]

    @pytest.mark.parametrize("kind,field,label", [
        ("intent", "intents", "Intents"),
        ("condition", "conditions", "Conditions"),
        ("llm", "messages", "Example Messages"),
        ("parameter_extraction", "parameters", "Parameters"),
        ("flow_update", "updates", "Updates"),
    ])
    def test_list_fields_holding_scalars(self, registry, kind, field, label):
        config = {"modelId": "m", "toolId": "t", field: 5}
        issues = registry.validate_config(kind, config)
        assert [(i.field, i.message) for i in issues] == [(field, f"{label} must be a list")]

    def test_unhashable_intent_id(self, registry):
        config = {"modelId": "m", "intents": [
            {"id": {"a": 1}, "label": "A"},
            {"id": {"a": 1}, "label": "B"},
        ]}
        messages = [i.message for i in registry.validate_config("intent", config)]
        assert "Intent id {'a': 1} is not text" in messages
        assert "Duplicate intent id '{'a': 1}'" in messages


# =============================================================================
# Update hook
# =============================================================================


class TestApplyConfigPatch:
    """Selecting a model or tool stamps display copies into the config."""

    def test_model_selection_stamps_names(self, registry, cache):
        config = registry.apply_config_patch("llm", {"temperature": 0.2}, {"modelId": "m-gpt5"}, cache)
        assert config == {
            "temperature": 0.2,
            "modelId": "m-gpt5",
            "model": "gpt-5-preview",
            "modelDisplayName": "GPT-5 Preview",
            "provider": "openai",
        }

    def test_unknown_model_stamps_nothing(self, registry, cache):
        config = registry.apply_config_patch("llm", {}, {"modelId": "nope"}, cache)
        assert config == {"modelId": "nope"}

    def test_disabled_model_is_not_resolved(self, registry, cache):
        config = registry.apply_config_patch("intent", {}, {"modelId": "m-off"}, cache)
        assert "modelDisplayName" not in config

    def test_original_config_untouched(self, registry, cache):
        original = {"modelId": "m-gpt4o"}
        registry.apply_config_patch("llm", original, {"modelId": "m-gpt5"}, cache)
        assert original == {"modelId": "m-gpt4o"}

    def test_tool_selection_stamps_display_name(self, registry, cache):
        config = registry.apply_config_patch("tool", {}, {"toolId": "t-order"}, cache)
        assert config["toolName"] == "Order Lookup"

    def test_tool_without_display_name_uses_name(self, registry, cache):
        config = registry.apply_config_patch("parameter_extraction", {}, {"toolId": "t-raw"}, cache)
        assert config["toolName"] == "raw_tool"

    def test_missing_tool_clears_name(self, registry, cache):
        config = registry.apply_config_patch("tool", {"toolName": "Old"}, {"toolId": "gone"}, cache)
        assert config["toolName"] == ""

    def test_without_cache_is_plain_merge(self, registry):
        config = registry.apply_config_patch("llm", {"a": 1}, {"modelId": "m-gpt5"})
        assert config == {"a": 1, "modelId": "m-gpt5"}

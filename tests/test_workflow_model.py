"""
Tests for the workflow data model and its JSON codecs.
"""

import json

import pytest

from agentdesk.api.models import WorkflowPayload
from agentdesk.workflow.workflow_model import (
    WorkflowDefinition,
    WorkflowEdge,
    WorkflowNode,
    WorkflowSerializationError,
    deserialize_edges,
    deserialize_nodes,
    serialize_edges,
    serialize_nodes,
)

from conftest import make_edge, make_node


NODES_JSON = json.dumps([
    {
        "id": "s1",
        "type": "start",
        "position": {"x": 10, "y": 20},
        "data": {"label": "Start", "config": {}},
        "measured": {"width": 200, "height": 80},
        "style": {"border": "1px solid"},
    },
    {
        "id": "k1",
        "type": "knowledge",
        "position": {"x": 300, "y": 20},
        "data": {"label": "FAQ", "config": {"knowledgeBaseIds": ["kb1"]}, "icon": "book"},
        "sourcePosition": "right",
    },
])

EDGES_JSON = json.dumps([
    {"id": "e1", "source": "s1", "target": "k1", "animated": True},
    {"id": "e2", "source": "k1", "target": "x9", "sourceHandle": None},
])


class TestNodeModel:

    def test_parses_react_flow_node(self):
        nodes = deserialize_nodes(NODES_JSON)
        assert [n.id for n in nodes] == ["s1", "k1"]
        assert nodes[1].label == "FAQ"
        assert nodes[1].config == {"knowledgeBaseIds": ["kb1"]}
        assert nodes[1].source_position == "right"

    def test_null_label_and_config(self):
        node = WorkflowNode.model_validate({"id": "n", "type": "llm", "data": {"label": None, "config": None}})
        assert node.label == ""
        assert node.config == {}

    def test_effective_size_prefers_measured(self):
        node = make_node("n", "llm")
        assert node.effective_size(280, 150) == (280.0, 150.0)
        node.width = 300
        assert node.effective_size(280, 150) == (300.0, 150.0)
        node.measured = {"width": 320, "height": 90}
        assert node.effective_size(280, 150) == (320.0, 90.0)


class TestEdgeModel:

    def test_edge_id_is_generated(self):
        edge = WorkflowEdge(source="a", target="b")
        assert edge.id.startswith("e-a-b-")

    def test_handles_use_wire_names(self):
        edge = make_edge("a", "b", handle="greet", edge_id="e1")
        assert edge.to_wire() == {"id": "e1", "source": "a", "target": "b", "sourceHandle": "greet"}


class TestRoundTrip:
    """Unknown keys survive a decode/encode cycle."""

    def test_nodes_round_trip(self):
        nodes = deserialize_nodes(NODES_JSON)
        again = json.loads(serialize_nodes(nodes))
        assert again[0]["measured"] == {"width": 200, "height": 80}
        assert again[0]["style"] == {"border": "1px solid"}
        assert again[1]["data"]["icon"] == "book"
        assert deserialize_nodes(serialize_nodes(nodes)) == nodes

    def test_edges_round_trip(self):
        edges = deserialize_edges(EDGES_JSON)
        again = json.loads(serialize_edges(edges))
        assert again[0]["animated"] is True
        assert "sourceHandle" not in again[1]
        assert deserialize_edges(serialize_edges(edges)) == edges

    def test_non_ascii_is_kept_readable(self):
        text = serialize_nodes([make_node("n", "reply", "问候", {"text": "您好"})])
        assert "问候" in text and "您好" in text


class TestDecodeErrors:

    @pytest.mark.parametrize("text", [None, "", "   ", "null"])
    def test_empty_inputs_decode_to_nothing(self, text):
        assert deserialize_nodes(text) == []
        assert deserialize_edges(text) == []

    def test_invalid_json(self):
        with pytest.raises(WorkflowSerializationError, match="not valid JSON"):
            deserialize_nodes("[{")

    def test_not_an_array(self):
        with pytest.raises(WorkflowSerializationError, match="must be a JSON array"):
            deserialize_edges('{"source": "a"}')

    def test_item_not_an_object(self):
        with pytest.raises(WorkflowSerializationError, match=r"nodesJson\[1\] is not an object"):
            deserialize_nodes('[{"id": "a", "type": "start"}, 3]')

    def test_item_missing_required_field(self):
        with pytest.raises(WorkflowSerializationError, match=r"edgesJson\[0\] is malformed"):
            deserialize_edges('[{"source": "a"}]')


class TestDefinition:

    def test_lookups(self, intent_graph):
        assert intent_graph.get_node("i1").type == "intent"
        assert intent_graph.get_node("zz") is None
        assert [e.id for e in intent_graph.get_edges_from("i1")] == ["e2"]
        assert [e.id for e in intent_graph.get_edges_to("i1")] == ["e1"]
        assert intent_graph.get_start_node().id == "s1"

    def test_category_ids_are_deduplicated(self):
        definition = WorkflowDefinition(category_ids=["a", "b", "a"])
        assert definition.category_ids == ["a", "b"]

    def test_from_payload(self):
        payload = WorkflowPayload.model_validate({
            "id": "wf-9",
            "name": "Orders",
            "description": None,
            "nodesJson": NODES_JSON,
            "edgesJson": EDGES_JSON,
            "categoryIds": ["c1"],
            "version": 4,
            "trigger": "chat",
        })
        definition = WorkflowDefinition.from_payload(payload)
        assert definition.id == "wf-9"
        assert definition.description == ""
        assert len(definition.nodes) == 2
        assert len(definition.edges) == 2
        assert definition.category_ids == ["c1"]
        assert definition.extra_fields == {"version": 4, "trigger": "chat"}

    def test_to_payload_wire_shape(self, intent_graph):
        intent_graph.category_ids = ["c1"]
        wire = intent_graph.to_payload().to_wire()
        assert wire["id"] == "wf-intent"
        assert wire["categoryIds"] == ["c1"]
        assert json.loads(wire["nodesJson"])[1]["data"]["config"]["intents"][0]["id"] == "greet"
        assert json.loads(wire["edgesJson"])[1]["sourceHandle"] == "greet"

    def test_payload_keeps_extra_metadata(self):
        definition = WorkflowDefinition(id="wf", extra_fields={"version": 3})
        assert definition.to_payload().to_wire()["version"] == 3

    def test_null_payload_fields(self):
        payload = WorkflowPayload.model_validate({
            "id": "wf", "name": None, "nodesJson": None, "edgesJson": None, "categoryIds": None,
        })
        definition = WorkflowDefinition.from_payload(payload)
        assert definition.nodes == [] and definition.edges == [] and definition.category_ids == []

    def test_copy_graph_is_deep(self, intent_graph):
        copy = intent_graph.copy_graph()
        copy.get_node("i1").config["intents"].append({"id": "x", "label": "X"})
        assert len(intent_graph.get_node("i1").config["intents"]) == 1

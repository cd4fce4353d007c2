"""Tests for flow documents and editing helpers."""
import json

import pytest

from autograph.errors import UnknownKind
from autograph.workflow_runtime import Edge, Flow, Node, Position


def _flow() -> Flow:
    return Flow(
        nodes=[
            Node(id="a", type_name="math_add", config={"value": 1}, position=Position(x=10, y=20)),
            Node(id="b", type_name="print", config={}, breakpoint=True),
        ],
        edges=[Edge(source="a", target="b", source_handle="out")],
    )


class TestSerialization:

    def test_json_round_trip(self):
        flow = _flow()
        assert Flow.from_json(flow.to_json()) == flow

    def test_dict_round_trip(self):
        flow = _flow()
        assert Flow.from_dict(flow.to_dict()) == flow

    def test_document_shape(self):
        document = json.loads(_flow().to_json())

        assert set(document) == {"nodes", "edges"}
        assert document["nodes"][0]["type_name"] == "math_add"
        assert document["nodes"][1]["breakpoint"] is True
        assert document["edges"][0] == {
            "source": "a", "target": "b", "source_handle": "out", "target_handle": None,
        }

    def test_optional_fields_default(self):
        flow = Flow.from_dict({
            "nodes": [{"id": "x", "type_name": "start", "config": None}],
            "edges": [],
        })
        node = flow.nodes[0]
        assert node.position is None
        assert node.breakpoint is False
        assert node.config is None

    def test_semantic_view_ignores_cosmetic_fields(self):
        moved = _flow()
        moved.nodes[0].position = Position(x=999, y=999)
        moved.edges[0].source_handle = None

        assert moved.semantic_view() == _flow().semantic_view()

    def test_semantic_view_sees_config_changes(self):
        changed = _flow()
        changed.nodes[0].config = {"value": 2}

        assert changed.semantic_view() != _flow().semantic_view()


class TestEditing:

    def test_add_node_generates_ids(self, registry):
        flow = Flow()
        first = flow.add_node("math_add", registry)
        second = flow.add_node("math_add", registry)

        assert first.id == "math_add_1"
        assert second.id == "math_add_2"
        assert first.config == {"value": 0}

    def test_add_node_unknown_kind(self, registry):
        with pytest.raises(UnknownKind):
            Flow().add_node("nope", registry)

    def test_add_node_explicit_id_taken(self, registry):
        flow = Flow()
        flow.add_node("print", registry, node_id="p")
        with pytest.raises(ValueError):
            flow.add_node("print", registry, node_id="p")

    def test_remove_node_drops_edges(self):
        flow = _flow()

        assert flow.remove_node("a") is True
        assert [n.id for n in flow.nodes] == ["b"]
        assert flow.edges == []
        assert flow.remove_node("a") is False

    def test_add_edge_ignores_duplicates(self):
        flow = _flow()

        assert flow.add_edge("a", "b") is None
        assert len(flow.edges) == 1
        assert flow.add_edge("b", "a") is not None
        assert len(flow.edges) == 2

    def test_remove_edge(self):
        flow = _flow()
        assert flow.remove_edge("a", "b") is True
        assert flow.edges_to("b") == []

    def test_set_breakpoint(self):
        flow = _flow()
        flow.set_breakpoint("a")
        assert flow.get_node("a").breakpoint is True

        with pytest.raises(KeyError):
            flow.set_breakpoint("missing")

    def test_edge_queries(self):
        flow = _flow()
        assert [e.target for e in flow.edges_from("a")] == ["b"]
        assert [e.source for e in flow.edges_to("b")] == ["a"]

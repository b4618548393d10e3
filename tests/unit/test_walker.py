"""Tests for the depth-bounded tree walk."""

from typing import Any

import pytest

from design_context.core.extract import extractors
from design_context.core.extract.walker import (
    ContextAccumulator,
    find_node,
    is_significant_node,
    walk,
)


def _chain(depth: int) -> dict[str, Any]:
    """Build a FRAME chain depth levels deep."""
    node: dict[str, Any] = {"id": f"n{depth}", "type": "FRAME", "name": f"_level{depth}"}
    for level in range(depth - 1, -1, -1):
        node = {"id": f"n{level}", "type": "FRAME", "name": f"_level{level}", "children": [node]}
    return node


def test_walk_visits_in_document_order(figma_file: dict[str, Any]) -> None:
    acc = ContextAccumulator()
    walk(figma_file["document"], acc)
    assert [n.id for n in acc.nodes] == ["0:0", "0:1", "1:1", "1:2", "1:3", "2:1", "2:2", "2:3", "3:1"]
    assert [n.depth for n in acc.nodes][:4] == [0, 1, 2, 3]


def test_walk_records_extractors_once_in_first_use_order(figma_file: dict[str, Any]) -> None:
    acc = ContextAccumulator()
    walk(figma_file["document"], acc)
    assert acc.extractors == ["frame", "text", "vector", "component", "style", "instance"]


def test_walk_header_scenario(header_tree: dict[str, Any]) -> None:
    acc = ContextAccumulator()
    walk(header_tree["document"], acc)
    assert len(acc.nodes) == 3
    texts = [n for n in acc.nodes if n.node_type == "text"]
    assert len(texts) == 1
    assert texts[0].attributes["content"] == "Hello"


def test_walk_stops_below_max_depth() -> None:
    acc = ContextAccumulator(max_depth=20)
    walk(_chain(100), acc)
    assert len(acc.nodes) == 21
    assert max(n.depth for n in acc.nodes) == 20


def test_walk_with_zero_max_depth_records_only_root() -> None:
    acc = ContextAccumulator(max_depth=0)
    walk(_chain(3), acc)
    assert [n.id for n in acc.nodes] == ["n0"]


def test_walk_skips_non_mapping_children() -> None:
    acc = ContextAccumulator()
    walk({"id": "r", "type": "GROUP", "name": "g", "children": [None, "x", {"id": "c", "type": "TEXT"}]}, acc)
    assert [n.id for n in acc.nodes] == ["r", "c"]


def test_walk_fills_base_field_defaults() -> None:
    acc = ContextAccumulator()
    walk({"type": "ELLIPSE"}, acc)
    node = acc.nodes[0]
    assert node.id == "anon-0"
    assert node.name == "ELLIPSE_anon-0"
    assert node.visible is True
    assert node.locked is False
    assert node.bounds is None


def test_walk_records_duplicate_ids_once() -> None:
    acc = ContextAccumulator()
    tree = {
        "id": "r",
        "type": "FRAME",
        "name": "Root",
        "children": [{"id": "d", "type": "TEXT"}, {"id": "d", "type": "TEXT"}],
    }
    walk(tree, acc)
    assert [n.id for n in acc.nodes] == ["r", "d"]


def test_extractor_failure_keeps_base_fields(monkeypatch: pytest.MonkeyPatch) -> None:
    def boom(node: Any) -> dict[str, Any]:
        raise RuntimeError("bad node")

    monkeypatch.setitem(extractors.EXTRACTORS, extractors.NodeKind.TEXT, boom)
    acc = ContextAccumulator()
    walk({"id": "r", "type": "FRAME", "name": "Root", "children": [{"id": "t", "type": "TEXT"}]}, acc)

    assert [n.id for n in acc.nodes] == ["r", "t"]
    assert acc.nodes[1].attributes == {}
    assert acc.failed_node_ids == ["t"]
    assert "text" not in acc.extractors


def test_deferred_writes_for_significant_nodes_in_post_order(figma_file: dict[str, Any]) -> None:
    acc = ContextAccumulator()
    walk(figma_file["document"], acc)
    assert [w.node_id for w in acc.deferred_writes] == ["1:1", "2:1"]
    header = acc.deferred_writes[0].document
    assert header["confidence"] == 0.8
    assert header["node"]["name"] == "Header"
    assert header["node"]["gap"] == 8
    assert "extracted" in header


@pytest.mark.parametrize(
    ("node", "expected"),
    [
        ({"type": "FRAME", "name": "Card"}, True),
        ({"type": "GROUP", "name": "Icons"}, True),
        ({"type": "COMPONENT", "name": "Button"}, True),
        ({"type": "FRAME", "name": "_private"}, False),
        ({"type": "FRAME", "name": "Card", "visible": False}, False),
        ({"type": "FRAME"}, False),
        ({"type": "TEXT", "name": "Label"}, False),
    ],
)
def test_is_significant_node(node: dict[str, Any], expected: bool) -> None:
    assert is_significant_node(node) is expected


def test_find_node_returns_subtree(figma_file: dict[str, Any]) -> None:
    found = find_node(figma_file["document"], "2:1")
    assert found is not None
    assert found["name"] == "PrimaryButton"
    assert find_node(figma_file["document"], "missing") is None
    assert find_node(None, "2:1") is None

"""Tests for domain models."""

import pytest

from design_context.models.context import (
    Bounds,
    ComponentInfo,
    ContextDocument,
    ContextKey,
    ContextMetadata,
    NodeInfo,
)


def test_context_key_is_frozen() -> None:
    key = ContextKey("fileA")
    with pytest.raises(AttributeError):
        key.file_key = "changed"  # type: ignore[misc]


def test_context_key_cache_key_appends_node_id() -> None:
    assert ContextKey("fileA").cache_key == "fileA"
    assert ContextKey("fileA", "1:2").cache_key == "fileA-1:2"


def test_context_key_empty_node_id_means_file_scope() -> None:
    assert ContextKey("fileA", "") == ContextKey("fileA")
    assert ContextKey("fileA", "").node_id is None


@pytest.mark.parametrize("file_key", ["", "   ", None])
def test_context_key_rejects_empty_file_key(file_key: str) -> None:
    with pytest.raises(ValueError, match="file_key"):
        ContextKey(file_key)


def test_node_info_flattens_attributes_into_dict() -> None:
    node = NodeInfo(
        id="1",
        type="TEXT",
        name="Title",
        visible=True,
        locked=False,
        depth=2,
        bounds=Bounds(0, 0, 10, 20),
        attributes={"nodeType": "text", "content": "Hello"},
    )
    data = node.to_dict()
    assert data["content"] == "Hello"
    assert data["bounds"] == {"x": 0, "y": 0, "width": 10, "height": 20}
    assert node.node_type == "text"


def test_node_info_without_bounds_omits_key() -> None:
    node = NodeInfo(id="1", type="GROUP", name="g", visible=True, locked=False, depth=0)
    assert "bounds" not in node.to_dict()
    assert node.node_type is None


def test_context_document_rejects_confidence_outside_unit_interval() -> None:
    with pytest.raises(ValueError, match="confidence"):
        ContextDocument(file_key="fileA", confidence=1.5)


def test_context_document_to_dict_uses_camel_case() -> None:
    doc = ContextDocument(
        file_key="fileA",
        node_id="1:1",
        confidence=0.5,
        components=(ComponentInfo(id="c", name="Button", component_set_id="set"),),
        metadata=ContextMetadata(file_name="DS", last_modified="2026-01-01"),
    )
    data = doc.to_dict()
    assert data["fileKey"] == "fileA"
    assert data["nodeId"] == "1:1"
    assert data["components"][0]["componentSetId"] == "set"
    assert data["metadata"]["fileName"] == "DS"
    assert data["metadata"]["lastModified"] == "2026-01-01"
    assert data["nodes"] == []

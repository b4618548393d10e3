"""Assemble walker output and file tables into a ContextDocument."""

from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from loguru import logger

from design_context.config import MAX_DEPTH
from design_context.core.extract.scoring import calculate_confidence
from design_context.core.extract.walker import ContextAccumulator, walk
from design_context.errors import MalformedInputError
from design_context.models.context import (
    ComponentInfo,
    ContextDocument,
    ContextMetadata,
    StyleInfo,
)


def _entries(table: Any) -> list[tuple[str, Mapping[str, Any]]]:
    if not isinstance(table, Mapping):
        return []
    return [(str(k), v) for k, v in table.items() if isinstance(v, Mapping)]


def collect_styles(flat_styles: Any) -> tuple[StyleInfo, ...]:
    """Turn the source's id -> style map into StyleInfo records."""
    return tuple(
        StyleInfo(
            id=style_id,
            name=style.get("name") or "",
            type=style.get("styleType"),
            description=style.get("description") or "",
        )
        for style_id, style in _entries(flat_styles)
    )


def collect_components(flat_components: Any) -> tuple[ComponentInfo, ...]:
    """Turn the source's id -> component map into ComponentInfo records."""
    return tuple(
        ComponentInfo(
            id=component_id,
            name=component.get("name") or "",
            description=component.get("description") or "",
            component_set_id=component.get("componentSetId"),
        )
        for component_id, component in _entries(flat_components)
    )


def collect_metadata(file_meta: Mapping[str, Any]) -> ContextMetadata:
    """Copy file-level fields, falling back to defaults where absent."""
    return ContextMetadata(
        file_name=file_meta.get("name") or "Unknown",
        last_modified=file_meta.get("lastModified") or None,
        version=str(file_meta.get("version") or "1.0"),
        thumbnail_url=file_meta.get("thumbnailUrl") or None,
        editor_type=file_meta.get("editorType") or "design",
    )


def assemble(
    acc: ContextAccumulator,
    flat_styles: Any,
    flat_components: Any,
    file_meta: Mapping[str, Any],
    *,
    file_key: str,
    node_id: str | None = None,
) -> ContextDocument:
    """Combine a finished walk with the flat style/component tables.

    Args:
        acc: Accumulator filled by walk().
        flat_styles: Source style table, keyed by style id.
        flat_components: Source component table, keyed by component id.
        file_meta: Top-level file fields (name, lastModified, version, ...).
        file_key: Identity of the source file.
        node_id: Set for node-scoped documents.

    Returns:
        The assembled document with its confidence score applied.
    """
    document = ContextDocument(
        file_key=file_key,
        node_id=node_id,
        nodes=tuple(acc.nodes),
        styles=collect_styles(flat_styles),
        components=collect_components(flat_components),
        extractors=tuple(acc.extractors),
        metadata=collect_metadata(file_meta),
    )
    return replace(document, confidence=calculate_confidence(document))


def _document_root(raw: Any) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        msg = f"expected a mapping payload, got {type(raw).__name__}"
        raise MalformedInputError(msg)
    root = raw.get("document")
    if not isinstance(root, Mapping):
        msg = "payload has no 'document' root node"
        raise MalformedInputError(msg)
    return root


def build_context(
    raw: Any,
    *,
    file_key: str,
    node_id: str | None = None,
    max_depth: int = MAX_DEPTH,
) -> tuple[ContextDocument, ContextAccumulator]:
    """Run the full extraction pipeline over a raw source payload.

    A payload without a root node is not an error: it produces a document
    with no nodes and a correspondingly low confidence.

    Returns:
        Tuple of (document, walk accumulator). The accumulator carries the
        node-scoped writes and the ids of nodes whose extractor failed.
    """
    acc = ContextAccumulator(max_depth=max_depth)
    try:
        root = _document_root(raw)
    except MalformedInputError as e:
        logger.warning("Malformed document for {}: {}", file_key, e)
    else:
        walk(root, acc)

    meta = raw if isinstance(raw, Mapping) else {}
    document = assemble(
        acc,
        meta.get("styles"),
        meta.get("components"),
        meta,
        file_key=file_key,
        node_id=node_id,
    )
    logger.debug(
        "Extracted {}: {} nodes, {} components, {} styles, confidence {}",
        file_key,
        len(document.nodes),
        len(document.components),
        len(document.styles),
        document.confidence,
    )
    if acc.failed_node_ids:
        logger.warning(
            "{}: extractors failed on {} nodes: {}",
            file_key,
            len(acc.failed_node_ids),
            ", ".join(acc.failed_node_ids),
        )
    return document, acc

"""Depth-bounded traversal of a raw design tree."""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from design_context.config import MAX_DEPTH, NODE_CONTEXT_CONFIDENCE
from design_context.core.extract.extractors import EXTRACTORS, NodeKind, resolve_kind
from design_context.models.context import Bounds, NodeInfo

SIGNIFICANT_TYPES = frozenset({"COMPONENT", "FRAME", "GROUP"})


@dataclass(frozen=True)
class DeferredWrite:
    """A node-scoped document to store once the file document is written."""

    node_id: str
    document: dict[str, Any]


@dataclass
class ContextAccumulator:
    """Mutable state collected during one walk."""

    nodes: list[NodeInfo] = field(default_factory=list)
    extractors: list[str] = field(default_factory=list)
    deferred_writes: list[DeferredWrite] = field(default_factory=list)
    failed_node_ids: list[str] = field(default_factory=list)
    max_depth: int = MAX_DEPTH
    seen_ids: set[str] = field(default_factory=set, repr=False)


def is_significant_node(node: Mapping[str, Any]) -> bool:
    """A named, visible COMPONENT/FRAME/GROUP gets its own stored context."""
    name = node.get("name")
    return (
        node.get("type") in SIGNIFICANT_TYPES
        and isinstance(name, str)
        and bool(name)
        and not name.startswith("_")
        and node.get("visible") is not False
    )


def _bounds(node: Mapping[str, Any]) -> Bounds | None:
    box = node.get("absoluteBoundingBox")
    if not isinstance(box, Mapping):
        return None
    return Bounds(
        x=box.get("x", 0),
        y=box.get("y", 0),
        width=box.get("width", 0),
        height=box.get("height", 0),
    )


def _base_node(node: Mapping[str, Any], depth: int, fallback_id: str) -> NodeInfo:
    node_type = str(node.get("type") or "UNKNOWN")
    node_id = str(node.get("id") or fallback_id)
    return NodeInfo(
        id=node_id,
        type=node_type,
        name=node.get("name") or f"{node_type}_{node_id}",
        visible=node.get("visible") is not False,
        locked=bool(node.get("locked", False)),
        depth=depth,
        bounds=_bounds(node),
    )


def walk(root: Any, acc: ContextAccumulator, depth: int = 0) -> None:
    """Visit root and its descendants in document order, appending to acc.

    A node deeper than acc.max_depth is not visited; the node at max_depth is
    recorded but its children are skipped. Extractor failures are logged and
    the node keeps only its base fields.
    """
    if not isinstance(root, Mapping) or depth > acc.max_depth:
        return

    info = _base_node(root, depth, fallback_id=f"anon-{len(acc.nodes)}")
    kind = resolve_kind(info.type)
    extractor = EXTRACTORS.get(kind)
    if extractor is not None:
        try:
            info = replace(info, attributes=extractor(root))
        except Exception:
            logger.opt(exception=True).warning(
                "Extractor {} failed on node {}, keeping base fields", kind.value, info.id
            )
            acc.failed_node_ids.append(info.id)
            kind = NodeKind.UNKNOWN

    recorded = info.id not in acc.seen_ids
    if not recorded:
        logger.debug("Duplicate node id {} at depth {}, not recorded twice", info.id, depth)
    else:
        acc.seen_ids.add(info.id)
        acc.nodes.append(info)
        if kind is not NodeKind.UNKNOWN and kind.value not in acc.extractors:
            acc.extractors.append(kind.value)

    children = root.get("children")
    if isinstance(children, list):
        for child in children:
            walk(child, acc, depth + 1)

    if recorded and is_significant_node(root):
        acc.deferred_writes.append(
            DeferredWrite(
                node_id=info.id,
                document={
                    "node": info.to_dict(),
                    "confidence": NODE_CONTEXT_CONFIDENCE,
                    "extracted": datetime.now(UTC).isoformat(),
                },
            )
        )


def find_node(root: Any, node_id: str) -> Mapping[str, Any] | None:
    """Return the first node with id node_id in document order, or None."""
    stack = [root]
    while stack:
        node = stack.pop()
        if not isinstance(node, Mapping):
            continue
        if node.get("id") == node_id:
            return node
        children = node.get("children")
        if isinstance(children, list):
            stack.extend(reversed(children))
    return None

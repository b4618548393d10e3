"""Domain models for extracted design context."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ContextKey:
    """Identity of a stored context: a file, or one node inside it."""

    file_key: str
    node_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.file_key, str) or not self.file_key.strip():
            msg = f"file_key must be a non-empty string, got {self.file_key!r}"
            raise ValueError(msg)
        if self.node_id == "":
            object.__setattr__(self, "node_id", None)

    @property
    def cache_key(self) -> str:
        return self.file_key + (f"-{self.node_id}" if self.node_id else "")


@dataclass(frozen=True)
class Bounds:
    """Absolute bounding box of a node."""

    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class NodeInfo:
    """One visited node.

    ``attributes`` holds the type-specific fields contributed by the matching
    extractor; they are flattened into the serialized form.
    """

    id: str
    type: str
    name: str
    visible: bool
    locked: bool
    depth: int
    bounds: Bounds | None = None
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def node_type(self) -> str | None:
        """Extractor kind applied to this node, if any."""
        return self.attributes.get("nodeType")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "visible": self.visible,
            "locked": self.locked,
            "depth": self.depth,
        }
        if self.bounds is not None:
            data["bounds"] = self.bounds.to_dict()
        data.update(self.attributes)
        return data


@dataclass(frozen=True)
class StyleInfo:
    """A shared style from the file's flat style table."""

    id: str
    name: str
    type: str | None
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "description": self.description,
        }


@dataclass(frozen=True)
class ComponentInfo:
    """A component from the file's flat component table."""

    id: str
    name: str
    description: str = ""
    component_set_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "componentSetId": self.component_set_id,
        }


@dataclass(frozen=True)
class ContextMetadata:
    """File-level metadata copied from the source payload."""

    file_name: str = "Unknown"
    last_modified: str | None = None
    version: str = "1.0"
    thumbnail_url: str | None = None
    editor_type: str = "design"
    source: str = "figma-api"

    def to_dict(self) -> dict[str, Any]:
        return {
            "fileName": self.file_name,
            "lastModified": self.last_modified,
            "version": self.version,
            "thumbnailUrl": self.thumbnail_url,
            "editorType": self.editor_type,
            "source": self.source,
        }


@dataclass(frozen=True)
class ContextDocument:
    """The normalized, storable context of one file or node."""

    file_key: str
    node_id: str | None = None
    confidence: float = 0.0
    nodes: tuple[NodeInfo, ...] = ()
    styles: tuple[StyleInfo, ...] = ()
    components: tuple[ComponentInfo, ...] = ()
    extractors: tuple[str, ...] = ()
    metadata: ContextMetadata = field(default_factory=ContextMetadata)

    def __post_init__(self) -> None:
        if not self.file_key:
            msg = "ContextDocument.file_key must not be empty"
            raise ValueError(msg)
        if not 0.0 <= self.confidence <= 1.0:
            msg = f"confidence must be within [0, 1], got {self.confidence!r}"
            raise ValueError(msg)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON form written to the backing store."""
        return {
            "fileKey": self.file_key,
            "nodeId": self.node_id,
            "confidence": self.confidence,
            "nodes": [n.to_dict() for n in self.nodes],
            "styles": [s.to_dict() for s in self.styles],
            "components": [c.to_dict() for c in self.components],
            "extractors": list(self.extractors),
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class SearchMatch:
    """A node, component or style whose name or type matched a query."""

    kind: str
    id: str
    name: str
    type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "id": self.id, "name": self.name, "type": self.type}


@dataclass(frozen=True)
class SearchHit:
    """A stored document matching a query, with its relevance score."""

    file_key: str
    node_id: str | None
    score: float
    confidence: float
    file_name: str | None = None
    matches: tuple[SearchMatch, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "fileKey": self.file_key,
            "nodeId": self.node_id,
            "fileName": self.file_name,
            "score": self.score,
            "confidence": self.confidence,
            "matches": [m.to_dict() for m in self.matches],
        }

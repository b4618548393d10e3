"""Confidence scoring for assembled context documents."""

from design_context.models.context import ContextDocument

# Additive weights; the score is their sum clamped to [0, 1].
WEIGHTS: dict[str, float] = {
    "has_nodes": 0.30,
    "has_components": 0.20,
    "has_styles": 0.15,
    "has_text": 0.10,
    "has_frame": 0.10,
    "has_file_name": 0.05,
    "has_last_modified": 0.05,
    "rich_content": 0.05,
}

RICH_CONTENT_NODE_COUNT = 10


def confidence_signals(document: ContextDocument) -> dict[str, bool]:
    """Return which scoring signals fire for document."""
    node_types = {n.node_type for n in document.nodes}
    return {
        "has_nodes": len(document.nodes) > 0,
        "has_components": len(document.components) > 0,
        "has_styles": len(document.styles) > 0,
        "has_text": "text" in node_types,
        "has_frame": "frame" in node_types,
        "has_file_name": document.metadata.file_name != "Unknown",
        "has_last_modified": bool(document.metadata.last_modified),
        "rich_content": len(document.nodes) > RICH_CONTENT_NODE_COUNT,
    }


def calculate_confidence(document: ContextDocument) -> float:
    """Score how complete an extracted document is, in [0, 1]."""
    signals = confidence_signals(document)
    score = sum(weight for name, weight in WEIGHTS.items() if signals[name])
    return round(min(1.0, max(0.0, score)), 4)

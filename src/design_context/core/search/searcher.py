"""Substring search over stored context documents."""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from loguru import logger

from design_context.core.store.context_store import ContextStore
from design_context.errors import StoreIOError
from design_context.models.context import SearchHit, SearchMatch

# Weight of one hit, by what matched.
HIT_WEIGHTS = {
    "component.name": 1.5,
    "node.name": 1.0,
    "style.name": 1.0,
    "node.type": 0.5,
    "style.type": 0.5,
}
# Share of the final score taken by text hits; the rest is document confidence.
HIT_SHARE = 0.8

NO_RESULTS_SUGGESTION = (
    "No stored context matched. Process the relevant file first "
    "(extract_and_store or quick_setup), then search again."
)


def _contains(value: Any, needle: str) -> bool:
    return isinstance(value, str) and needle in value.lower()


def _mappings(items: Any) -> Iterable[Mapping[str, Any]]:
    if not isinstance(items, list):
        return []
    return [i for i in items if isinstance(i, Mapping)]


def _document_nodes(document: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    nodes = list(_mappings(document.get("nodes")))
    # Node-scoped documents carry their node under "node".
    if isinstance(document.get("node"), Mapping):
        nodes.append(document["node"])
    return nodes


def score_document(
    document: Mapping[str, Any], needle: str, node_types: frozenset[str]
) -> tuple[float, list[SearchMatch]]:
    """Return (weighted hit count, matches) of needle within document."""
    hits = 0.0
    matches: list[SearchMatch] = []

    for node in _document_nodes(document):
        node_type = node.get("type")
        if node_types and str(node_type).lower() not in node_types:
            continue
        weight = 0.0
        if _contains(node.get("name"), needle):
            weight += HIT_WEIGHTS["node.name"]
        if _contains(node_type, needle):
            weight += HIT_WEIGHTS["node.type"]
        if weight:
            hits += weight
            matches.append(
                SearchMatch("node", str(node.get("id", "")), str(node.get("name", "")), node_type)
            )

    if not node_types or "component" in node_types:
        for comp in _mappings(document.get("components")):
            if _contains(comp.get("name"), needle):
                hits += HIT_WEIGHTS["component.name"]
                matches.append(
                    SearchMatch("component", str(comp.get("id", "")), comp["name"], "COMPONENT")
                )

    if not node_types or "style" in node_types:
        for style in _mappings(document.get("styles")):
            weight = 0.0
            if _contains(style.get("name"), needle):
                weight += HIT_WEIGHTS["style.name"]
            if _contains(style.get("type"), needle):
                weight += HIT_WEIGHTS["style.type"]
            if weight:
                hits += weight
                matches.append(
                    SearchMatch(
                        "style", str(style.get("id", "")), str(style.get("name", "")), style.get("type")
                    )
                )

    return hits, matches


def relevance(hits: float, confidence: float) -> float:
    """Combine hit weight and confidence into a score in [0, 1)."""
    hit_score = 1 - 1 / (1 + hits)
    return round(HIT_SHARE * hit_score + (1 - HIT_SHARE) * confidence, 4)


def _confidence(document: Mapping[str, Any]) -> float:
    value = document.get("confidence", 0)
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0.0
    return min(1.0, max(0.0, float(value)))


async def search(
    store: ContextStore,
    query: str,
    *,
    file_keys: Sequence[str] = (),
    node_types: Sequence[str] = (),
    limit: int = 20,
) -> dict[str, Any]:
    """Search stored documents by case-insensitive substring.

    Args:
        store: Context store whose backing store is scanned.
        query: Text to look for in node, component and style names and types.
        file_keys: Restrict to documents of these files.
        node_types: Restrict node matches to these types. Components and
            styles take part only if empty or naming "component"/"style".
        limit: Max results to return.

    Returns:
        Envelope with results sorted by descending score.
    """
    needle = query.strip().lower() if isinstance(query, str) else ""
    if not needle:
        return {"success": False, "error": "query must not be empty"}
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        return {"success": False, "error": f"limit must be a positive integer, got {limit!r}"}

    try:
        rows = await store.scan(list(file_keys))
    except StoreIOError as e:
        logger.warning("Search scan failed: {}", e)
        return {"success": False, "error": str(e)}

    types = frozenset(t.lower() for t in node_types)
    hits_found: list[SearchHit] = []
    for key, document in rows:
        hits, matches = score_document(document, needle, types)
        if hits <= 0:
            continue
        confidence = _confidence(document)
        meta = document.get("metadata")
        file_name = meta.get("fileName") if isinstance(meta, Mapping) else None
        hits_found.append(
            SearchHit(
                file_key=key.file_key,
                node_id=key.node_id,
                score=relevance(hits, confidence),
                confidence=confidence,
                file_name=file_name,
                matches=tuple(matches),
            )
        )

    hits_found.sort(key=lambda h: h.score, reverse=True)
    results = [h.to_dict() for h in hits_found[:limit]]
    logger.debug("Search {!r}: {} of {} documents matched", needle, len(hits_found), len(rows))

    response: dict[str, Any] = {
        "success": True,
        "query": query,
        "totalResults": len(results),
        "results": results,
        "searched": len(rows),
    }
    if not results:
        response["suggestion"] = NO_RESULTS_SUGGESTION
    return response

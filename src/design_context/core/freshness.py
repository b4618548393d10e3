"""Staleness checks for stored context documents."""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from design_context.config import STALE_AFTER_SECONDS

# Numeric timestamps above this are taken as epoch milliseconds.
_EPOCH_MS_THRESHOLD = 10**11


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string, epoch seconds/milliseconds or datetime.

    Naive values are taken as UTC. Returns None for anything unparseable.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, bool):
        return None
    elif isinstance(value, int | float):
        seconds = value / 1000 if abs(value) >= _EPOCH_MS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, UTC)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def last_written(document: Mapping[str, Any]) -> datetime | None:
    """Return metadata.stored, falling back to metadata.updated."""
    meta = document.get("metadata")
    if not isinstance(meta, Mapping):
        return None
    return parse_timestamp(meta.get("stored") or meta.get("updated"))


def is_stale(
    document: Mapping[str, Any] | None,
    threshold: float = STALE_AFTER_SECONDS,
    *,
    now: datetime | None = None,
) -> bool:
    """Check if a document needs re-extraction.

    Args:
        document: Stored document, or None if nothing is stored.
        threshold: Seconds after the last write at which a document goes stale.
        now: Reference time; defaults to the current UTC time.

    Returns:
        True if the document is missing, has no parseable write timestamp,
        or was last written more than threshold seconds before now.
    """
    if document is None:
        return True
    written = last_written(document)
    if written is None:
        return True
    reference = now or datetime.now(UTC)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=UTC)
    return (reference - written).total_seconds() > threshold

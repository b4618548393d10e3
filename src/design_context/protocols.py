"""Protocols for the collaborators injected into the store and client."""

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from design_context.models.context import ContextKey


@runtime_checkable
class DocumentSourceProtocol(Protocol):
    """Protocol for sources of raw design documents."""

    async def fetch_document(self, file_key: str) -> dict[str, Any]:
        """Return the raw document tree for file_key."""
        ...


@runtime_checkable
class BackingStoreProtocol(Protocol):
    """Protocol for durable key-value stores of context documents."""

    async def get(self, key: ContextKey) -> dict[str, Any] | None:
        """Return the stored document, or None if absent."""
        ...

    async def put(self, key: ContextKey, document: dict[str, Any]) -> None:
        """Store document under key, replacing any previous value."""
        ...

    async def delete(self, key: ContextKey) -> None:
        """Remove key. Deleting a missing key is not an error."""
        ...

    async def scan(
        self, file_keys: Sequence[str] | None = None
    ) -> list[tuple[ContextKey, dict[str, Any]]]:
        """Return all stored documents, or only those of file_keys."""
        ...


@runtime_checkable
class ScreenshotServiceProtocol(Protocol):
    """Protocol for visual capture services."""

    async def capture(
        self,
        file_key: str,
        node_id: str | None = None,
        *,
        format: str = "png",
        scale: float = 1,
    ) -> dict[str, Any]:
        """Capture an image and return {url, format, scale, width, height}."""
        ...

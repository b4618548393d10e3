"""Design context extraction, caching and search."""

from design_context.client import DesignContextClient
from design_context.core.store.backing import SqliteBackingStore
from design_context.core.store.context_store import ContextStore
from design_context.models.context import ContextDocument, ContextKey
from design_context.protocols import (
    BackingStoreProtocol,
    DocumentSourceProtocol,
    ScreenshotServiceProtocol,
)

__all__ = [
    "BackingStoreProtocol",
    "ContextDocument",
    "ContextKey",
    "ContextStore",
    "DesignContextClient",
    "DocumentSourceProtocol",
    "ScreenshotServiceProtocol",
    "SqliteBackingStore",
]

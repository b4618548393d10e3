"""MCP server exposing design context extraction, lookup and search tools."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from design_context.api import FigmaApi, FigmaDocumentSource, FigmaScreenshotService
from design_context.client import DesignContextClient, resolve_file_key
from design_context.config import DEFAULT_MAX_CONCURRENT, resolve_db_path
from design_context.core.search.searcher import search
from design_context.core.store.backing import SqliteBackingStore
from design_context.core.store.context_store import ContextStore

MAX_BATCH_SIZE = 50
MAX_SEARCH_LIMIT = 100


# --- Core functions (testable without MCP context) ---


async def design_context_get(
    client: DesignContextClient,
    *,
    file: str,
    node_id: str | None = None,
    refresh_if_stale: bool = True,
) -> dict[str, Any]:
    """Return the context document of a file or node.

    Args:
        file: Figma file key or URL.
        node_id: Node-scoped context instead of the whole file.
        refresh_if_stale: Re-extract when the stored copy is missing or stale.
    """
    if refresh_if_stale:
        return await client.get_enriched_context(file, node_id)
    return await client.get_or_extract(file, node_id=node_id)


async def design_context_summary(client: DesignContextClient, *, file: str) -> dict[str, Any]:
    file_key = resolve_file_key(file)
    if file_key is None:
        return {"success": False, "error": f"Cannot resolve a file key from {file!r}"}
    return await client.store.get_summary(file_key)


async def design_context_search(
    client: DesignContextClient,
    *,
    query: str,
    file_keys: list[str] | None = None,
    node_types: list[str] | None = None,
    limit: int = 20,
) -> dict[str, Any]:
    limit = max(1, min(limit, MAX_SEARCH_LIMIT))
    return await search(
        client.store, query, file_keys=file_keys or (), node_types=node_types or (), limit=limit
    )


async def design_context_batch(
    client: DesignContextClient,
    *,
    files: list[str],
    max_concurrent: int = DEFAULT_MAX_CONCURRENT,
) -> dict[str, Any]:
    if len(files) > MAX_BATCH_SIZE:
        return {"success": False, "error": f"At most {MAX_BATCH_SIZE} files per batch."}
    return await client.process_batch(files, max_concurrent=max_concurrent)


async def design_context_delete(
    client: DesignContextClient, *, file: str, node_id: str | None = None
) -> dict[str, Any]:
    file_key = resolve_file_key(file)
    if file_key is None:
        return {"success": False, "error": f"Cannot resolve a file key from {file!r}"}
    return await client.store.delete(file_key, node_id=node_id)


# --- Server lifecycle ---


@dataclass
class ServerContext:
    client: DesignContextClient
    backend: SqliteBackingStore


def _build_client(backend: SqliteBackingStore) -> DesignContextClient:
    source = screenshots = None
    try:
        api = FigmaApi()
    except RuntimeError as e:
        logger.warning("{}; serving stored contexts only", e)
    else:
        source = FigmaDocumentSource(api)
        screenshots = FigmaScreenshotService(api)
    return DesignContextClient(ContextStore(backend), source, screenshots)


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Open the context database on startup, close on shutdown."""
    db_path = resolve_db_path()
    backend = SqliteBackingStore(db_path)
    logger.info("Serving design context from {}", db_path)
    try:
        yield ServerContext(client=_build_client(backend), backend=backend)
    finally:
        backend.close()


mcp_server = FastMCP(
    "design-context",
    instructions="""\
Design context is a normalized, confidence-scored summary of a Figma file:
its nodes (frames, components, text, vectors), shared styles and components.

## Typical flow

1. Call design_context_search_tool to find files or nodes already processed.
2. If nothing matches, call design_context_setup_tool with the Figma URL.
3. Call design_context_get_tool for the full document, or
   design_context_summary_tool when counts and confidence are enough.

Contexts older than an hour are re-extracted automatically by
design_context_get_tool unless refresh_if_stale is false.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def design_context_get_tool(
    ctx: Context,
    file: str,
    node_id: str | None = None,
    refresh_if_stale: bool = True,
) -> dict[str, Any]:
    """Get the design context of a Figma file or node.

    Extracts it first if it has never been processed.

    Args:
        file: Figma file key or URL.
        node_id: Node-scoped context instead of the whole file.
        refresh_if_stale: Re-extract when the stored copy is older than an hour.
    """
    return await design_context_get(
        _ctx(ctx).client, file=file, node_id=node_id, refresh_if_stale=refresh_if_stale
    )


@mcp_server.tool()
async def design_context_summary_tool(ctx: Context, file: str) -> dict[str, Any]:
    """Get confidence, counts and timestamps of a stored context.

    Args:
        file: Figma file key or URL.
    """
    return await design_context_summary(_ctx(ctx).client, file=file)


@mcp_server.tool()
async def design_context_search_tool(
    ctx: Context,
    query: str,
    file_keys: list[str] | None = None,
    node_types: list[str] | None = None,
    limit: int = 20,
) -> dict[str, Any]:
    """Search stored contexts by node, component and style names and types.

    Args:
        query: Case-insensitive text to look for.
        file_keys: Restrict to these files.
        node_types: Restrict to these node types, e.g. ["component", "text"].
        limit: Max results (1-100, default 20).
    """
    return await design_context_search(
        _ctx(ctx).client, query=query, file_keys=file_keys, node_types=node_types, limit=limit
    )


@mcp_server.tool()
async def design_context_extract_tool(
    ctx: Context, file: str, node_id: str | None = None
) -> dict[str, Any]:
    """Extract and store the design context of a Figma file, replacing any stored copy.

    Args:
        file: Figma file key or URL.
        node_id: Extract only this node's subtree.
    """
    return await _ctx(ctx).client.extract_and_store(file, node_id=node_id)


@mcp_server.tool()
async def design_context_batch_tool(
    ctx: Context, files: list[str], max_concurrent: int = DEFAULT_MAX_CONCURRENT
) -> dict[str, Any]:
    """Get or extract the context of several files.

    Args:
        files: Figma file keys or URLs (at most 50).
        max_concurrent: Files processed at once.
    """
    return await design_context_batch(_ctx(ctx).client, files=files, max_concurrent=max_concurrent)


@mcp_server.tool()
async def design_context_setup_tool(ctx: Context, file: str) -> dict[str, Any]:
    """Process a file, capture its screenshot and summarize it in one call.

    Args:
        file: Figma file key or URL.
    """
    return await _ctx(ctx).client.quick_setup(file)


@mcp_server.tool()
async def design_context_screenshot_tool(
    ctx: Context,
    file: str,
    node_id: str | None = None,
    format: str = "png",
    scale: float = 1,
) -> dict[str, Any]:
    """Render a file or node and attach the image URL to its stored context.

    Args:
        file: Figma file key or URL.
        node_id: Node to render; the first page when omitted.
        format: png, jpg, svg or pdf.
        scale: Render scale, up to 4.
    """
    return await _ctx(ctx).client.capture_screenshot(file, node_id, format=format, scale=scale)


@mcp_server.tool()
async def design_context_delete_tool(
    ctx: Context, file: str, node_id: str | None = None
) -> dict[str, Any]:
    """Delete a stored context.

    Args:
        file: Figma file key or URL.
        node_id: Delete only this node-scoped context.
    """
    return await design_context_delete(_ctx(ctx).client, file=file, node_id=node_id)


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from design_context.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")

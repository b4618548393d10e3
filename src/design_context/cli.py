"""CLI for design-context (extract, inspect, search, MCP server)."""

import asyncio
import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Any

import typer
from loguru import logger

from design_context.api import FigmaApi, FigmaDocumentSource, FigmaScreenshotService
from design_context.client import DesignContextClient, resolve_file_key
from design_context.config import DEFAULT_MAX_CONCURRENT, resolve_db_path
from design_context.core.search.searcher import search as search_contexts
from design_context.core.store.backing import SqliteBackingStore
from design_context.core.store.context_store import ContextStore
from design_context.logging_config import configure_logging

app = typer.Typer(help="Design context: extract, cache and search Figma design context.")

DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", "-d", help="Context database directory"),
]
JsonOption = Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


@contextmanager
def _open_client(
    data_dir: Path | None, *, with_api: bool = False, from_cache: bool = False
) -> Iterator[DesignContextClient]:
    """Open the context database and, if asked, the Figma API adapters."""
    backend = SqliteBackingStore(resolve_db_path(data_dir))
    source = screenshots = None
    if with_api:
        try:
            api = FigmaApi(from_cache=from_cache)
        except RuntimeError as e:
            logger.warning("{}; extraction is unavailable", e)
        else:
            source = FigmaDocumentSource(api)
            screenshots = FigmaScreenshotService(api)
    try:
        yield DesignContextClient(ContextStore(backend), source, screenshots)
    finally:
        backend.close()


def _finish(result: dict[str, Any], output_json: bool, render: Any = None) -> None:
    """Print a result envelope and exit non-zero on failure."""
    if output_json or render is None:
        typer.echo(json.dumps(result, indent=2, default=str))
    elif result["success"]:
        render(result)
    if not result["success"]:
        if not output_json:
            typer.echo(f"Error: {result.get('error', 'unknown error')}", err=True)
        raise typer.Exit(1)


def _require_key(source: str) -> str:
    file_key = resolve_file_key(source)
    if file_key is None:
        typer.echo(f"Not a Figma file key or URL: {source!r}", err=True)
        raise typer.Exit(2)
    return file_key


@app.command()
def extract(
    source: str = typer.Argument(..., help="Figma file key or URL"),
    node_id: Annotated[str | None, typer.Option("--node", "-n", help="Node to extract")] = None,
    no_store: bool = typer.Option(False, "--no-store", help="Do not persist the result"),
    cache: bool = typer.Option(False, "--cache", help="Use the on-disk API response cache"),
    data_dir: DataDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """Extract a file's design context and store it."""
    file_key = _require_key(source)
    with _open_client(data_dir, with_api=True, from_cache=cache) as client:
        result = asyncio.run(
            client.extract_and_store(file_key, node_id=node_id, store_result=not no_store)
        )

    def render(r: dict[str, Any]) -> None:
        context = r["data"]["context"]
        typer.echo(
            f"{file_key}: {len(context['nodes'])} nodes, {len(context['components'])} components, "
            f"{len(context['styles'])} styles, confidence {context['confidence']}"
        )
        written = r["data"].get("nodeContexts")
        if written:
            typer.echo(f"  node contexts stored: {written['written']}")

    _finish(result, output_json, render)


@app.command()
def get(
    source: str = typer.Argument(..., help="Figma file key or URL"),
    node_id: Annotated[str | None, typer.Option("--node", "-n", help="Node-scoped context")] = None,
    refresh: bool = typer.Option(False, "--refresh", "-r", help="Re-extract if missing or stale"),
    data_dir: DataDirOption = None,
) -> None:
    """Print a stored context document as JSON."""
    file_key = _require_key(source)
    with _open_client(data_dir, with_api=refresh) as client:
        if refresh:
            result = asyncio.run(client.get_enriched_context(file_key, node_id))
        else:
            result = asyncio.run(client.store.get(file_key, node_id, use_cache=False))
    if result["success"] and not refresh and not result["found"]:
        typer.echo(f"No stored context for {file_key}", err=True)
        raise typer.Exit(1)
    _finish(result, output_json=True)


@app.command()
def summary(
    source: str = typer.Argument(..., help="Figma file key or URL"),
    data_dir: DataDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """Show counts and timestamps of a stored context."""
    file_key = _require_key(source)
    with _open_client(data_dir) as client:
        result = asyncio.run(client.store.get_summary(file_key))
    if result["success"] and not result.get("found"):
        typer.echo(f"No stored context for {file_key}", err=True)
        raise typer.Exit(1)

    def render(r: dict[str, Any]) -> None:
        data = r["data"]
        typer.echo(f"{data['fileKey']}  confidence {data['confidence']}")
        typer.echo(
            f"  {data['nodeCount']} nodes, {data['componentCount']} components, "
            f"{data['styleCount']} styles, {data['extractorCount']} extractors"
        )
        for name, value in data["timestamps"].items():
            if value:
                typer.echo(f"  {name}: {value}")

    _finish(result, output_json, render)


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    file_keys: Annotated[
        list[str] | None,
        typer.Option("--file", "-f", help="Restrict to a file key (repeatable)"),
    ] = None,
    node_types: Annotated[
        list[str] | None,
        typer.Option("--type", "-t", help="Restrict to a node type (repeatable)"),
    ] = None,
    limit: int = typer.Option(20, "--limit", "-n", help="Max results"),
    data_dir: DataDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """Search stored contexts by node, component and style names."""
    with _open_client(data_dir) as client:
        result = asyncio.run(
            search_contexts(
                client.store,
                query,
                file_keys=file_keys or (),
                node_types=node_types or (),
                limit=limit,
            )
        )

    def render(r: dict[str, Any]) -> None:
        typer.echo(f"Found {r['totalResults']} results in {r['searched']} documents:\n")
        for hit in r["results"]:
            scope = f"{hit['fileKey']}/{hit['nodeId']}" if hit["nodeId"] else hit["fileKey"]
            typer.echo(f"  [{hit['fileName'] or scope}] score {hit['score']}  ({scope})")
            for match in hit["matches"][:5]:
                typer.echo(f"    {match['kind']}: {match['name']}  id={match['id']}")
            typer.echo()
        if r.get("suggestion"):
            typer.echo(r["suggestion"])

    _finish(result, output_json, render)


@app.command()
def delete(
    source: str = typer.Argument(..., help="Figma file key or URL"),
    node_id: Annotated[str | None, typer.Option("--node", "-n", help="Node-scoped context")] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Delete a stored context."""
    file_key = _require_key(source)
    with _open_client(data_dir) as client:
        result = asyncio.run(client.store.delete(file_key, node_id=node_id))
    _finish(result, False, lambda r: typer.echo(f"Deleted {file_key}"))


@app.command()
def batch(
    sources: list[str] = typer.Argument(..., help="Figma file keys or URLs"),
    max_concurrent: int = typer.Option(
        DEFAULT_MAX_CONCURRENT, "--max-concurrent", "-c", help="Files processed at once"
    ),
    delay: float = typer.Option(0.0, "--delay", help="Seconds to wait between chunks"),
    data_dir: DataDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """Get or extract the context of many files."""
    with _open_client(data_dir, with_api=True) as client:
        result = asyncio.run(
            client.process_batch(sources, max_concurrent=max_concurrent, delay=delay)
        )

    def render(r: dict[str, Any]) -> None:
        for item in r["results"]:
            if item["success"]:
                origin = "cached" if not item["extracted"] else "extracted"
                typer.echo(f"  ok    {item['fileKey']}  confidence {item['confidence']} ({origin})")
            else:
                typer.echo(f"  FAIL  {item['fileKey']}  {item['error']}")
        typer.echo(f"\n{r['successful']}/{r['total']} succeeded")

    _finish(result, output_json, render)
    if result["failed"]:
        raise typer.Exit(1)


@app.command()
def setup(
    source: str = typer.Argument(..., help="Figma file key or URL"),
    data_dir: DataDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """Process a file, capture a screenshot and print its summary."""
    file_key = _require_key(source)
    with _open_client(data_dir, with_api=True) as client:
        result = asyncio.run(client.quick_setup(file_key))

    def render(r: dict[str, Any]) -> None:
        data = r["data"]
        for step, done in data["steps"].items():
            mark = "ok  " if done else "FAIL"
            error = data["errors"].get(step, "")
            typer.echo(f"  {mark}  {step}  {error}".rstrip())
        if data["summary"]:
            typer.echo(f"\nconfidence {data['summary']['confidence']}, {data['summary']['nodeCount']} nodes")

    _finish(result, output_json, render)


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from design_context.mcp.server import run_mcp_server

    run_mcp_server()

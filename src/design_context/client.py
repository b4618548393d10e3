"""Client facade: extraction, get-or-extract, refresh and batch ingestion."""

import asyncio
import re
from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger

from design_context.config import (
    DEFAULT_MAX_CONCURRENT,
    IO_TIMEOUT_SECONDS,
    MAX_DEPTH,
    SCREENSHOT_CONFIDENCE,
    STALE_AFTER_SECONDS,
)
from design_context.core.extract.assembler import build_context
from design_context.core.extract.walker import ContextAccumulator, DeferredWrite, find_node
from design_context.core.freshness import is_stale
from design_context.core.store.context_store import ContextStore
from design_context.core.timeouts import call_with_timeout
from design_context.errors import (
    DesignContextError,
    DocumentSourceError,
    ExtractionError,
    ScreenshotError,
    SourceTimeoutError,
)
from design_context.models.context import ContextDocument
from design_context.protocols import DocumentSourceProtocol, ScreenshotServiceProtocol

_FIGMA_URL_RE = re.compile(r"figma\.com/(?:file|design|proto)/([A-Za-z0-9_-]+)")
_FILE_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")

SCREENSHOT_FORMATS = frozenset({"png", "jpg", "svg", "pdf"})
MAX_SCREENSHOT_SCALE = 4


def resolve_file_key(source: Any) -> str | None:
    """Return the file key of a Figma URL or bare key, or None if neither."""
    if not isinstance(source, str):
        return None
    source = source.strip()
    match = _FIGMA_URL_RE.search(source)
    if match:
        return match.group(1)
    return source if _FILE_KEY_RE.match(source) else None


class DesignContextClient:
    """The entry point other subsystems use to obtain design context.

    Every public coroutine returns a ``{"success": ..., ...}`` envelope and
    never raises for source, store or screenshot failures.
    """

    def __init__(
        self,
        store: ContextStore,
        source: DocumentSourceProtocol | None = None,
        screenshots: ScreenshotServiceProtocol | None = None,
        *,
        max_depth: int = MAX_DEPTH,
        io_timeout: float | None = IO_TIMEOUT_SECONDS,
        stale_after: float = STALE_AFTER_SECONDS,
    ) -> None:
        self.store = store
        self.source = source
        self.screenshots = screenshots
        self.max_depth = max_depth
        self.io_timeout = io_timeout
        self.stale_after = stale_after

    async def _fetch(self, file_key: str) -> dict[str, Any]:
        if self.source is None:
            msg = "No document source configured"
            raise DocumentSourceError(msg)
        return await call_with_timeout(
            self.source.fetch_document(file_key),
            timeout=self.io_timeout,
            error_cls=SourceTimeoutError,
            what=f"fetch {file_key}",
        )

    async def _extract(
        self, file_key: str, node_id: str | None
    ) -> tuple[ContextDocument, ContextAccumulator]:
        raw = await self._fetch(file_key)
        if node_id is not None:
            subtree = find_node(raw.get("document") if isinstance(raw, Mapping) else None, node_id)
            if subtree is None:
                msg = f"Node {node_id!r} not found in file {file_key!r}"
                raise ExtractionError(msg)
            raw = {**raw, "document": subtree}
        return build_context(raw, file_key=file_key, node_id=node_id, max_depth=self.max_depth)

    async def _flush_deferred(
        self, file_key: str, node_id: str | None, writes: list[DeferredWrite]
    ) -> dict[str, Any]:
        """Store node-scoped documents; failures are logged, never fatal."""
        written = 0
        failed: list[str] = []
        for write in writes:
            if write.node_id == node_id:
                continue
            result = await self.store.store(file_key, write.document, node_id=write.node_id)
            if result["success"]:
                written += 1
            else:
                logger.warning(
                    "Node context {} of {} not stored: {}", write.node_id, file_key, result["error"]
                )
                failed.append(write.node_id)
        return {"written": written, "failed": failed}

    async def extract_and_store(
        self, source: str, *, node_id: str | None = None, store_result: bool = True
    ) -> dict[str, Any]:
        """Run the extraction pipeline on one file and optionally persist it.

        Node-scoped documents for significant frames, components and groups
        are written after the main document.
        """
        file_key = resolve_file_key(source)
        if file_key is None:
            return {"success": False, "error": f"Cannot resolve a file key from {source!r}"}

        try:
            document, acc = await self._extract(file_key, node_id)
        except DesignContextError as e:
            logger.warning("Extraction of {} failed: {}", file_key, e)
            return {"success": False, "error": str(e)}
        except Exception as e:
            logger.opt(exception=True).warning("Extraction of {} raised", file_key)
            return {"success": False, "error": f"{type(e).__name__}: {e}"}

        context = document.to_dict()
        data: dict[str, Any] = {
            "context": context,
            "fileKey": file_key,
            "nodeId": node_id,
            "failedNodes": list(acc.failed_node_ids),
        }
        if store_result:
            stored = await self.store.store(file_key, context, node_id=node_id)
            if not stored["success"]:
                return {"success": False, "error": stored["error"]}
            data["context"] = stored["data"]
            data["nodeContexts"] = await self._flush_deferred(file_key, node_id, acc.deferred_writes)

        logger.info(
            "Extracted {}: {} nodes, confidence {}", file_key, len(document.nodes), document.confidence
        )
        return {"success": True, "data": data}

    async def get_or_extract(self, source: str, *, node_id: str | None = None) -> dict[str, Any]:
        """Return the stored context, extracting it on a miss or read failure."""
        file_key = resolve_file_key(source)
        if file_key is None:
            return {"success": False, "error": f"Cannot resolve a file key from {source!r}"}

        got = await self.store.get(file_key, node_id)
        if got["success"] and got["found"]:
            return {
                "success": True,
                "data": {
                    "context": got["data"],
                    "fileKey": file_key,
                    "nodeId": node_id,
                    "cached": got["cached"],
                    "extracted": False,
                },
            }
        if not got["success"]:
            logger.warning("Read of {} failed, extracting instead: {}", file_key, got["error"])

        result = await self.extract_and_store(file_key, node_id=node_id)
        if result["success"]:
            result["data"].update(cached=False, extracted=True)
        return result

    async def get_enriched_context(
        self, source: str, node_id: str | None = None
    ) -> dict[str, Any]:
        """Return the stored context, re-extracting it when missing or stale.

        A stale copy whose refresh fails is still returned, with the failure
        under refreshError.
        """
        file_key = resolve_file_key(source)
        if file_key is None:
            return {"success": False, "error": f"Cannot resolve a file key from {source!r}"}

        got = await self.store.get(file_key, node_id)
        if got["success"] and got["found"]:
            if not is_stale(got["data"], self.stale_after, now=self.store.now()):
                return {
                    "success": True,
                    "data": {"context": got["data"], "fileKey": file_key, "refreshed": None},
                }
            reason = "stale"
        else:
            reason = "missing" if got["success"] else "unreadable"

        logger.info("Context of {} is {}, extracting", file_key, reason)
        result = await self.extract_and_store(file_key, node_id=node_id)
        if result["success"]:
            result["data"]["refreshed"] = reason
        elif reason == "stale":
            logger.warning("Refresh of {} failed, serving stored copy: {}", file_key, result["error"])
            return {
                "success": True,
                "data": {
                    "context": got["data"],
                    "fileKey": file_key,
                    "refreshed": None,
                    "refreshError": result["error"],
                },
            }
        return result

    def _batch_item(self, file_key: str, outcome: Any) -> dict[str, Any]:
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            logger.opt(exception=outcome).warning("Batch item {} raised", file_key)
            return {"fileKey": file_key, "success": False, "error": str(outcome) or type(outcome).__name__}
        if not outcome["success"]:
            return {"fileKey": file_key, "success": False, "error": outcome["error"]}
        data = outcome["data"]
        context = data.get("context") or {}
        return {
            "fileKey": file_key,
            "success": True,
            "confidence": context.get("confidence"),
            "nodeCount": len(context.get("nodes") or []),
            "cached": data.get("cached", False),
            "extracted": data.get("extracted", False),
        }

    async def process_batch(
        self,
        sources: Iterable[str],
        *,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        cancel_event: asyncio.Event | None = None,
        delay: float = 0.0,
    ) -> dict[str, Any]:
        """Get or extract many files, chunk by chunk.

        Chunks of max_concurrent keys run one after another; keys within a
        chunk run concurrently. Every input yields exactly one result, in
        input order. Once cancel_event is set, keys of chunks not yet started
        are reported as cancelled.

        Args:
            sources: File keys or Figma URLs.
            max_concurrent: Chunk size; values below 1 are treated as 1.
            cancel_event: Optional event that stops further chunks.
            delay: Seconds to sleep between chunks.
        """
        keys = list(sources)
        size = max(1, int(max_concurrent))
        results: list[dict[str, Any]] = []
        cancelled = False

        for start in range(0, len(keys), size):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                results.extend(
                    {"fileKey": k, "success": False, "error": "cancelled"} for k in keys[start:]
                )
                logger.info("Batch cancelled, {} keys not processed", len(keys) - start)
                break

            chunk = keys[start : start + size]
            outcomes = await asyncio.gather(
                *(self.get_or_extract(k) for k in chunk), return_exceptions=True
            )
            results.extend(self._batch_item(k, o) for k, o in zip(chunk, outcomes, strict=True))
            logger.debug("Batch chunk {}-{} done", start, start + len(chunk) - 1)

            if delay and start + size < len(keys):
                await asyncio.sleep(delay)

        successful = sum(1 for r in results if r["success"])
        return {
            "success": True,
            "total": len(keys),
            "successful": successful,
            "failed": len(results) - successful,
            "cancelled": cancelled,
            "results": results,
        }

    async def capture_screenshot(
        self,
        source: str,
        node_id: str | None = None,
        *,
        format: str = "png",
        scale: float = 1,
        store_result: bool = True,
    ) -> dict[str, Any]:
        """Capture an image of a file or node and attach it to the stored context."""
        file_key = resolve_file_key(source)
        if file_key is None:
            return {"success": False, "error": f"Cannot resolve a file key from {source!r}"}
        if format not in SCREENSHOT_FORMATS:
            return {"success": False, "error": f"Unsupported screenshot format {format!r}"}
        if not 0 < scale <= MAX_SCREENSHOT_SCALE:
            return {"success": False, "error": f"Screenshot scale must be in (0, {MAX_SCREENSHOT_SCALE}]"}
        if self.screenshots is None:
            return {"success": False, "error": "No screenshot service configured"}

        try:
            shot = await call_with_timeout(
                self.screenshots.capture(file_key, node_id, format=format, scale=scale),
                timeout=self.io_timeout,
                error_cls=ScreenshotError,
                what=f"screenshot {file_key}",
            )
        except ScreenshotError as e:
            logger.warning("Screenshot of {} failed: {}", file_key, e)
            return {"success": False, "error": str(e)}
        except Exception as e:
            logger.opt(exception=True).warning("Screenshot of {} raised", file_key)
            return {"success": False, "error": f"{type(e).__name__}: {e}"}

        screenshot = {**shot, "confidence": SCREENSHOT_CONFIDENCE}
        if store_result:
            updated = await self.store.update(file_key, {"screenshot": screenshot}, node_id=node_id)
            if not updated["success"]:
                return {"success": False, "error": updated["error"]}
        return {"success": True, "data": {"fileKey": file_key, "nodeId": node_id, "screenshot": screenshot}}

    async def quick_setup(self, source: str) -> dict[str, Any]:
        """Process a file, capture its screenshot and summarize it.

        Each step runs regardless of the others; failures are reported per
        step. The call succeeds if any step did.
        """
        file_key = resolve_file_key(source)
        if file_key is None:
            return {"success": False, "error": f"Cannot resolve a file key from {source!r}"}

        steps = {"fileProcessed": False, "screenshotCaptured": False, "summaryGenerated": False}
        errors: dict[str, str] = {}

        processed = await self.extract_and_store(file_key)
        steps["fileProcessed"] = processed["success"]
        if not processed["success"]:
            errors["fileProcessed"] = processed["error"]

        shot = await self.capture_screenshot(file_key)
        steps["screenshotCaptured"] = shot["success"]
        if not shot["success"]:
            errors["screenshotCaptured"] = shot["error"]

        summary = await self.store.get_summary(file_key)
        steps["summaryGenerated"] = bool(summary["success"] and summary.get("found"))
        if not summary["success"]:
            errors["summaryGenerated"] = summary["error"]
        elif not summary.get("found"):
            errors["summaryGenerated"] = f"No stored context for {file_key!r}"

        logger.info("Quick setup of {}: {}", file_key, steps)
        result: dict[str, Any] = {
            "success": any(steps.values()),
            "data": {
                "fileKey": file_key,
                "steps": steps,
                "errors": errors,
                "summary": summary.get("data"),
            },
        }
        if not result["success"]:
            result["error"] = "; ".join(f"{step}: {msg}" for step, msg in errors.items())
        return result

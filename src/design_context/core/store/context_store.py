"""Context persistence: local TTL cache over an authoritative backing store."""

import copy
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any, TypeVar

from loguru import logger

from design_context.config import CACHE_TTL_SECONDS, IO_TIMEOUT_SECONDS
from design_context.core.store.cache import TTLCache
from design_context.core.timeouts import call_with_timeout
from design_context.errors import StoreIOError, StoreTimeoutError
from design_context.models.context import ContextKey
from design_context.protocols import BackingStoreProtocol

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _validate(document: Any) -> str | None:
    """Return an error message if document cannot be stored as is."""
    if not isinstance(document, Mapping):
        return f"document must be a mapping, got {type(document).__name__}"
    confidence = document.get("confidence")
    if confidence is not None and (
        isinstance(confidence, bool)
        or not isinstance(confidence, int | float)
        or not 0 <= confidence <= 1
    ):
        return f"confidence must be a number within [0, 1], got {confidence!r}"
    if document.get("metadata") is not None and not isinstance(document["metadata"], Mapping):
        return "metadata must be a mapping"
    return None


class ContextStore:
    """Read, write, merge and delete context documents.

    Every public operation returns a ``{"success": ..., ...}`` envelope.
    Backing store failures and timeouts become ``success: False``; they are
    not retried here. A missing document is ``success: True, found: False``.
    """

    def __init__(
        self,
        backend: BackingStoreProtocol,
        *,
        cache_ttl: float = CACHE_TTL_SECONDS,
        io_timeout: float | None = IO_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
        cache_clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.backend = backend
        self.io_timeout = io_timeout
        self._clock = clock
        self._cache = TTLCache(cache_ttl, clock=cache_clock)

    def now(self) -> datetime:
        return self._clock()

    async def _io(self, awaitable: Awaitable[T], what: str) -> T:
        try:
            return await call_with_timeout(
                awaitable,
                timeout=self.io_timeout,
                error_cls=StoreTimeoutError,
                what=what,
            )
        except StoreIOError:
            raise
        except OSError as e:
            msg = f"{what} failed: {e}"
            raise StoreIOError(msg) from e
        except Exception as e:
            logger.opt(exception=True).warning("Backing store raised during {}", what)
            msg = f"{what} failed: {type(e).__name__}: {e}"
            raise StoreIOError(msg) from e

    async def get(
        self, file_key: str, node_id: str | None = None, *, use_cache: bool = True
    ) -> dict[str, Any]:
        """Fetch a document, from the cache when a fresh copy is held."""
        try:
            key = ContextKey(file_key, node_id)
        except ValueError as e:
            return {"success": False, "error": str(e)}

        if use_cache:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Cache hit for {}", key.cache_key)
                return {"success": True, "found": True, "cached": True, "data": cached}

        try:
            document = await self._io(self.backend.get(key), f"get {key.cache_key}")
        except StoreIOError as e:
            logger.warning("Read of {} failed: {}", key.cache_key, e)
            return {"success": False, "error": str(e)}

        if document is None:
            return {"success": True, "found": False, "cached": False, "data": None}

        if use_cache:
            self._cache.set(key, document)
        return {"success": True, "found": True, "cached": False, "data": document}

    async def store(
        self,
        file_key: str,
        document: Mapping[str, Any],
        *,
        node_id: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Write document in full, replacing whatever was stored under the key."""
        try:
            key = ContextKey(file_key, node_id)
        except ValueError as e:
            return {"success": False, "error": str(e)}
        if error := _validate(document):
            return {"success": False, "error": error}

        record = copy.deepcopy(dict(document))
        record["metadata"] = {
            **(record.get("metadata") or {}),
            **(metadata or {}),
            "stored": self.now().isoformat(),
        }
        return await self._write(key, record)

    async def update(
        self,
        file_key: str,
        partial: Mapping[str, Any],
        *,
        node_id: str | None = None,
        metadata: Mapping[str, Any] | None = None,
        merge: bool = True,
    ) -> dict[str, Any]:
        """Apply partial to the stored document.

        With merge=True, top-level fields of partial replace the stored ones
        (lists wholesale, never element by element), fields absent from
        partial are kept, and metadata is merged key by key. A missing
        document is written as by store(). With merge=False the stored
        document is replaced by partial.
        """
        try:
            key = ContextKey(file_key, node_id)
        except ValueError as e:
            return {"success": False, "error": str(e)}
        if error := _validate(partial):
            return {"success": False, "error": error}

        update = copy.deepcopy(dict(partial))
        if merge:
            try:
                existing = await self._io(self.backend.get(key), f"get {key.cache_key}")
            except StoreIOError as e:
                logger.warning("Read before merge of {} failed: {}", key.cache_key, e)
                return {"success": False, "error": str(e)}
            if existing is None:
                logger.debug("Nothing stored under {}, update becomes store", key.cache_key)
                return await self.store(file_key, partial, node_id=node_id, metadata=metadata)
            record = {**existing, **update}
            base_meta = existing.get("metadata") or {}
        else:
            record = update
            base_meta = {}

        record["metadata"] = {
            **base_meta,
            **(update.get("metadata") or {}),
            **(metadata or {}),
            "updated": self.now().isoformat(),
        }
        return await self._write(key, record)

    async def _write(self, key: ContextKey, record: dict[str, Any]) -> dict[str, Any]:
        try:
            await self._io(self.backend.put(key, record), f"put {key.cache_key}")
        except StoreIOError as e:
            logger.warning("Write of {} failed: {}", key.cache_key, e)
            return {"success": False, "error": str(e)}
        self._cache.set(key, record)
        logger.debug("Stored {} (confidence {})", key.cache_key, record.get("confidence"))
        return {"success": True, "data": copy.deepcopy(record)}

    async def delete(self, file_key: str, *, node_id: str | None = None) -> dict[str, Any]:
        """Remove a document; deleting a missing one succeeds."""
        try:
            key = ContextKey(file_key, node_id)
        except ValueError as e:
            return {"success": False, "error": str(e)}

        try:
            await self._io(self.backend.delete(key), f"delete {key.cache_key}")
        except StoreIOError as e:
            logger.warning("Delete of {} failed: {}", key.cache_key, e)
            return {"success": False, "error": str(e)}
        self._cache.evict(key)
        return {
            "success": True,
            "data": {"fileKey": file_key, "nodeId": node_id, "deleted": self.now().isoformat()},
        }

    async def get_summary(self, file_key: str) -> dict[str, Any]:
        """Return counts and timestamps of a file's context, without its arrays."""
        result = await self.get(file_key)
        if not result["success"] or not result["found"]:
            return result

        document = result["data"]
        meta = document.get("metadata") or {}
        return {
            "success": True,
            "found": True,
            "data": {
                "fileKey": file_key,
                "confidence": document.get("confidence", 0),
                "nodeCount": len(document.get("nodes") or []),
                "componentCount": len(document.get("components") or []),
                "styleCount": len(document.get("styles") or []),
                "extractorCount": len(document.get("extractors") or []),
                "timestamps": {
                    "stored": meta.get("stored"),
                    "updated": meta.get("updated"),
                    "lastModified": meta.get("lastModified"),
                },
            },
        }

    async def scan(
        self, file_keys: Sequence[str] | None = None
    ) -> list[tuple[ContextKey, dict[str, Any]]]:
        """Return stored documents straight from the backing store.

        Raises:
            StoreIOError: If the backing store fails or times out.
        """
        return await self._io(self.backend.scan(file_keys or None), "scan")

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_stats(self) -> dict[str, Any]:
        stats = self._cache.stats()
        return {**stats, "keys": sorted(key.cache_key for key in stats["keys"])}

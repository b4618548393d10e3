"""Figma REST API client with optional caching, and the adapters built on it."""

import asyncio
import hashlib
import json
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import requests
from loguru import logger

from design_context.config import (
    API_CACHE_PREFIX,
    FIGMA_API_BASE,
    FIGMA_TOKEN_ENV,
    FIGMA_TOKEN_FILES,
    IO_TIMEOUT_SECONDS,
)
from design_context.errors import DocumentSourceError, ScreenshotError


class FigmaApi:
    """Encapsulated Figma API with caching."""

    def __init__(self, *, from_cache: bool = False, timeout: float = IO_TIMEOUT_SECONDS) -> None:
        self.from_cache = from_cache
        self.timeout = timeout
        self.sess = requests.Session()

        token_name: str | None = None
        env_token = os.environ.get(FIGMA_TOKEN_ENV, "").strip()
        if env_token:
            self.api_token = env_token
            token_name = f"${FIGMA_TOKEN_ENV}"
        else:
            for token_path in FIGMA_TOKEN_FILES:
                try:
                    self.api_token = token_path.read_text(encoding="utf-8").strip()
                    token_name = str(token_path)
                    break
                except FileNotFoundError:
                    pass
            else:
                msg = (
                    f"Cannot find figma token: set ${FIGMA_TOKEN_ENV} "
                    f"or create one of {FIGMA_TOKEN_FILES!r}"
                )
                raise RuntimeError(msg)

        self.api_cache_prefix: str | None = API_CACHE_PREFIX if from_cache else None

        logger.debug(
            "API ready: token from {!r}, from_cache {!r}, api_cache_prefix {!r}",
            token_name,
            self.from_cache,
            self.api_cache_prefix,
        )

        if self.api_cache_prefix:
            Path(self.api_cache_prefix).parent.mkdir(parents=True, exist_ok=True)

    def _cache_name(self, path: str, params: dict[str, Any]) -> str | None:
        if not self.api_cache_prefix:
            return None
        name = path.strip("/")
        if params:
            params_str = json.dumps(params, sort_keys=True, separators=(",", ":"))
            if len(params_str) > 64:
                params_str = hashlib.sha1(params_str.encode("utf-8")).hexdigest()
            name += "--" + params_str
        return self.api_cache_prefix + name.replace("/", "--")

    def call(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """GET a Figma API path, return json."""
        params = params or {}
        cache_name = self._cache_name(path, params)
        if cache_name and Path(cache_name).exists():
            logger.debug("Filled from cache: {!r}", cache_name)
            with open(cache_name, encoding="utf-8") as f:
                return json.load(f)  # type: ignore[no-any-return]

        logger.debug("Making request: {!r} {}", path, repr(params)[:32])

        r = self.sess.get(
            f"{FIGMA_API_BASE}/{path.lstrip('/')}",
            params=params,
            headers={"X-Figma-Token": self.api_token},
            timeout=self.timeout,
        )
        r.raise_for_status()
        rv: dict[str, Any] = r.json()
        if rv.get("err") or (isinstance(rv.get("status"), int) and rv["status"] >= 400):
            msg = f"API call failed: ({path!r}, {params!r}) -> ({rv.get('status')!r}, {rv.get('err')!r})"
            raise RuntimeError(msg)
        if cache_name:
            with open(cache_name, "w", encoding="utf-8") as f:
                f.write(r.text)

        return rv

    def get_file(self, file_key: str) -> dict[str, Any]:
        return self.call(f"files/{file_key}")

    def get_nodes(self, file_key: str, node_ids: list[str]) -> dict[str, Any]:
        return self.call(f"files/{file_key}/nodes", {"ids": ",".join(node_ids)})

    def get_images(
        self, file_key: str, node_ids: list[str], *, format: str = "png", scale: float = 1
    ) -> dict[str, Any]:
        return self.call(
            f"images/{file_key}",
            {"ids": ",".join(node_ids), "format": format, "scale": scale},
        )


class FigmaDocumentSource:
    """Document source reading whole files through FigmaApi."""

    def __init__(self, api: FigmaApi) -> None:
        self.api = api

    async def fetch_document(self, file_key: str) -> dict[str, Any]:
        try:
            return await asyncio.to_thread(self.api.get_file, file_key)
        except (requests.RequestException, RuntimeError, ValueError) as e:
            msg = f"Cannot fetch figma file {file_key!r}: {e}"
            raise DocumentSourceError(msg) from e


class FigmaScreenshotService:
    """Screenshot service rendering nodes through the Figma images endpoint.

    Without a node id the file's first page is rendered.
    """

    def __init__(self, api: FigmaApi) -> None:
        self.api = api

    def _capture(self, file_key: str, node_id: str | None, format: str, scale: float) -> dict[str, Any]:
        target = node_id
        if target is None:
            pages = self.api.call(f"files/{file_key}", {"depth": 1})
            children = (pages.get("document") or {}).get("children") or []
            if not children:
                msg = f"File {file_key!r} has no pages to render"
                raise ScreenshotError(msg)
            target = children[0]["id"]

        images = self.api.get_images(file_key, [target], format=format, scale=scale)
        url = (images.get("images") or {}).get(target)
        if not url:
            msg = f"Figma rendered no image for {file_key!r} node {target!r}"
            raise ScreenshotError(msg)

        width = height = None
        nodes = self.api.get_nodes(file_key, [target]).get("nodes") or {}
        document = (nodes.get(target) or {}).get("document") or {}
        box = document.get("absoluteBoundingBox")
        if isinstance(box, dict):
            width = box.get("width")
            height = box.get("height")
            if width is not None and height is not None:
                width, height = width * scale, height * scale

        return {
            "url": url,
            "format": format,
            "scale": scale,
            "width": width,
            "height": height,
            "nodeId": target,
            "generated": datetime.now(UTC).isoformat(),
        }

    async def capture(
        self,
        file_key: str,
        node_id: str | None = None,
        *,
        format: str = "png",
        scale: float = 1,
    ) -> dict[str, Any]:
        try:
            return await asyncio.to_thread(self._capture, file_key, node_id, format, scale)
        except (requests.RequestException, RuntimeError, ValueError, KeyError) as e:
            msg = f"Screenshot of {file_key!r} failed: {e}"
            raise ScreenshotError(msg) from e

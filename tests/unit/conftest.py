"""Shared test fixtures."""

import copy
from datetime import UTC, datetime
from typing import Any

import pytest

from design_context.client import DesignContextClient
from design_context.core.store.context_store import ContextStore
from tests.unit.fakes import FakeBackingStore, FakeClock, FakeDocumentSource, FakeScreenshotService

RED = {"r": 1, "g": 0, "b": 0, "a": 1}

FIGMA_FILE: dict[str, Any] = {
    "name": "Design System",
    "lastModified": "2026-10-01T12:00:00Z",
    "version": "42",
    "thumbnailUrl": "https://thumbs.example/ds.png",
    "editorType": "figma",
    "document": {
        "id": "0:0",
        "type": "DOCUMENT",
        "name": "Document",
        "children": [
            {
                "id": "0:1",
                "type": "CANVAS",
                "name": "Page 1",
                "children": [
                    {
                        "id": "1:1",
                        "type": "FRAME",
                        "name": "Header",
                        "layoutMode": "HORIZONTAL",
                        "itemSpacing": 8,
                        "paddingLeft": 16,
                        "paddingTop": 4,
                        "absoluteBoundingBox": {"x": 0, "y": 0, "width": 1440, "height": 80},
                        "children": [
                            {
                                "id": "1:2",
                                "type": "TEXT",
                                "name": "Title",
                                "characters": "Hello",
                                "style": {"fontFamily": "Inter", "fontSize": 24, "fontWeight": 700},
                                "fills": [{"type": "SOLID", "color": RED}],
                            },
                            {"id": "1:3", "type": "VECTOR", "name": "Logo", "strokeWeight": 2},
                        ],
                    },
                    {
                        "id": "2:1",
                        "type": "COMPONENT",
                        "name": "PrimaryButton",
                        "description": "Main call to action",
                        "children": [
                            {
                                "id": "2:2",
                                "type": "RECTANGLE",
                                "name": "Background",
                                "fills": [{"type": "SOLID", "color": RED, "opacity": 0.5}],
                            },
                            {"id": "2:3", "type": "TEXT", "name": "Label", "characters": "Click"},
                        ],
                    },
                    {"id": "3:1", "type": "INSTANCE", "name": "Buy button", "componentId": "2:1"},
                ],
            }
        ],
    },
    "components": {
        "2:1": {"name": "PrimaryButton", "description": "Main call to action"},
    },
    "styles": {
        "S:1": {"name": "Brand/Red", "styleType": "FILL", "description": "Primary brand color"},
    },
}

HEADER_TREE: dict[str, Any] = {
    "document": {
        "id": "h",
        "type": "FRAME",
        "name": "Header",
        "children": [
            {"id": "t", "type": "TEXT", "name": "Title", "characters": "Hello"},
            {"id": "v", "type": "VECTOR", "name": "Icon"},
        ],
    }
}

START = datetime(2026, 10, 17, 9, 0, tzinfo=UTC)


@pytest.fixture
def figma_file() -> dict[str, Any]:
    return copy.deepcopy(FIGMA_FILE)


@pytest.fixture
def header_tree() -> dict[str, Any]:
    return copy.deepcopy(HEADER_TREE)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture
def backend() -> FakeBackingStore:
    return FakeBackingStore()


@pytest.fixture
def store(backend: FakeBackingStore, clock: FakeClock) -> ContextStore:
    return ContextStore(backend, clock=clock.wall, cache_clock=clock.mono)


@pytest.fixture
def source(figma_file: dict[str, Any], header_tree: dict[str, Any]) -> FakeDocumentSource:
    fake = FakeDocumentSource()
    fake.add("fileA", figma_file)
    fake.add("header", header_tree)
    return fake


@pytest.fixture
def screenshots() -> FakeScreenshotService:
    return FakeScreenshotService()


@pytest.fixture
def client(
    store: ContextStore, source: FakeDocumentSource, screenshots: FakeScreenshotService
) -> DesignContextClient:
    return DesignContextClient(store, source, screenshots)

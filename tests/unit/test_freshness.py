"""Tests for staleness detection."""

from datetime import UTC, datetime, timedelta

import pytest

from design_context.core.freshness import is_stale, parse_timestamp

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    "value",
    [
        "2026-10-17T12:00:00+00:00",
        "2026-10-17T12:00:00Z",
        "2026-10-17T12:00:00",
        NOW.timestamp(),
        int(NOW.timestamp() * 1000),
        NOW,
    ],
)
def test_parse_timestamp_accepts_common_forms(value: object) -> None:
    assert parse_timestamp(value) == NOW


@pytest.mark.parametrize("value", [None, "", "yesterday", True, [], {}])
def test_parse_timestamp_rejects_garbage(value: object) -> None:
    assert parse_timestamp(value) is None


def test_document_older_than_threshold_is_stale() -> None:
    old = {"metadata": {"stored": (NOW - timedelta(hours=2)).isoformat()}}
    assert is_stale(old, now=NOW) is True


def test_recent_document_is_fresh() -> None:
    fresh = {"metadata": {"stored": (NOW - timedelta(minutes=5)).isoformat()}}
    assert is_stale(fresh, now=NOW) is False


def test_exactly_at_threshold_is_fresh() -> None:
    edge = {"metadata": {"stored": (NOW - timedelta(seconds=3600)).isoformat()}}
    assert is_stale(edge, 3600, now=NOW) is False


def test_updated_is_used_when_stored_is_missing() -> None:
    doc = {"metadata": {"updated": (NOW - timedelta(minutes=1)).isoformat()}}
    assert is_stale(doc, now=NOW) is False


@pytest.mark.parametrize(
    "document",
    [None, {}, {"metadata": None}, {"metadata": {}}, {"metadata": {"stored": "not a date"}}],
)
def test_missing_or_unparseable_timestamps_are_stale(document: dict | None) -> None:
    assert is_stale(document, now=NOW) is True

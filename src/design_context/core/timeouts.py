"""Timeout wrapper for calls that cross an I/O boundary."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from design_context.errors import DesignContextError

T = TypeVar("T")


async def call_with_timeout(
    awaitable: Awaitable[T],
    *,
    timeout: float | None,
    error_cls: type[DesignContextError],
    what: str,
) -> T:
    """Await awaitable, raising error_cls if it takes longer than timeout seconds."""
    try:
        async with asyncio.timeout(timeout):
            return await awaitable
    except TimeoutError as e:
        msg = f"{what} timed out after {timeout}s"
        raise error_cls(msg) from e

"""Timeout bounding for external calls."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from ytsync.core.exceptions import TransientExternalError

T = TypeVar("T")


async def call_with_timeout(awaitable: Awaitable[T], timeout: float, operation: str) -> T:
    """
    Await an external call, converting a timeout into TransientExternalError.

    Args:
        awaitable: The external call
        timeout: Seconds to wait
        operation: Human-readable name used in the error message

    Returns:
        The call's result
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise TransientExternalError(f"{operation} timed out after {timeout:g}s") from e

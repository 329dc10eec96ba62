"""Bounded batching for concurrent coroutines."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def gather_in_batches(
    factories: Sequence[Callable[[], Awaitable[T]]],
    batch_size: int,
) -> list[T]:
    """Run coroutine factories in fixed-size batches.

    Each batch is awaited to completion before the next one is started,
    so at most ``batch_size`` coroutines are in flight at any time.
    Results are returned in input order. The first failure in a batch
    propagates after that batch has settled.

    Args:
        factories: Zero-argument callables each returning an awaitable.
        batch_size: Maximum number of concurrently running awaitables.

    Returns:
        List of results in the same order as ``factories``.

    Raises:
        ValueError: If batch_size is less than 1.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    results: list[T] = []
    for start in range(0, len(factories), batch_size):
        batch = factories[start : start + batch_size]
        logger.debug(
            "Running batch %d-%d of %d",
            start + 1,
            start + len(batch),
            len(factories),
        )
        outcomes = await asyncio.gather(
            *(factory() for factory in batch), return_exceptions=True
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        results.extend(outcomes)  # type: ignore[arg-type]
    return results


__all__ = ["gather_in_batches"]

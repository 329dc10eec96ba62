"""Download performance sampling for the published stylesheet.

Measures average download time of the current artifact from the CDN
and from the non-CDN mirror, and keeps a capped JSON history of runs.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from qorecss_deploy.builds.hash_record import read_hash_record
from qorecss_deploy.builds.hashing import canonical_filename
from qorecss_deploy.config import Settings, normalize_base_url
from qorecss_deploy.net.batching import gather_in_batches
from qorecss_deploy.net.retry import RetryClient

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


def sample_urls(settings: Settings, filename: str) -> list[str]:
    """URLs to sample for an artifact: CDN first, then the mirror."""
    return [
        f"{settings.cdn_base}/gh/{settings.repository}/{filename}",
        f"{normalize_base_url(settings.pages_base_url)}/{filename}",
    ]


def load_history(path: Path) -> list[dict[str, Any]]:
    """Load the history file, treating a missing file as empty.

    Raises:
        ValueError: If the file does not contain a JSON array.
    """
    if not path.exists():
        return []
    with path.open(encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"History file {path} must contain a JSON array")
    return data


def append_history(
    path: Path,
    results: dict[str, float],
    limit: int = DEFAULT_HISTORY_LIMIT,
    timestamp: datetime | None = None,
) -> list[dict[str, Any]]:
    """Append a run to the history file, keeping the newest ``limit`` entries.

    Args:
        path: History file path.
        results: Average milliseconds keyed by URL.
        limit: Maximum number of entries kept.
        timestamp: Run time (defaults to now, UTC).

    Returns:
        The history as written.
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    history = load_history(path)
    when = timestamp or datetime.now(timezone.utc)
    history.append({"timestamp": when.isoformat(), "results": results})
    history = history[-limit:]

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(history, f, indent=2)

    logger.info("Wrote %d history entries to %s", len(history), path)
    return history


class PerformanceSampler:
    """Measures download times through a RetryClient."""

    def __init__(self, settings: Settings, http_client: RetryClient) -> None:
        self.settings = settings
        self.http_client = http_client
        self.batch_size = settings.queue_limit

    async def time_request(self, url: str) -> float:
        """Download a URL once and return elapsed milliseconds."""
        start = time.perf_counter()
        if self.settings.offline:
            await asyncio.sleep(0)
        else:
            response = await self.http_client.fetch_with_retry(url)
            response.raise_for_status()
        return (time.perf_counter() - start) * 1000

    async def measure_url(self, url: str, count: int) -> float:
        """Average download time over ``count`` batched requests.

        Returns:
            Mean milliseconds, or 0.0 when count is 0.
        """
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}")
        if count == 0:
            return 0.0
        times = await gather_in_batches(
            [lambda: self.time_request(url)] * count, self.batch_size
        )
        average = sum(times) / count
        logger.info("Average for %s over %d request(s): %.2fms", url, count, average)
        return average

    async def sample(self, count: int) -> dict[str, float]:
        """Measure every sample URL for the current artifact.

        Raises:
            FileNotFoundError: If no hash record exists.
        """
        content_hash = read_hash_record(
            self.settings.path_for(self.settings.hash_file)
        )
        results: dict[str, float] = {}
        for url in sample_urls(self.settings, canonical_filename(content_hash)):
            results[url] = await self.measure_url(url, count)
        return results


async def run_sampler(settings: Settings, count: int) -> dict[str, float]:
    """Sample performance and record the run in the history file."""
    async with RetryClient(settings) as client:
        results = await PerformanceSampler(settings, client).sample(count)
    append_history(
        settings.path_for(settings.history_file),
        results,
        limit=settings.history_limit,
    )
    return results


__all__ = [
    "DEFAULT_HISTORY_LIMIT",
    "PerformanceSampler",
    "append_history",
    "load_history",
    "run_sampler",
    "sample_urls",
]

"""Build size history.

Keeps a JSON array of ``{date, size}`` records for the built artifact.
A record is only added when the size differs from the last one, so the
file lists size changes rather than every build.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def load_build_stats(path: Path) -> list[dict[str, Any]]:
    """Load recorded build sizes; a missing file means no records.

    Raises:
        ValueError: If the file does not contain a JSON array.
    """
    if not path.exists():
        return []
    with path.open(encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"Build stats file {path} must contain a JSON array")
    return data


def record_build_size(
    path: Path,
    size_bytes: int,
    timestamp: datetime | None = None,
) -> bool:
    """Append the artifact size if it changed since the last record.

    Args:
        path: Stats file path.
        size_bytes: Size of the built artifact.
        timestamp: Record time (defaults to now, UTC).

    Returns:
        True if a record was appended.
    """
    stats = load_build_stats(path)
    if stats and stats[-1].get("size") == size_bytes:
        logger.debug("Build size unchanged at %d bytes", size_bytes)
        return False

    when = timestamp or datetime.now(timezone.utc)
    stats.append({"date": when.isoformat(), "size": size_bytes})
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(stats, f, indent=2)

    logger.info("Recorded build size %d bytes in %s", size_bytes, path)
    return True


__all__ = ["load_build_stats", "record_build_size"]

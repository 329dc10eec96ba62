"""Persistence of the current build hash.

The hash record is a one-line file naming the current artifact. It is
the hand-off between separately invoked stages (build, update-html,
purge); within one process the value is passed along directly.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def read_hash_record(path: Path) -> str:
    """Read and trim the stored hash.

    Args:
        path: Path to the hash record file.

    Returns:
        The trimmed hash string.

    Raises:
        FileNotFoundError: If the record does not exist.
        ValueError: If the record is empty.
    """
    value = path.read_text(encoding="utf-8").strip()
    if not value:
        raise ValueError(f"Hash record is empty: {path}")
    logger.debug("Read hash %s from %s", value, path)
    return value


def write_hash_record(path: Path, content_hash: str) -> Path:
    """Replace the stored hash.

    The value is written to a temporary file in the same directory and
    moved over the record, so readers never see a partial write.

    Args:
        path: Path to the hash record file.
        content_hash: Hash to store.

    Returns:
        Path to the written record.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as tmp_file:
        tmp_file.write(content_hash.strip())
        tmp_path = Path(tmp_file.name)

    try:
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise

    logger.info("Wrote hash %s to %s", content_hash.strip(), path)
    return path


__all__ = ["read_hash_record", "write_hash_record"]

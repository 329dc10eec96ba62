"""Shared type definitions for qorecss_deploy.

This module contains dataclasses and enums shared across subpackages
to avoid circular imports.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class BuildState(str, Enum):
    """State of a build invocation."""

    IDLE = "idle"
    PROCESSING = "processing"
    HASHING = "hashing"
    PERSISTING = "persisting"
    REWRITING = "rewriting"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (BuildState.DONE, BuildState.FAILED)


@dataclass
class ArtifactInfo:
    """Information about the hashed stylesheet artifact."""

    filename: str
    path: Path
    content_hash: str
    integrity: str
    size_bytes: int


__all__ = ["ArtifactInfo", "BuildState"]

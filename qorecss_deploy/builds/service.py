"""Build service module.

This module provides the high-level build API:
- build(): Main entry point - process, hash, persist, rewrite
- Stale artifact cleanup and gzip/brotli sibling generation
- Build size history
- Hash injection into the HTML document and package entry point

Stages run strictly in order; each one's file writes complete before
the next stage starts. Any failure moves the build to FAILED and the
original exception propagates unchanged.
"""

from __future__ import annotations

import gzip
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import brotli

from qorecss_deploy.builds.hash_record import write_hash_record
from qorecss_deploy.builds.hashing import (
    HASHED_ARTIFACT_FILE_RE,
    canonical_filename,
    compute_hash,
    compute_integrity_digest,
    replace_hashed_references,
)
from qorecss_deploy.builds.processor import Transform, select_transform
from qorecss_deploy.builds.stats import record_build_size
from qorecss_deploy.config import Settings
from qorecss_deploy.html.rewrite import HtmlRewriter
from qorecss_deploy.types import ArtifactInfo, BuildState

logger = logging.getLogger(__name__)

# Intermediate output written by the processor before it is renamed
INTERMEDIATE_NAME = "core.min.css"


@dataclass
class BuildContext:
    """State carried between the stages of one build.

    Attributes:
        work_dir: Build working directory.
        state: Current stage.
        history: Every state entered, in order.
        content_hash: Hash of the artifact once computed.
        artifact: Final artifact details once written.
        transform_name: Name of the chosen CSS transform.
    """

    work_dir: Path
    state: BuildState = BuildState.IDLE
    history: list[BuildState] = field(default_factory=lambda: [BuildState.IDLE])
    content_hash: str | None = None
    artifact: ArtifactInfo | None = None
    transform_name: str | None = None

    def advance(self, state: BuildState) -> None:
        """Enter a new state.

        Raises:
            RuntimeError: If the build already reached a terminal state.
        """
        if self.state.is_terminal:
            raise RuntimeError(f"Build already finished in state {self.state.value}")
        logger.debug("Build state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)


def remove_stale_artifacts(work_dir: Path, content_hash: str) -> list[Path]:
    """Delete hashed artifacts and compressed siblings for other hashes.

    Args:
        work_dir: Directory to clean.
        content_hash: Hash whose files are kept.

    Returns:
        Paths that were removed.
    """
    removed: list[Path] = []
    for path in sorted(work_dir.iterdir()):
        match = HASHED_ARTIFACT_FILE_RE.match(path.name)
        if match is None or match.group("hash") == content_hash:
            continue
        if path.is_file():
            path.unlink()
            removed.append(path)
            logger.debug("Removed stale artifact %s", path.name)
    return removed


def write_gzip_sibling(artifact_path: Path, data: bytes) -> Path:
    """Write a precompressed ``.gz`` copy next to the artifact."""
    gz_path = artifact_path.with_name(artifact_path.name + ".gz")
    # mtime=0 keeps the compressed bytes reproducible
    gz_path.write_bytes(gzip.compress(data, mtime=0))
    return gz_path


def write_brotli_sibling(artifact_path: Path, data: bytes) -> Path:
    """Write a precompressed ``.br`` copy next to the artifact."""
    br_path = artifact_path.with_name(artifact_path.name + ".br")
    br_path.write_bytes(brotli.compress(data))
    return br_path


def inject_entry_point_hash(entry_point: Path, content_hash: str) -> bool:
    """Point hashed references in the package entry point at content_hash.

    Args:
        entry_point: Path to the entry point asset.
        content_hash: Current content hash.

    Returns:
        True if the file was changed.
    """
    text = entry_point.read_text(encoding="utf-8")
    updated = replace_hashed_references(text, content_hash)
    if updated == text:
        return False
    entry_point.write_text(updated, encoding="utf-8")
    logger.info("Injected %s into %s", canonical_filename(content_hash), entry_point)
    return True


class BuildOrchestrator:
    """Runs the content-addressed build pipeline for one working directory."""

    def __init__(
        self,
        settings: Settings,
        transform: Transform | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            settings: Settings naming the working directory and files.
            transform: CSS transform to use; chosen from the environment
                when omitted.
        """
        self.settings = settings
        self.work_dir = settings.work_dir
        self.transform = transform or select_transform(
            self.work_dir, timeout=settings.processor_timeout
        )
        self.context = BuildContext(work_dir=self.work_dir)

    def build(self) -> str:
        """Run the pipeline.

        Returns:
            The new content hash.

        Raises:
            FileNotFoundError: If the source stylesheet is missing.
            ProcessorError: If the CSS processor fails.
            OSError: For any other filesystem failure.
        """
        ctx = self.context = BuildContext(work_dir=self.work_dir)
        source = self.settings.path_for(self.settings.source_css)
        ctx.transform_name = self.transform.name
        logger.info(
            "Building %s with %s transform in %s",
            source.name,
            self.transform.name,
            self.work_dir,
        )

        try:
            ctx.advance(BuildState.PROCESSING)
            intermediate = self.work_dir / INTERMEDIATE_NAME
            self.transform(source, intermediate)

            ctx.advance(BuildState.HASHING)
            data = intermediate.read_bytes()
            content_hash = compute_hash(data)
            ctx.content_hash = content_hash
            remove_stale_artifacts(self.work_dir, content_hash)
            artifact_path = self.work_dir / canonical_filename(content_hash)
            os.replace(intermediate, artifact_path)
            write_gzip_sibling(artifact_path, data)
            write_brotli_sibling(artifact_path, data)
            ctx.artifact = ArtifactInfo(
                filename=artifact_path.name,
                path=artifact_path,
                content_hash=content_hash,
                integrity=compute_integrity_digest(data),
                size_bytes=len(data),
            )

            ctx.advance(BuildState.PERSISTING)
            write_hash_record(
                self.settings.path_for(self.settings.hash_file), content_hash
            )
            record_build_size(
                self.settings.path_for(self.settings.stats_file), len(data)
            )

            ctx.advance(BuildState.REWRITING)
            self._rewrite(ctx.artifact)

            ctx.advance(BuildState.DONE)
        except Exception as e:
            failed_in = ctx.state
            if not failed_in.is_terminal:
                ctx.advance(BuildState.FAILED)
            logger.error(
                "build failed during %s (source=%s, work_dir=%s): %s",
                failed_in.value,
                source,
                self.work_dir,
                e,
            )
            raise

        logger.info("Build produced %s", ctx.artifact.filename)
        return content_hash

    def _rewrite(self, artifact: ArtifactInfo) -> None:
        html_path = self.settings.path_for(self.settings.html_file)
        if html_path.exists():
            HtmlRewriter(self.settings).update_references(
                artifact.content_hash, integrity=artifact.integrity
            )
        else:
            logger.info("No %s found; skipping HTML rewrite", html_path.name)

        entry_point = self.settings.path_for(self.settings.entry_point)
        if entry_point.exists():
            inject_entry_point_hash(entry_point, artifact.content_hash)
        else:
            logger.info("No %s found; skipping hash injection", entry_point.name)


def build(settings: Settings, transform: Transform | None = None) -> str:
    """Build the hashed artifact for settings.work_dir.

    Args:
        settings: Application settings.
        transform: Optional CSS transform override.

    Returns:
        The new content hash.
    """
    return BuildOrchestrator(settings, transform=transform).build()


__all__ = [
    "BuildContext",
    "BuildOrchestrator",
    "INTERMEDIATE_NAME",
    "build",
    "inject_entry_point_hash",
    "remove_stale_artifacts",
    "write_brotli_sibling",
    "write_gzip_sibling",
]

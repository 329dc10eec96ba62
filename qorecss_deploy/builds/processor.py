"""CSS processor selection and execution.

This module handles:
- Locating the PostCSS runner (``npx``, ``npx.cmd`` on Windows)
- Running PostCSS to minify the source stylesheet
- Falling back to a verbatim copy when the runner is not installed

The transform is chosen once per build by select_transform(); the rest
of the pipeline calls whichever transform was chosen.
"""

from __future__ import annotations

import errno
import logging
import os
import shlex
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

# Runner used to invoke PostCSS from the local node_modules
RUNNER_NAME = "npx"


class ProcessorError(Exception):
    """Raised when the CSS processor runs but fails."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "processor_failed",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.code = code


class Transform(Protocol):
    """Turns a source stylesheet into the minified output file."""

    name: str

    def __call__(self, source: Path, dest: Path) -> None: ...


def binary_name(name: str, platform: str | None = None) -> str:
    """Return the platform-specific executable name.

    Windows installs npm shims as ``<name>.cmd``.

    Args:
        name: Base executable name.
        platform: Platform string (defaults to sys.platform).

    Returns:
        Executable name to look up.
    """
    platform = sys.platform if platform is None else platform
    if platform.startswith(("win", "cygwin")):
        return f"{name}.cmd"
    return name


def find_executable(name: str, project_root: Path | None = None) -> str | None:
    """Find an executable in PATH or local node_modules.

    Args:
        name: Name of the executable to find.
        project_root: Optional directory whose node_modules/.bin is searched.

    Returns:
        Full path to the executable if found, None otherwise.
    """
    found = shutil.which(name)
    if found:
        return found

    if project_root is not None:
        local = project_root / "node_modules" / ".bin" / name
        if local.exists():
            return str(local)

    return None


def _require_source(source: Path) -> None:
    if not source.is_file():
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(source))


class PostCSSTransform:
    """Runs ``npx postcss <source> -o <dest>``."""

    name = "postcss"

    def __init__(self, runner: str, cwd: Path, timeout: int | None = None) -> None:
        self.runner = runner
        self.cwd = cwd
        self.timeout = timeout

    def command(self, source: Path, dest: Path) -> list[str]:
        return [self.runner, "postcss", str(source), "-o", str(dest)]

    def __call__(self, source: Path, dest: Path) -> None:
        _require_source(source)
        cmd = self.command(source, dest)
        cmd_str = shlex.join(cmd)
        logger.info("Executing CSS processor: %s", cmd_str)

        try:
            result = subprocess.run(
                cmd,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise ProcessorError(
                f"CSS processor timed out after {self.timeout} seconds",
                exit_code=-1,
                code="processor_timeout",
            ) from e

        if result.returncode != 0:
            logger.error("CSS processor failed: %s", result.stderr.strip())
            raise ProcessorError(
                f"CSS processor failed with exit code {result.returncode}: "
                f"{result.stderr.strip()}",
                exit_code=result.returncode,
            )


class CopyTransform:
    """Copies the source verbatim; used when PostCSS is unavailable."""

    name = "copy"

    def __call__(self, source: Path, dest: Path) -> None:
        _require_source(source)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, dest)
        logger.info("Copied %s to %s without minification", source, dest)


def select_transform(
    project_root: Path,
    timeout: int | None = None,
    platform: str | None = None,
) -> Transform:
    """Choose the CSS transform for this build.

    Args:
        project_root: Directory the processor runs in.
        timeout: Processor timeout in seconds.
        platform: Platform string override.

    Returns:
        PostCSSTransform if the runner is installed, else CopyTransform.
    """
    runner = find_executable(binary_name(RUNNER_NAME, platform), project_root)
    if runner is None:
        logger.warning(
            "%s not found; falling back to copying the unminified stylesheet",
            binary_name(RUNNER_NAME, platform),
        )
        return CopyTransform()
    return PostCSSTransform(runner, cwd=project_root, timeout=timeout)


__all__ = [
    "CopyTransform",
    "PostCSSTransform",
    "ProcessorError",
    "RUNNER_NAME",
    "Transform",
    "binary_name",
    "find_executable",
    "select_transform",
]

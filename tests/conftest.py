"""Shared fixtures for qorecss_deploy tests."""

import os
from pathlib import Path

import pytest

from qorecss_deploy.config import Settings


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep QORE_* variables from the host out of every test."""
    for key in list(os.environ):
        if key.upper().startswith("QORE_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Offline settings rooted in a temporary working directory."""
    return Settings(work_dir=tmp_path, offline=True, backoff_base=0)


@pytest.fixture
def online_settings(tmp_path: Path) -> Settings:
    """Online settings with zero backoff so retries do not sleep."""
    return Settings(work_dir=tmp_path, offline=False, backoff_base=0)

"""Pytest configuration for repository test runs."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest


def pytest_sessionstart() -> None:
    """Add src directory to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    src_path = project_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


@pytest.fixture
def recovery_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Any:
    """Config rooted in a temporary home and log directory."""
    from core.config import RecoveryConfig

    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.delenv("ZKSYNC_ENV", raising=False)
    monkeypatch.delenv("IN_DOCKER", raising=False)
    monkeypatch.setenv("ZKSYNC_HOME", str(home_dir))
    monkeypatch.setenv("RECOVERY_LOG_DIR", str(tmp_path / "logs"))
    return RecoveryConfig.from_env()

# tests/conftest.py

"""Shared pytest fixtures for all smartshop tests."""

from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest

from smartshop.config.settings import Settings


@pytest.fixture(autouse=True)
def mock_sleep() -> Generator[None, None, None]:
    """Patch time.sleep globally so retry loops run instantly."""
    with patch("time.sleep"):
        yield


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path: Path) -> Generator[None, None, None]:
    """Keep logs and exports out of the working tree."""
    with patch.object(Settings, "LOGS_DIR", tmp_path / "logs"), \
            patch.object(Settings, "EXPORTS_DIR", tmp_path / "exports"):
        yield

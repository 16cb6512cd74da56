# tests/conftest.py

"""Shared pytest fixtures for all price_intel tests."""

from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def isolated_output_dirs(
    tmp_path: Path,
) -> Generator[None, None, None]:
    """Route log files and charts into a per-test temp directory."""
    with patch(
        "src.config.settings.Settings.LOGS_DIR", tmp_path / "logs",
    ), patch(
        "src.storage.chart_exporter._CHARTS_DIR", tmp_path / "charts",
    ):
        yield

"""Pytest configuration for local package import resolution and logging reset."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    # Ensure tests can import `stocktake` without package installation.
    sys.path.insert(0, project_root_str)

from stocktake.logging_config import reset_logging  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_logging():
    """Undo any `configure_logging` call a test (or the CLI) made."""
    yield
    reset_logging()

"""Pytest configuration and shared fixtures for cloudmanager tests."""

from pathlib import Path
from typing import Any

import pytest


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a workspace holding a config file and two import files.

    Returns:
        Path to the workspace directory
    """
    root = tmp_path / "the" / "workspace"
    root.mkdir(parents=True)
    (root / "config.yaml").write_text(
        "imports:\n- path: vm.jinja\n- path: network.py\n", encoding="utf-8"
    )
    templates = root / "templates"
    templates.mkdir()
    (templates / "vm.jinja").write_text("resources: []\n", encoding="utf-8")
    (templates / "network.py").write_text(
        "def GenerateConfig(context):\n    return {}\n", encoding="utf-8"
    )
    return root


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "unit: marks tests as unit tests",
    )

"""
Shared test fixtures and configuration.
"""

import textwrap
from pathlib import Path

import pytest

from hostconverge.adapters.registry import AdapterRegistry
from hostconverge.core.resources import build_handlers


@pytest.fixture
def registry() -> AdapterRegistry:
    """Registry of in-memory collaborators (apt, npm, systemd, pm2, compose, shell)."""
    return AdapterRegistry.mock()


@pytest.fixture
def host_root(tmp_path: Path) -> Path:
    """Directory standing in for '/' for File resources."""
    root = tmp_path / "host"
    root.mkdir()
    return root


@pytest.fixture
def handlers(registry: AdapterRegistry, host_root: Path):
    return build_handlers(registry, root=host_root)


@pytest.fixture
def write_manifest(tmp_path: Path):
    """Write a hostconverge.yml from a dedented string and return its path."""

    def _write(content: str, name: str = "hostconverge.yml") -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(content))
        return path

    return _write

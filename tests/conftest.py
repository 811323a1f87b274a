"""
Shared test fixtures and configuration.
"""

import io
import tarfile
from pathlib import Path

import pytest

from provisioner.adapters.mock import MockAdapter
from provisioner.adapters.registry import AdapterRegistry


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    """Return a temporary working directory for downloads."""
    d = tmp_path / "work"
    d.mkdir()
    return d


@pytest.fixture
def mock() -> MockAdapter:
    """A single mock that receives every action, in order."""
    return MockAdapter(adapter_name="mock")


@pytest.fixture
def mock_registry(mock: MockAdapter) -> AdapterRegistry:
    """Registry routing all actions to the ``mock`` fixture."""
    registry = AdapterRegistry()
    registry.set_mock_mode(True, mock_adapter=mock)
    return registry


def make_tool(bin_dir: Path, name: str, stdout: str, exit_code: int = 0) -> Path:
    """Write a fake executable that prints ``stdout`` and exits."""
    bin_dir.mkdir(parents=True, exist_ok=True)
    path = bin_dir / name
    path.write_text(f"#!/bin/sh\necho '{stdout}'\nexit {exit_code}\n")
    path.chmod(0o755)
    return path


def make_tarball(dest: Path, files: dict[str, str]) -> Path:
    """Write a .tar.gz containing ``files`` (name → text content)."""
    with tarfile.open(dest, "w:gz") as tf:
        for name, content in files.items():
            data = content.encode()
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755
            tf.addfile(info, io.BytesIO(data))
    return dest


@pytest.fixture
def fake_tool():
    return make_tool


@pytest.fixture
def tarball():
    return make_tarball

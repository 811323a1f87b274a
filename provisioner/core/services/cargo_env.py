"""
Cargo environment — the Python side of ``source "$HOME/.cargo/env"``.

rustup installs its proxies into ``$CARGO_HOME/bin`` and writes an
``env`` script that prepends that directory to PATH. Sourcing it only
changes PATH, so activation is computed here as an env override.
"""

from __future__ import annotations

import os
from pathlib import Path


def cargo_home() -> Path:
    """``$CARGO_HOME``, defaulting to ``~/.cargo``."""
    value = os.environ.get("CARGO_HOME")
    return Path(value).expanduser() if value else Path.home() / ".cargo"


def cargo_bin_dir() -> Path:
    return cargo_home() / "bin"


def cargo_env_file() -> Path:
    return cargo_home() / "env"


def activated_path(current_path: str | None = None) -> str:
    """PATH with the cargo bin dir in front (not duplicated)."""
    bin_dir = str(cargo_bin_dir())
    if current_path is None:
        current_path = os.environ.get("PATH", "")
    entries = [p for p in current_path.split(os.pathsep) if p and p != bin_dir]
    return os.pathsep.join([bin_dir] + entries)

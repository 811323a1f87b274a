"""
Tool version probes.

Read-only: runs ``<tool> --version`` and parses the output.
"""

from __future__ import annotations

import re
import shutil

from provisioner.core.services.subprocess_runner import build_env, run_command

VERSION_PATTERNS: dict[str, str] = {
    "rustc":   r"rustc\s+(\d+\.\d+\.\d+)",
    "cargo":   r"cargo\s+(\d+\.\d+\.\d+)",
    "rustup":  r"rustup\s+(\d+\.\d+\.\d+)",
    "stellar": r"stellar\s+(\d+\.\d+\.\d+)",
    "git":     r"git version\s+(\d+\.\d+\.\d+)",
}

_GENERIC_PATTERN = r"v?(\d+\.\d+(?:\.\d+)?)"


def parse_version(tool: str, output: str) -> str | None:
    """Extract a version string from ``--version`` output."""
    pattern = VERSION_PATTERNS.get(tool, _GENERIC_PATTERN)
    match = re.search(pattern, output)
    return match.group(1) if match else None


def which(cli: str, env_overrides: dict[str, str] | None = None) -> str | None:
    """``shutil.which`` against the PATH the next command will see."""
    return shutil.which(cli, path=build_env(env_overrides).get("PATH"))


def get_tool_version(
    tool: str,
    command: list[str] | None = None,
    *,
    env_overrides: dict[str, str] | None = None,
) -> str | None:
    """Get the installed version of a tool.

    Returns:
        Semver string (e.g. ``"23.1.1"``) or ``None`` if the tool is
        not installed or the version can't be determined.
    """
    cmd = command or [tool, "--version"]
    if not which(cmd[0], env_overrides):
        return None

    result = run_command(cmd, timeout=30, env_overrides=env_overrides)
    if not result["ok"]:
        return None
    output = (result.get("stdout") or "") + (result.get("stderr") or "")
    return parse_version(tool, output)

"""
Core subprocess runner.

Every provisioning command goes through ``run_command``. Sudo
prefixing, environment overrides, timing and error capture are
centralised here.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from typing import Any

logger = logging.getLogger(__name__)

# Tail kept from captured output — enough for a diagnostic
_OUTPUT_TAIL = 4000

# Shell convention for "command not found"
EXIT_NOT_FOUND = 127


def build_env(env_overrides: dict[str, str] | None = None) -> dict[str, str]:
    """Return a copy of the process environment with overrides applied."""
    env = os.environ.copy()
    if env_overrides:
        for key, value in env_overrides.items():
            env[key] = os.path.expandvars(value)
    return env


def run_command(
    cmd: list[str],
    *,
    needs_sudo: bool = False,
    timeout: int | None = None,
    env_overrides: dict[str, str] | None = None,
    cwd: str | None = None,
) -> dict[str, Any]:
    """Run a command and capture its result.

    When ``needs_sudo`` is set and the process is not already root the
    command is prefixed with ``sudo``; any password prompt goes to the
    controlling terminal.

    Args:
        cmd: Command list for ``subprocess.run()``.
        needs_sudo: Whether the command requires root.
        timeout: Seconds before giving up, or None to wait indefinitely.
        env_overrides: Extra env vars (e.g. PATH after toolchain activation).
        cwd: Working directory for the command.

    Returns:
        ``{"ok": True, "stdout": "...", "return_code": 0, "elapsed_ms": N}``
        on success, ``{"ok": False, "error": "...", "return_code": N, ...}``
        on failure.
    """
    if needs_sudo and os.geteuid() != 0:
        cmd = ["sudo"] + cmd

    env = build_env(env_overrides)

    logger.debug("Running: %s (cwd=%s)", " ".join(cmd), cwd or ".")
    start = time.monotonic()
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
            cwd=cwd,
        )
    except FileNotFoundError:
        return {
            "ok": False,
            "error": f"{cmd[0]}: command not found",
            "return_code": EXIT_NOT_FOUND,
            "stdout": "",
            "stderr": "",
        }
    except subprocess.TimeoutExpired:
        return {
            "ok": False,
            "error": f"Command timed out ({timeout}s)",
            "stdout": "",
            "stderr": "",
        }
    except OSError as e:
        logger.exception("Subprocess error: %s", cmd)
        return {"ok": False, "error": str(e), "stdout": "", "stderr": ""}

    elapsed_ms = int((time.monotonic() - start) * 1000)
    stdout = result.stdout[-_OUTPUT_TAIL:] if result.stdout else ""
    stderr = result.stderr[-_OUTPUT_TAIL:] if result.stderr else ""

    if result.returncode == 0:
        return {
            "ok": True,
            "stdout": stdout,
            "stderr": stderr,
            "return_code": 0,
            "elapsed_ms": elapsed_ms,
        }

    return {
        "ok": False,
        "error": stderr.strip() or f"Command failed (exit {result.returncode})",
        "stdout": stdout,
        "stderr": stderr,
        "return_code": result.returncode,
        "elapsed_ms": elapsed_ms,
    }

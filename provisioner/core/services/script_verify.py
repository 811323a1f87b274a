"""
Installer script integrity — download, verify, then execute from disk.

Replaces the ``curl ... | sh`` pattern: the script is fetched to a
tempfile first, so its SHA256 can be checked before anything runs.
"""

from __future__ import annotations

import hashlib
import logging
import os
import subprocess
import tempfile
from typing import Any

logger = logging.getLogger(__name__)

# Same transport restrictions as the upstream one-liner
CURL_ARGS = ["curl", "--proto", "=https", "--tlsv1.2", "-sSf"]


def download_and_verify_script(
    url: str,
    expected_sha256: str | None = None,
    timeout: int | None = None,
) -> dict[str, Any]:
    """Download a script to a tempfile and optionally verify its SHA256.

    Args:
        url: URL to download.
        expected_sha256: Expected SHA256 hex digest. If provided and
            the hash doesn't match, returns ``ok: False``.
        timeout: Download timeout in seconds (None = no limit).

    Returns::

        {"ok": True, "path": "/tmp/xxx.sh", "sha256": "abc...", "size_bytes": 1234}
        or
        {"ok": False, "error": "SHA256 mismatch ...", "return_code": N}
    """
    cmd = list(CURL_ARGS)
    if timeout:
        cmd += ["--max-time", str(timeout)]
    cmd.append(url)

    try:
        result = subprocess.run(cmd, capture_output=True)
    except FileNotFoundError:
        return {"ok": False, "error": "curl: command not found", "return_code": 127}

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        return {
            "ok": False,
            "error": stderr or f"Download failed (exit {result.returncode})",
            "return_code": result.returncode,
        }

    content = result.stdout
    actual_sha256 = hashlib.sha256(content).hexdigest()

    if expected_sha256:
        expected = expected_sha256.removeprefix("sha256:").lower()
        if actual_sha256 != expected:
            return {
                "ok": False,
                "error": (
                    f"SHA256 mismatch for {url}\n"
                    f"Expected: {expected}\n"
                    f"Got:      {actual_sha256}"
                ),
                "expected_sha256": expected,
                "actual_sha256": actual_sha256,
            }
    else:
        logger.warning("No sha256 pinned for %s; running unverified script", url)

    fd, path = tempfile.mkstemp(suffix=".sh", prefix="provision_script_")
    try:
        os.write(fd, content)
    finally:
        os.close(fd)
    os.chmod(path, 0o700)

    return {
        "ok": True,
        "path": path,
        "sha256": actual_sha256,
        "size_bytes": len(content),
    }


def script_command(script_path: str, args: list[str]) -> list[str]:
    """Command equivalent to ``curl ... | sh -s -- <args>`` for a local file."""
    return ["sh", script_path] + list(args)


def cleanup_script(path: str) -> None:
    """Remove a temporary script file."""
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass

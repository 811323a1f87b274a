"""
Release archive handling — URL, download, checksum, extract, install.

Pure helpers return values; I/O helpers return ``{"ok": ..., ...}``
dicts so the release adapter can turn them into receipts.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tarfile
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any

from provisioner import __version__
from provisioner.core.models.config import ReleaseConfig
from provisioner.core.services.subprocess_runner import run_command

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024


def archive_name(release: ReleaseConfig) -> str:
    """File name of the release archive, e.g. ``stellar-cli-23.1.1-x86_64-unknown-linux-gnu.tar.gz``."""
    return f"{release.name}-{release.version}-{release.triple}.tar.gz"


def release_url(release: ReleaseConfig) -> str:
    """Download URL of the pinned release archive."""
    base = release.base_url.rstrip("/")
    return (
        f"{base}/{release.repo}/releases/download/"
        f"v{release.version}/{archive_name(release)}"
    )


def installed_path(release: ReleaseConfig) -> Path:
    return Path(release.install_dir) / release.binary


def download_file(url: str, dest: Path, timeout: int | None = None) -> dict[str, Any]:
    """Stream ``url`` into ``dest``.

    Returns:
        ``{"ok": True, "path": "...", "size_bytes": N}`` or error dict.
    """
    req = urllib.request.Request(
        url, headers={"User-Agent": f"provisioner/{__version__}"},
    )
    size = 0
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            with open(dest, "wb") as f:
                while True:
                    chunk = resp.read(_CHUNK)
                    if not chunk:
                        break
                    f.write(chunk)
                    size += len(chunk)
    except urllib.error.HTTPError as exc:
        return {"ok": False, "error": f"Download failed: HTTP {exc.code} for {url}"}
    except (urllib.error.URLError, OSError) as exc:
        return {"ok": False, "error": f"Download failed: {exc}"}

    logger.info("Downloaded %s (%d bytes)", dest.name, size)
    return {"ok": True, "path": str(dest), "size_bytes": size}


def file_sha256(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()


def verify_checksum(path: Path, expected: str) -> bool:
    """Check a file against a SHA256 digest (``abc...`` or ``sha256:abc...``)."""
    return file_sha256(path) == expected.removeprefix("sha256:").lower()


def extract_archive(archive: Path, dest: Path) -> dict[str, Any]:
    """Extract a gzip tarball into ``dest``.

    Members that would escape ``dest`` (absolute paths, ``..``, device
    files) are rejected by the ``data`` filter.
    """
    try:
        with tarfile.open(archive, "r:gz") as tf:
            members = tf.getnames()
            tf.extractall(dest, filter="data")
    except (tarfile.TarError, EOFError, OSError) as exc:
        return {"ok": False, "error": f"Extract failed: {exc}"}

    logger.debug("Extracted %d entries from %s", len(members), archive.name)
    return {"ok": True, "members": members}


def find_binary(root: Path, name: str) -> Path | None:
    """Locate an extracted file named ``name`` (top level first)."""
    direct = root / name
    if direct.is_file():
        return direct
    for p in sorted(root.rglob(name)):
        if p.is_file():
            return p
    return None


def install_binary(
    source: Path,
    release: ReleaseConfig,
    *,
    timeout: int | None = None,
) -> dict[str, Any]:
    """Move ``source`` into the install dir and mark it executable.

    Uses plain file operations when the install dir is writable,
    otherwise ``sudo mv`` / ``sudo chmod +x``.
    """
    target = installed_path(release)
    install_dir = Path(release.install_dir)

    if install_dir.is_dir() and os.access(install_dir, os.W_OK):
        try:
            shutil.move(str(source), str(target))
            target.chmod(0o755)
        except OSError as exc:
            return {"ok": False, "error": f"Install failed: {exc}"}
        return {"ok": True, "path": str(target)}

    for cmd in (
        ["mv", str(source), str(target)],
        ["chmod", "+x", str(target)],
    ):
        result = run_command(cmd, needs_sudo=True, timeout=timeout)
        if not result["ok"]:
            return result
    return {"ok": True, "path": str(target)}

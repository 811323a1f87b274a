"""
Release archive adapter — download, extract and install a pinned CLI.

The archive is written to the working directory and removed only after
the binary is installed; a failed run leaves it behind for inspection.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from pydantic import ValidationError

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt
from provisioner.core.models.config import ReleaseConfig
from provisioner.core.services.release import (
    archive_name,
    download_file,
    extract_archive,
    file_sha256,
    find_binary,
    install_binary,
    installed_path,
    release_url,
)
from provisioner.core.services.tool_version import get_tool_version

logger = logging.getLogger(__name__)


class ReleaseArchiveAdapter(Adapter):
    """Install a binary from a versioned release tarball.

    Action params:
        release (dict): A ``ReleaseConfig`` dump.
    """

    @property
    def name(self) -> str:
        return "release"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        try:
            ReleaseConfig.model_validate(context.params.get("release", {}))
        except ValidationError as e:
            return False, f"Invalid release params: {e}"
        if not Path(context.work_dir).is_dir():
            return False, f"Working directory does not exist: {context.work_dir}"
        return True, ""

    def _fail(self, context: ExecutionContext, error: str, **metadata) -> Receipt:
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=error,
            metadata=metadata,
        )

    def execute(self, context: ExecutionContext) -> Receipt:
        release = ReleaseConfig.model_validate(context.params["release"])
        target = installed_path(release)

        if release.skip_if_current and target.is_file():
            current = get_tool_version(
                release.binary,
                [str(target), "--version"],
                env_overrides=context.env or None,
            )
            if current == release.version:
                logger.info("%s %s already installed at %s", release.binary, current, target)
                return Receipt.skip(
                    adapter=self.name,
                    action_id=context.action.id,
                    reason=f"{release.binary} {current} already installed",
                    metadata={"path": str(target), "version": current},
                )

        url = release_url(release)
        archive = Path(context.work_dir) / archive_name(release)
        logger.info("Downloading %s", url)

        downloaded = download_file(url, archive, timeout=context.timeout)
        if not downloaded["ok"]:
            return self._fail(context, downloaded["error"], url=url)

        digest = file_sha256(archive)
        if release.sha256:
            if digest != release.sha256:
                return self._fail(
                    context,
                    f"SHA256 mismatch for {archive.name}\n"
                    f"Expected: {release.sha256}\n"
                    f"Got:      {digest}",
                    url=url,
                    sha256=digest,
                )
        else:
            logger.warning("No sha256 pinned for %s; installing unverified archive", archive.name)

        with tempfile.TemporaryDirectory(prefix=".extract-", dir=context.work_dir) as tmp:
            staging = Path(tmp)
            extracted = extract_archive(archive, staging)
            if not extracted["ok"]:
                return self._fail(context, extracted["error"], url=url, sha256=digest)

            binary = find_binary(staging, release.binary)
            if binary is None:
                return self._fail(
                    context,
                    f"'{release.binary}' not found in {archive.name}",
                    url=url,
                    sha256=digest,
                    members=extracted["members"][:20],
                )

            installed = install_binary(binary, release, timeout=context.timeout)
            if not installed["ok"]:
                return self._fail(
                    context,
                    installed["error"],
                    url=url,
                    sha256=digest,
                    return_code=installed.get("return_code"),
                )

        archive.unlink(missing_ok=True)

        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=f"Installed {release.binary} {release.version} to {target}",
            metadata={
                "url": url,
                "sha256": digest,
                "path": str(target),
                "size_bytes": downloaded["size_bytes"],
            },
        )

"""
rustup bootstrap adapter — fetch, verify and run the rustup installer.

Equivalent to ``curl --proto '=https' --tlsv1.2 -sSf https://sh.rustup.rs
| sh -s -- -y`` except that the script lands on disk first, so a pinned
SHA256 can be checked before it runs.
"""

from __future__ import annotations

import logging
import shutil

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt
from provisioner.core.services.script_verify import (
    cleanup_script,
    download_and_verify_script,
    script_command,
)
from provisioner.core.services.subprocess_runner import run_command

logger = logging.getLogger(__name__)


class RustupBootstrapAdapter(Adapter):
    """Install rustup unattended.

    Action params:
        url (str): Installer script URL.
        sha256 (str | None): Expected script digest.
        args (list[str]): Arguments for the installer (default ``["-y"]``).
    """

    @property
    def name(self) -> str:
        return "rustup"

    def is_available(self) -> bool:
        return shutil.which("curl") is not None and shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        url = context.params.get("url", "")
        if not url.startswith("https://"):
            return False, f"Installer URL must use https: {url!r}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        url = context.params["url"]
        args = list(context.params.get("args", ["-y"]))

        fetched = download_and_verify_script(
            url,
            expected_sha256=context.params.get("sha256"),
            timeout=context.timeout,
        )
        if not fetched["ok"]:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=fetched["error"],
                metadata={"url": url, "return_code": fetched.get("return_code")},
            )

        script_path = fetched["path"]
        try:
            result = run_command(
                script_command(script_path, args),
                timeout=context.timeout,
                env_overrides=context.env or None,
                cwd=context.work_dir,
            )
        finally:
            cleanup_script(script_path)

        metadata = {
            "url": url,
            "sha256": fetched["sha256"],
            "return_code": result.get("return_code"),
        }
        if not result["ok"]:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=result["error"],
                metadata=metadata,
            )

        logger.info("rustup installer finished (script sha256 %s)", fetched["sha256"])
        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=result["stdout"].strip(),
            metadata=metadata,
        )

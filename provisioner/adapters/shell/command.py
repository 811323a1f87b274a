"""
Shell command adapter — run one provisioning command.

Used for the package manager and toolchain-manager steps
(``apt-get``, ``rustup target add``).
"""

from __future__ import annotations

import logging
import shutil

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt
from provisioner.core.services.subprocess_runner import run_command

logger = logging.getLogger(__name__)


class ShellCommandAdapter(Adapter):
    """Execute a command and capture output.

    Action params:
        command (list[str]): argv to execute.
        needs_sudo (bool): Prefix with sudo when not root (default: False).
        cwd (str): Override working directory (default: context.work_dir).
    """

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        command = context.params.get("command")
        if not command or not isinstance(command, list):
            return False, "Missing required param: 'command' (argv list)"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        command: list[str] = [str(c) for c in context.params["command"]]
        needs_sudo = bool(context.params.get("needs_sudo", False))
        cwd = context.params.get("cwd", context.work_dir)

        result = run_command(
            command,
            needs_sudo=needs_sudo,
            timeout=context.timeout,
            env_overrides=context.env or None,
            cwd=cwd,
        )

        metadata = {
            "command": command,
            "return_code": result.get("return_code"),
        }
        if result["ok"]:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=result["stdout"].strip(),
                metadata={**metadata, "stderr": result.get("stderr", "").strip()},
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=result["error"],
            metadata={**metadata, "stdout": result.get("stdout", "").strip()},
        )

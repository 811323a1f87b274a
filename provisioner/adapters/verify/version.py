"""
Version check adapter — ``<tool> --version`` as a health probe.

A missing binary or non-zero exit fails the receipt; whether that
failure stops the run is the action's ``fatal`` flag, decided by the
installer.
"""

from __future__ import annotations

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt
from provisioner.core.services.subprocess_runner import EXIT_NOT_FOUND, run_command
from provisioner.core.services.tool_version import parse_version, which


class VersionCheckAdapter(Adapter):
    """Run a tool's version query.

    Action params:
        tool (str): Tool name (used for version parsing).
        command (list[str]): Version command (default ``[tool, "--version"]``).
    """

    @property
    def name(self) -> str:
        return "verify"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.params.get("tool"):
            return False, "Missing required param: 'tool'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        tool = context.params["tool"]
        command = list(context.params.get("command") or [tool, "--version"])

        if not which(command[0], context.env or None):
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"{command[0]}: command not found",
                metadata={"tool": tool, "return_code": EXIT_NOT_FOUND},
            )

        result = run_command(
            command,
            timeout=context.timeout,
            env_overrides=context.env or None,
        )
        output = (result.get("stdout") or "").strip()
        metadata = {
            "tool": tool,
            "command": command,
            "return_code": result.get("return_code"),
            "version": parse_version(tool, output + (result.get("stderr") or "")),
        }
        if not result["ok"]:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=result["error"],
                metadata=metadata,
            )
        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=output,
            metadata=metadata,
        )

"""
Adapter base — the seam between the installer and the machine.

apt, rustup, curl, tarballs and ``--version`` probes are only reached
through ``Adapter`` subclasses; the engine sees Actions and Receipts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from provisioner.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """Per-action inputs handed to an adapter.

    ``env`` holds the overrides exported by earlier actions, PATH after
    cargo activation being the one that matters.
    """

    action: Action
    work_dir: str = "."
    dry_run: bool = False
    timeout: int | None = None
    env: dict[str, str] = Field(default_factory=dict)

    @property
    def params(self) -> dict[str, Any]:
        return self.action.params


class Adapter(ABC):
    """Performs one kind of side effect and reports it as a Receipt.

    ``execute`` must not raise: every failure, including a missing
    binary, becomes ``Receipt.failure``. The registry still guards
    against adapters that break this rule.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry key, matched against ``Action.adapter``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the tools this adapter shells out to are present."""

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Check the action params before anything runs (also in dry runs).

        Returns:
            ``(True, "")`` or ``(False, reason)``.
        """
        return True, ""

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Perform the action."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"

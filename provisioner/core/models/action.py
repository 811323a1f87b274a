"""
Action and Receipt models — what the installer asks for, and what it gets back.

``build_plan`` emits Actions; adapters answer each one with a Receipt.
A failing command is a ``failed`` Receipt, never an exception.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

ReceiptStatus = Literal["ok", "skipped", "failed"]


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class Action(BaseModel):
    """One provisioning step, bound to the adapter that performs it."""

    id: str                         # "packages:install", "verify:git", ...
    name: str = ""
    stage: int = 1                  # 1 packages … 6 verification
    adapter: str
    params: dict[str, Any] = Field(default_factory=dict)

    fatal: bool = True                  # False: failure is only a warning
    banner: str | None = None           # printed before the step runs
    failure_message: str | None = None  # printed instead of the generic error line


class Receipt(BaseModel):
    """Outcome of one action.

    ``metadata`` carries adapter specifics: ``return_code`` of the
    command that ran, and ``env`` overrides the installer should apply
    to every later action.
    """

    adapter: str
    action_id: str
    status: ReceiptStatus = "ok"

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def return_code(self) -> int | None:
        """Exit status of the underlying command, if one ran."""
        code = self.metadata.get("return_code")
        return code if isinstance(code, int) else None

    @classmethod
    def success(cls, adapter: str, action_id: str, output: str = "", **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, output=output, **kwargs)

    @classmethod
    def failure(cls, adapter: str, action_id: str, error: str, **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="failed", error=error, **kwargs)

    @classmethod
    def skip(cls, adapter: str, action_id: str, reason: str = "", **kwargs: Any) -> Receipt:
        """Nothing to do; ``reason`` becomes the output."""
        return cls(adapter=adapter, action_id=action_id, status="skipped", output=reason, **kwargs)

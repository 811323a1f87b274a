"""
Mock adapter — stands in for every real adapter during rehearsals and tests.

Records each context it receives and answers with a success unless a
scripted receipt was set for that action.
"""

from __future__ import annotations

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt


class MockAdapter(Adapter):
    """Scriptable adapter double.

    Usage::

        mock = MockAdapter()
        mock.set_failure("packages:install", "E: Unable to locate package", 100)
        registry.set_mock_mode(True, mock_adapter=mock)
    """

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "[mock] executed",
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._scripted: dict[str, Receipt] = {}
        self.call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_count(self) -> int:
        return len(self.call_log)

    @property
    def executed_ids(self) -> list[str]:
        """Action IDs in the order they reached the adapter."""
        return [ctx.action.id for ctx in self.call_log]

    def is_available(self) -> bool:
        return self._available

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        self._scripted[action_id] = receipt

    def set_failure(
        self,
        action_id: str,
        error: str = "Mock failure",
        return_code: int | None = None,
    ) -> None:
        """Make ``action_id`` fail, optionally with a command exit code."""
        self._scripted[action_id] = Receipt.failure(
            adapter=self._name,
            action_id=action_id,
            error=error,
            metadata={} if return_code is None else {"return_code": return_code},
        )

    def execute(self, context: ExecutionContext) -> Receipt:
        self.call_log.append(context)
        scripted = self._scripted.get(context.action.id)
        if scripted is not None:
            return scripted
        return Receipt.success(
            adapter=self._name,
            action_id=context.action.id,
            output=self._default_output,
            metadata={"mock": True},
        )

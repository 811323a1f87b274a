"""
Adapter registry — routes each provisioning action to its adapter.

The executor hands every action to ``execute_action`` and always gets a
Receipt back: unknown adapters, rejected params, dry runs and adapter
crashes all come back as receipts, never as exceptions.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Name → adapter table plus the dispatch rules around it.

    In mock mode every action goes to a single stand-in adapter (or,
    without one, succeeds immediately), so a whole provisioning run can
    be rehearsed without touching the machine.
    """

    def __init__(self, mock_mode: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self._mock_mode = mock_mode
        self._mock_adapter: Adapter | None = None

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def set_mock_mode(self, enabled: bool, mock_adapter: Adapter | None = None) -> None:
        """Route every action to ``mock_adapter`` (or to canned successes)."""
        self._mock_mode = enabled
        self._mock_adapter = mock_adapter

    def register(self, adapter: Adapter) -> None:
        if adapter.name in self._adapters:
            logger.warning("Replacing adapter %r", adapter.name)
        self._adapters[adapter.name] = adapter

    def unregister(self, name: str) -> None:
        self._adapters.pop(name, None)

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def list_adapters(self) -> list[str]:
        return list(self._adapters)

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Availability of each registered adapter's underlying tools."""
        status: dict[str, dict[str, Any]] = {}
        for name, adapter in self._adapters.items():
            try:
                available = bool(adapter.is_available())
            except Exception as e:
                logger.debug("Availability probe for %s raised: %s", name, e)
                available = False
            status[name] = {"available": available, "type": type(adapter).__name__}
        return status

    def _resolve(self, action: Action) -> Adapter | Receipt:
        if not self._mock_mode:
            adapter = self._adapters.get(action.adapter)
            if adapter is None:
                return Receipt.failure(
                    adapter=action.adapter,
                    action_id=action.id,
                    error=f"No adapter registered for '{action.adapter}'",
                )
            return adapter
        if self._mock_adapter is not None:
            return self._mock_adapter
        return Receipt.success(
            adapter=action.adapter,
            action_id=action.id,
            output=f"[mock] {action.id}",
            metadata={"mock": True},
        )

    def execute_action(
        self,
        action: Action,
        work_dir: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
        dry_run: bool = False,
    ) -> Receipt:
        """Run one action: resolve, validate, then execute or dry-run.

        ``env`` is copied into the context, so adapters cannot mutate
        the caller's accumulated environment.
        """
        started = time.monotonic()

        resolved = self._resolve(action)
        if isinstance(resolved, Receipt):
            return resolved

        context = ExecutionContext(
            action=action,
            work_dir=work_dir,
            dry_run=dry_run,
            timeout=timeout,
            env=dict(env or {}),
        )

        try:
            valid, reason = resolved.validate(context)
        except Exception as e:
            valid, reason = False, f"validator raised {e}"
        if not valid:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation failed: {reason}",
            )

        if dry_run:
            return Receipt.skip(
                adapter=action.adapter,
                action_id=action.id,
                reason=f"[dry-run] {action.name or action.id}",
                metadata={"dry_run": True},
            )

        try:
            receipt = resolved.execute(context)
        except Exception as e:
            logger.exception("Adapter %s crashed on %s", action.adapter, action.id)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )

        receipt.duration_ms = int((time.monotonic() - started) * 1000)
        return receipt

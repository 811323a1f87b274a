"""
Provision use case — the Installer's ``run()``.

Loads configuration, builds the plan, wires the adapter registry and
executes. The full vertical slice from CLI intent to a report whose
``exit_code`` becomes the process exit status.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.config.loader import ConfigError, load_config
from provisioner.core.engine.executor import (
    STAGE_PACKAGES,
    ExecutionPlan,
    ExecutionReport,
    build_plan,
    execute_plan,
)
from provisioner.core.models.action import Action, Receipt
from provisioner.core.models.config import ProvisionConfig

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """Result of a provisioning run (or of planning one)."""

    config: ProvisionConfig | None = None
    plan: ExecutionPlan | None = None
    report: ExecutionReport | None = None
    error: str | None = None

    @property
    def exit_code(self) -> int:
        if self.error:
            return 1
        if self.report is None:
            return 0
        return self.report.exit_code

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        if self.plan:
            result["plan"] = self.plan.to_dict()
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def default_registry(mock_mode: bool = False) -> AdapterRegistry:
    """Registry with every adapter the installer needs."""
    from provisioner.adapters.release.archive import ReleaseArchiveAdapter
    from provisioner.adapters.shell.command import ShellCommandAdapter
    from provisioner.adapters.toolchain.environment import CargoEnvAdapter
    from provisioner.adapters.toolchain.rustup import RustupBootstrapAdapter
    from provisioner.adapters.verify.version import VersionCheckAdapter

    registry = AdapterRegistry(mock_mode=mock_mode)
    registry.register(ShellCommandAdapter())
    registry.register(RustupBootstrapAdapter())
    registry.register(CargoEnvAdapter())
    registry.register(ReleaseArchiveAdapter())
    registry.register(VersionCheckAdapter())
    return registry


def plan_provision(
    config_path: Path | None = None,
    start_from: int = STAGE_PACKAGES,
) -> ProvisionResult:
    """Load configuration and lay out the plan without executing it."""
    result = ProvisionResult()
    try:
        result.config = load_config(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    try:
        result.plan = build_plan(result.config, start_from=start_from)
    except ValueError as e:
        result.error = str(e)
    return result


def run_provision(
    config_path: Path | None = None,
    start_from: int = STAGE_PACKAGES,
    dry_run: bool = False,
    mock_mode: bool = False,
    registry: AdapterRegistry | None = None,
    work_dir: Path | None = None,
    on_action: Callable[[Action], None] | None = None,
    on_receipt: Callable[[Action, Receipt], None] | None = None,
) -> ProvisionResult:
    """Provision the machine.

    Args:
        config_path: Optional explicit path to provision.yml.
        start_from: First stage to run (resume support).
        dry_run: If True, validate every action but execute none.
        mock_mode: If True, adapters are replaced by mock successes.
        registry: Optional pre-configured adapter registry.
        work_dir: Where the release archive is downloaded (default: cwd).
        on_action: Progress callback, before each action.
        on_receipt: Progress callback, after each action.

    Returns:
        ProvisionResult with the execution report.
    """
    result = plan_provision(config_path, start_from=start_from)
    if result.error:
        return result

    assert result.config is not None and result.plan is not None

    if registry is None:
        registry = default_registry(mock_mode=mock_mode)

    logger.info(
        "Provisioning %s: %d actions from stage %d",
        result.plan.operation_id,
        result.plan.total_actions,
        start_from,
    )
    result.report = execute_plan(
        result.plan,
        registry,
        work_dir=str(work_dir or Path.cwd()),
        timeout=result.config.timeout_seconds,
        dry_run=dry_run,
        on_action=on_action,
        on_receipt=on_receipt,
    )
    return result

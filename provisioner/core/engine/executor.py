"""
Engine executor — the installer's orchestration loop.

Takes a provisioning config, lays it out as an ordered plan of actions,
executes them one by one through the adapter registry and collects
receipts.

Flow:
    config → build plan → execute (fail fast) → report

State machine:
    S0 → S1 (packages) → S2 (rustup) → S3 (env) → S4 (targets)
       → S5 (release) → S6 (verification) → done
    Any failed fatal action moves to the absorbing ``failed`` state.
    Failed non-fatal actions are recorded as warnings and the run goes on.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.models.action import Action, Receipt
from provisioner.core.models.config import ProvisionConfig

logger = logging.getLogger(__name__)

STAGE_PACKAGES = 1
STAGE_BOOTSTRAP = 2
STAGE_ACTIVATE = 3
STAGE_TARGETS = 4
STAGE_RELEASE = 5
STAGE_VERIFY = 6

STAGE_NAMES: dict[int, str] = {
    STAGE_PACKAGES: "System packages",
    STAGE_BOOTSTRAP: "Toolchain-manager bootstrap",
    STAGE_ACTIVATE: "Environment activation",
    STAGE_TARGETS: "Target registration",
    STAGE_RELEASE: "Release acquisition",
    STAGE_VERIFY: "Verification",
}

START_BANNER = "=== Instalación automática de Stellar CLI en Ubuntu ==="
DONE_BANNER = "=== Instalación completada correctamente ==="

RunState = Literal["pending", "done", "failed"]


@dataclass
class ExecutionPlan:
    """An ordered set of actions to execute."""

    operation_id: str = ""
    start_from: int = STAGE_PACKAGES
    actions: list[Action] = field(default_factory=list)

    @property
    def total_actions(self) -> int:
        return len(self.actions)

    @property
    def stages(self) -> list[int]:
        return sorted({a.stage for a in self.actions})

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "start_from": self.start_from,
            "actions": [
                {
                    "id": a.id,
                    "name": a.name,
                    "stage": a.stage,
                    "stage_name": STAGE_NAMES.get(a.stage, ""),
                    "adapter": a.adapter,
                    "fatal": a.fatal,
                }
                for a in self.actions
            ],
        }


@dataclass
class ExecutionReport:
    """Result of executing a plan."""

    operation_id: str = ""
    receipts: list[Receipt] = field(default_factory=list)
    state: RunState = "pending"
    failed_action: Action | None = None
    warnings: list[Receipt] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.receipts)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.receipts if r.ok)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.receipts if r.status == "skipped")

    @property
    def ok(self) -> bool:
        return self.state == "done"

    @property
    def failed_receipt(self) -> Receipt | None:
        if self.failed_action is None:
            return None
        for receipt in reversed(self.receipts):
            if receipt.action_id == self.failed_action.id:
                return receipt
        return None

    @property
    def exit_code(self) -> int:
        """Process exit status for this run.

        Provisioning failures propagate the command's own exit code;
        verification failures always exit 1.
        """
        if self.state == "done":
            return 0
        receipt = self.failed_receipt
        if (
            self.failed_action is not None
            and self.failed_action.stage != STAGE_VERIFY
            and receipt is not None
            and receipt.return_code
        ):
            return receipt.return_code
        return 1

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "state": self.state,
            "exit_code": self.exit_code,
            "total": self.total,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed_action": self.failed_action.id if self.failed_action else None,
            "warnings": [r.action_id for r in self.warnings],
            "receipts": [r.model_dump(mode="json") for r in self.receipts],
        }


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"op-{now}-{short}"


def _package_actions(config: ProvisionConfig) -> list[Action]:
    actions: list[Action] = []
    if config.apt_update:
        actions.append(Action(
            id="packages:update",
            name="Refresh package index",
            stage=STAGE_PACKAGES,
            adapter="shell",
            params={"command": ["apt-get", "update", "-y"], "needs_sudo": True},
        ))
    if config.packages:
        actions.append(Action(
            id="packages:install",
            name="Install " + ", ".join(config.packages),
            stage=STAGE_PACKAGES,
            adapter="shell",
            params={
                "command": ["apt-get", "install", "-y", *config.packages],
                "needs_sudo": True,
            },
        ))
    return actions


def _verify_actions(config: ProvisionConfig) -> list[Action]:
    return [
        Action(
            id=f"verify:{check.tool}",
            name=f"{check.tool} --version" if not check.command else " ".join(check.command),
            stage=STAGE_VERIFY,
            adapter="verify",
            params={"tool": check.tool, "command": check.resolved_command()},
            fatal=check.fatal,
            banner=check.banner,
            failure_message=check.failure_message,
        )
        for check in config.checks
    ]


def build_plan(
    config: ProvisionConfig,
    operation_id: str = "",
    start_from: int = STAGE_PACKAGES,
) -> ExecutionPlan:
    """Lay out the provisioning actions in execution order.

    Args:
        config: Provisioning configuration.
        operation_id: Unique operation identifier.
        start_from: First stage to run (1..6). Stages before it are
            dropped, except environment activation, which changes no
            state on disk and is needed by every later stage. When
            resuming past it, activation is non-fatal.

    Returns:
        ExecutionPlan with actions ready to execute.
    """
    if start_from not in STAGE_NAMES:
        raise ValueError(f"start_from must be between 1 and {STAGE_VERIFY}, got {start_from}")

    rel = config.release
    actions: list[Action] = [
        *_package_actions(config),
        Action(
            id="rustup:bootstrap",
            name="Install rustup (unattended)",
            stage=STAGE_BOOTSTRAP,
            adapter="rustup",
            params={
                "url": config.rustup.url,
                "sha256": config.rustup.sha256,
                "args": config.rustup.args,
            },
        ),
        Action(
            id="env:activate",
            name="Activate cargo environment",
            stage=STAGE_ACTIVATE,
            adapter="env",
            fatal=start_from <= STAGE_ACTIVATE,
        ),
        *[
            Action(
                id=f"target:{target}",
                name=f"rustup target add {target}",
                stage=STAGE_TARGETS,
                adapter="shell",
                params={"command": ["rustup", "target", "add", target]},
            )
            for target in config.targets
        ],
        Action(
            id=f"release:{rel.binary}",
            name=f"Install {rel.name} {rel.version} ({rel.triple})",
            stage=STAGE_RELEASE,
            adapter="release",
            params={"release": rel.model_dump(mode="json")},
        ),
        *_verify_actions(config),
    ]

    kept = [a for a in actions if a.stage >= start_from or a.stage == STAGE_ACTIVATE]
    return ExecutionPlan(
        operation_id=operation_id or generate_operation_id(),
        start_from=start_from,
        actions=kept,
    )


def execute_plan(
    plan: ExecutionPlan,
    registry: AdapterRegistry,
    work_dir: str = ".",
    timeout: int | None = None,
    dry_run: bool = False,
    on_action: Callable[[Action], None] | None = None,
    on_receipt: Callable[[Action, Receipt], None] | None = None,
) -> ExecutionReport:
    """Execute a plan's actions in order, stopping at the first fatal failure.

    Env overrides exported by a receipt (``metadata["env"]``) apply to
    every later action.

    Args:
        plan: The execution plan.
        registry: Adapter registry for dispatch.
        work_dir: Working directory (downloads land here).
        timeout: Per-command timeout in seconds, None for no limit.
        dry_run: If True, validate but don't execute.
        on_action: Called before each action runs.
        on_receipt: Called with each action's receipt.

    Returns:
        ExecutionReport with all receipts and the terminal state.
    """
    report = ExecutionReport(operation_id=plan.operation_id)
    env: dict[str, str] = {}

    for action in plan.actions:
        if on_action:
            on_action(action)

        logger.info("→ [%d/%d] %s", action.stage, STAGE_VERIFY, action.name or action.id)
        receipt = registry.execute_action(
            action=action,
            work_dir=work_dir,
            env=env,
            timeout=timeout,
            dry_run=dry_run,
        )
        report.receipts.append(receipt)

        exported = receipt.metadata.get("env")
        if receipt.ok and isinstance(exported, dict):
            env.update(exported)

        status_marker = "✓" if receipt.ok else "✗" if receipt.failed else "⊘"
        logger.info("%s %s → %s", status_marker, action.id, receipt.status)

        if on_receipt:
            on_receipt(action, receipt)

        if not receipt.failed:
            continue

        if action.fatal:
            logger.error("Fatal failure in %s: %s", action.id, receipt.error)
            report.state = "failed"
            report.failed_action = action
            return report

        logger.warning("Non-fatal check %s failed: %s", action.id, receipt.error)
        report.warnings.append(receipt)

    report.state = "done"
    return report

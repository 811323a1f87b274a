"""
Tests for the installer engine — planning, fail-fast execution, reports.
"""

import pytest

from provisioner.adapters.mock import MockAdapter
from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.engine.executor import (
    STAGE_ACTIVATE,
    STAGE_RELEASE,
    STAGE_VERIFY,
    ExecutionReport,
    build_plan,
    execute_plan,
    generate_operation_id,
)
from provisioner.core.models.action import Receipt
from provisioner.core.models.config import ProvisionConfig

FULL_ORDER = [
    "packages:update",
    "packages:install",
    "rustup:bootstrap",
    "env:activate",
    "target:wasm32v1-none",
    "release:stellar",
    "verify:rustc",
    "verify:cargo",
    "verify:rustup",
    "verify:stellar",
    "verify:git",
]


# ── Planning ─────────────────────────────────────────────────────────


class TestBuildPlan:
    def test_default_order(self):
        plan = build_plan(ProvisionConfig(), "op-1")
        assert [a.id for a in plan.actions] == FULL_ORDER
        assert plan.operation_id == "op-1"

    def test_stages_are_monotonic(self):
        stages = [a.stage for a in build_plan(ProvisionConfig()).actions]
        assert stages == sorted(stages)
        assert build_plan(ProvisionConfig()).stages == [1, 2, 3, 4, 5, 6]

    def test_package_commands(self):
        plan = build_plan(ProvisionConfig())
        update, install = plan.actions[0], plan.actions[1]
        assert update.params == {"command": ["apt-get", "update", "-y"], "needs_sudo": True}
        assert install.params["command"] == [
            "apt-get", "install", "-y", "curl", "build-essential", "git",
        ]

    def test_target_command(self):
        plan = build_plan(ProvisionConfig())
        target = next(a for a in plan.actions if a.id == "target:wasm32v1-none")
        assert target.params["command"] == ["rustup", "target", "add", "wasm32v1-none"]

    def test_release_params(self):
        plan = build_plan(ProvisionConfig())
        release = next(a for a in plan.actions if a.stage == STAGE_RELEASE)
        assert release.params["release"]["version"] == "23.1.1"

    def test_only_git_is_non_fatal(self):
        plan = build_plan(ProvisionConfig())
        assert [a.id for a in plan.actions if not a.fatal] == ["verify:git"]

    def test_banners(self):
        plan = build_plan(ProvisionConfig())
        banners = [a.banner for a in plan.actions if a.banner]
        assert banners == [
            "=== Verificando instalación de Rust ===",
            "=== Verificando instalación de Stellar CLI ===",
            "=== Verificando instalación de Git ===",
        ]

    def test_skip_apt_update(self):
        plan = build_plan(ProvisionConfig(apt_update=False))
        assert plan.actions[0].id == "packages:install"

    def test_no_packages(self):
        plan = build_plan(ProvisionConfig(apt_update=False, packages=[]))
        assert plan.actions[0].id == "rustup:bootstrap"

    def test_multiple_targets(self):
        plan = build_plan(ProvisionConfig(targets=["wasm32v1-none", "wasm32-unknown-unknown"]))
        ids = [a.id for a in plan.actions]
        assert ids.index("target:wasm32v1-none") < ids.index("target:wasm32-unknown-unknown")

    def test_resume_keeps_activation(self):
        plan = build_plan(ProvisionConfig(), start_from=STAGE_RELEASE)
        assert [a.id for a in plan.actions][:2] == ["env:activate", "release:stellar"]
        activation = plan.actions[0]
        assert activation.stage == STAGE_ACTIVATE
        assert activation.fatal is False

    def test_resume_at_activation_is_fatal(self):
        plan = build_plan(ProvisionConfig(), start_from=STAGE_ACTIVATE)
        assert plan.actions[0].id == "env:activate"
        assert plan.actions[0].fatal is True

    def test_verify_only(self):
        plan = build_plan(ProvisionConfig(), start_from=STAGE_VERIFY)
        assert [a.id for a in plan.actions] == ["env:activate"] + FULL_ORDER[6:]

    @pytest.mark.parametrize("bad", [0, 7, -1])
    def test_invalid_start(self, bad):
        with pytest.raises(ValueError):
            build_plan(ProvisionConfig(), start_from=bad)

    def test_generated_operation_id(self):
        assert build_plan(ProvisionConfig()).operation_id.startswith("op-")

    def test_to_dict(self):
        d = build_plan(ProvisionConfig(), "op-9").to_dict()
        assert d["operation_id"] == "op-9"
        assert d["actions"][0]["stage_name"] == "System packages"


# ── Execution ────────────────────────────────────────────────────────


class TestExecutePlan:
    def test_all_succeed(self, mock: MockAdapter, mock_registry: AdapterRegistry):
        plan = build_plan(ProvisionConfig(), "op-1")
        report = execute_plan(plan, mock_registry)

        assert report.ok
        assert report.state == "done"
        assert report.exit_code == 0
        assert mock.executed_ids == FULL_ORDER
        assert report.succeeded == len(FULL_ORDER)

    @pytest.mark.parametrize("failing", FULL_ORDER[:-1])
    def test_fatal_failure_short_circuits(
        self, failing: str, mock: MockAdapter, mock_registry: AdapterRegistry,
    ):
        mock.set_failure(failing, "boom")
        report = execute_plan(build_plan(ProvisionConfig()), mock_registry)

        assert report.state == "failed"
        assert report.failed_action is not None
        assert report.failed_action.id == failing
        assert mock.executed_ids == FULL_ORDER[: FULL_ORDER.index(failing) + 1]
        assert report.exit_code != 0

    def test_non_fatal_git_failure(self, mock: MockAdapter, mock_registry: AdapterRegistry):
        mock.set_failure("verify:git", "git: command not found", return_code=127)
        report = execute_plan(build_plan(ProvisionConfig()), mock_registry)

        assert report.ok
        assert report.exit_code == 0
        assert [r.action_id for r in report.warnings] == ["verify:git"]

    def test_non_fatal_does_not_stop_later_checks(
        self, mock: MockAdapter, mock_registry: AdapterRegistry,
    ):
        cfg = ProvisionConfig.model_validate({
            "checks": [
                {"tool": "git", "fatal": False},
                {"tool": "rustc"},
            ],
        })
        mock.set_failure("verify:git")
        report = execute_plan(build_plan(cfg), mock_registry)
        assert report.ok
        assert mock.executed_ids[-2:] == ["verify:git", "verify:rustc"]

    def test_exit_code_propagated_from_command(
        self, mock: MockAdapter, mock_registry: AdapterRegistry,
    ):
        mock.set_failure("packages:install", "E: Unable to locate package", return_code=100)
        report = execute_plan(build_plan(ProvisionConfig()), mock_registry)
        assert report.exit_code == 100

    def test_exit_code_defaults_to_one(self, mock: MockAdapter, mock_registry: AdapterRegistry):
        mock.set_failure("release:stellar", "Extract failed: not a gzip file")
        report = execute_plan(build_plan(ProvisionConfig()), mock_registry)
        assert report.exit_code == 1

    def test_verification_failure_exits_one(
        self, mock: MockAdapter, mock_registry: AdapterRegistry,
    ):
        mock.set_failure("verify:cargo", "cargo: command not found", return_code=127)
        report = execute_plan(build_plan(ProvisionConfig()), mock_registry)
        assert report.exit_code == 1
        assert report.failed_action.failure_message == "Error: Cargo no se instaló correctamente"

    def test_env_exported_to_later_actions(
        self, mock: MockAdapter, mock_registry: AdapterRegistry,
    ):
        mock.set_response(
            "env:activate",
            Receipt.success(
                adapter="env",
                action_id="env:activate",
                metadata={"env": {"PATH": "/home/dev/.cargo/bin:/usr/bin"}},
            ),
        )
        execute_plan(build_plan(ProvisionConfig()), mock_registry)

        envs = {ctx.action.id: ctx.env for ctx in mock.call_log}
        assert envs["rustup:bootstrap"] == {}
        assert envs["target:wasm32v1-none"]["PATH"].startswith("/home/dev/.cargo/bin")
        assert envs["verify:rustc"]["PATH"].startswith("/home/dev/.cargo/bin")

    def test_timeout_and_work_dir_passed(self, mock: MockAdapter, mock_registry: AdapterRegistry):
        execute_plan(build_plan(ProvisionConfig()), mock_registry, work_dir="/tmp/x", timeout=30)
        ctx = mock.call_log[0]
        assert ctx.work_dir == "/tmp/x"
        assert ctx.timeout == 30

    def test_callbacks_order(self, mock_registry: AdapterRegistry):
        events: list[str] = []
        execute_plan(
            build_plan(ProvisionConfig(), start_from=STAGE_VERIFY),
            mock_registry,
            on_action=lambda a: events.append(f"start:{a.id}"),
            on_receipt=lambda a, r: events.append(f"end:{a.id}:{r.status}"),
        )
        assert events[:2] == ["start:env:activate", "end:env:activate:ok"]
        assert events[-1] == "end:verify:git:ok"

    def test_dry_run_executes_nothing(self):
        mock = MockAdapter(adapter_name="shell")
        registry = AdapterRegistry()
        registry.register(mock)
        cfg = ProvisionConfig(checks=[], targets=["wasm32v1-none"])
        plan = build_plan(cfg, start_from=4)
        plan.actions = [a for a in plan.actions if a.adapter == "shell"]

        report = execute_plan(plan, registry, dry_run=True)
        assert report.ok
        assert report.skipped == 1
        assert mock.call_count == 0

    def test_missing_adapter_is_fatal(self):
        report = execute_plan(build_plan(ProvisionConfig()), AdapterRegistry())
        assert report.state == "failed"
        assert report.failed_action.id == "packages:update"
        assert "No adapter registered" in report.failed_receipt.error


class TestExecutionReport:
    def test_pending_report(self):
        report = ExecutionReport(operation_id="op-1")
        assert not report.ok
        assert report.failed_receipt is None

    def test_to_dict(self, mock: MockAdapter, mock_registry: AdapterRegistry):
        mock.set_failure("verify:git")
        report = execute_plan(build_plan(ProvisionConfig(), "op-2"), mock_registry)
        d = report.to_dict()
        assert d["operation_id"] == "op-2"
        assert d["state"] == "done"
        assert d["exit_code"] == 0
        assert d["warnings"] == ["verify:git"]
        assert d["failed_action"] is None
        assert len(d["receipts"]) == len(FULL_ORDER)


def test_operation_ids_unique():
    assert generate_operation_id() != generate_operation_id()

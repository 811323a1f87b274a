"""
Stellar toolchain provisioner — CLI entrypoint.

Usage:
    provision --help
    provision run
    provision run --from-step 5
    provision verify
    provision config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from provisioner import __version__
from provisioner.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="provision")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to provision.yml (default: auto-detect, else built-in defaults).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Provision a Rust + wasm32v1-none + Stellar CLI development machine."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("PROV_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("PROV_LOG_FILE"),
        log_file_level=os.environ.get("PROV_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


def _progress_printers(ctx: click.Context):
    """Callbacks that print banners, tool output and diagnostics."""
    from provisioner.core.engine.executor import STAGE_NAMES, STAGE_VERIFY

    verbose = ctx.obj.get("verbose", False)
    quiet = ctx.obj.get("quiet", False)

    def on_action(action) -> None:
        if action.banner:
            click.echo(action.banner)
        elif action.stage != STAGE_VERIFY and not quiet:
            click.secho(
                f"→ [{action.stage}/{STAGE_VERIFY}] {STAGE_NAMES[action.stage]}: {action.name}",
                fg="cyan",
            )

    def on_receipt(action, receipt) -> None:
        if receipt.ok:
            if action.stage == STAGE_VERIFY and receipt.output:
                click.echo(receipt.output)
            elif verbose and receipt.output:
                for line in receipt.output.split("\n")[-10:]:
                    click.echo(f"   │ {line}")
            return

        if receipt.status == "skipped":
            if not quiet:
                click.secho(f"   ⊘ {receipt.output}", fg="yellow")
            return

        if receipt.error:
            for line in receipt.error.split("\n")[-10:]:
                click.echo(line, err=True)
        if not action.fatal:
            click.secho(f"⚠️  {action.id} failed (non-fatal), continuing", fg="yellow", err=True)
        elif action.failure_message:
            click.secho(action.failure_message, fg="red")
        else:
            click.secho(f"❌ {action.name or action.id} failed", fg="red", err=True)

    return on_action, on_receipt


def _run(ctx: click.Context, *, start_from: int, as_json: bool, dry_run: bool, mock: bool) -> None:
    from provisioner.core.engine.executor import DONE_BANNER, START_BANNER
    from provisioner.core.use_cases.provision import run_provision

    on_action = on_receipt = None
    if not as_json:
        on_action, on_receipt = _progress_printers(ctx)

    if not as_json and start_from == 1:
        click.echo(START_BANNER)

    try:
        result = run_provision(
            config_path=ctx.obj.get("config_path"),
            start_from=start_from,
            dry_run=dry_run,
            mock_mode=mock,
            on_action=on_action,
            on_receipt=on_receipt,
        )
    except KeyboardInterrupt:
        click.secho("\n❌ Interrupted", fg="red", err=True)
        sys.exit(130)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    report = result.report
    assert report is not None

    if report.ok and dry_run:
        click.secho("Dry run complete, nothing was changed.", fg="cyan")
    elif report.ok:
        click.echo(DONE_BANNER)
    sys.exit(report.exit_code)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option(
    "--from-step",
    "start_from",
    type=click.IntRange(1, 6),
    default=1,
    show_default=True,
    help="Resume at this stage (1 packages … 6 verification).",
)
@click.option("--dry-run", is_flag=True, help="Plan and validate but don't execute.")
@click.option("--mock", is_flag=True, help="Use mock adapters (no real execution).")
@click.pass_context
def run(ctx: click.Context, as_json: bool, start_from: int, dry_run: bool, mock: bool) -> None:
    """Run the full provisioning sequence.

    Stops at the first fatal failure with that step's exit status.

    Examples:

        provision run

        provision run --from-step 5

        provision run --dry-run
    """
    _run(ctx, start_from=start_from, as_json=as_json, dry_run=dry_run, mock=mock)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--mock", is_flag=True, help="Use mock adapters (no real execution).")
@click.pass_context
def verify(ctx: click.Context, as_json: bool, mock: bool) -> None:
    """Run only the verification checks (stage 6)."""
    from provisioner.core.engine.executor import STAGE_VERIFY

    _run(ctx, start_from=STAGE_VERIFY, as_json=as_json, dry_run=False, mock=mock)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--from-step", "start_from", type=click.IntRange(1, 6), default=1)
@click.pass_context
def plan(ctx: click.Context, as_json: bool, start_from: int) -> None:
    """Show the ordered actions without executing anything."""
    from provisioner.core.engine.executor import STAGE_NAMES
    from provisioner.core.use_cases.provision import default_registry, plan_provision

    result = plan_provision(ctx.obj.get("config_path"), start_from=start_from)
    adapters = default_registry().adapter_status()

    if as_json:
        data = result.to_dict()
        if not result.error:
            data["adapters"] = adapters
        click.echo(json.dumps(data, indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    assert result.plan is not None
    click.secho(f"\n📋 Provisioning plan ({result.plan.total_actions} actions)", fg="cyan", bold=True)
    current_stage = 0
    for action in result.plan.actions:
        if action.stage != current_stage:
            current_stage = action.stage
            click.secho(f"   {current_stage}. {STAGE_NAMES[current_stage]}", bold=True)
        policy = "" if action.fatal else "  (non-fatal)"
        click.echo(f"     • {action.name}{policy}")

    used = {a.adapter for a in result.plan.actions}
    for name in sorted(used):
        if not adapters.get(name, {}).get("available", False):
            click.secho(f"   ⚠️  Adapter '{name}': required tools not found on PATH", fg="yellow")
    click.echo()


@cli.group()
def config() -> None:
    """Provisioning configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate provision.yml."""
    from provisioner.core.config.loader import ConfigError, find_config_file, load_config

    path = ctx.obj.get("config_path") or find_config_file()
    try:
        cfg = load_config(path, search=False)
    except ConfigError as e:
        if as_json:
            click.echo(json.dumps({"valid": False, "path": str(path), "errors": [str(e)]}, indent=2))
        else:
            click.secho("❌ Configuration errors:", fg="red", bold=True)
            click.echo(f"   • {e}")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps({"valid": True, "path": str(path) if path else None}, indent=2))
        return

    click.secho("✅ Configuration is valid", fg="green", bold=True)
    click.echo(f"   Source:   {path or 'built-in defaults'}")
    click.echo(f"   Packages: {', '.join(cfg.packages) or '-'}")
    click.echo(f"   Targets:  {', '.join(cfg.targets) or '-'}")
    click.echo(f"   Release:  {cfg.release.name} {cfg.release.version} ({cfg.release.triple})")
    if not cfg.release.sha256:
        click.secho("   ⚠️  No release sha256 pinned — archive will not be verified", fg="yellow")


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration as YAML."""
    import yaml

    from provisioner.core.config.loader import ConfigError, load_config

    try:
        cfg = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    click.echo(yaml.safe_dump(cfg.model_dump(mode="json"), sort_keys=False, allow_unicode=True))


if __name__ == "__main__":
    cli()

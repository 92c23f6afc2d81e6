"""
wp-bootstrap — CLI entrypoint.

Usage:
    wpbootstrap --help
    wpbootstrap provision
    wpbootstrap provision --dry-run
    wpbootstrap secrets check
    wpbootstrap config show
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click
import yaml

from wpbootstrap import __version__
from wpbootstrap.core.observability.logging_config import setup_logging


def _configure_logging(ctx: click.Context, log_file: str | None = None) -> None:
    """(Re)configure logging from the global flags, optionally with a log file."""
    obj = ctx.find_root().obj
    if obj["debug"]:
        level = "DEBUG"
    elif obj["verbose"]:
        level = "INFO"
    elif obj["quiet"]:
        level = "ERROR"
    else:
        level = os.environ.get("WPB_LOG_LEVEL", "INFO")

    setup_logging(
        level=level,
        log_file=os.environ.get("WPB_LOG_FILE") or log_file,
        quiet_third_party=not obj["debug"],
    )


def _load_settings_or_exit(ctx: click.Context):
    """Load settings for a command; a config error ends the process with 1."""
    from wpbootstrap.core.config.loader import ConfigError, load_settings

    try:
        return load_settings(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="wpbootstrap")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to a settings YAML file (default: $WPB_CONFIG or /etc/wpbootstrap.yml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """wp-bootstrap — provision WordPress on a fresh EC2 instance."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (console only until a command needs the file) ──
    _configure_logging(ctx)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--dry-run", is_flag=True, help="Fetch secrets and plan, but don't execute.")
@click.option("--mock", is_flag=True, help="Use mock adapter (no real execution).")
@click.pass_context
def provision(ctx: click.Context, as_json: bool, dry_run: bool, mock: bool) -> None:
    """Install and configure WordPress, MariaDB and phpMyAdmin.

    Examples:

        wpbootstrap provision

        wpbootstrap provision --dry-run

        wpbootstrap -c site.yml provision --json
    """
    from wpbootstrap.core.use_cases.provision import run_provision

    settings = _load_settings_or_exit(ctx)
    _configure_logging(ctx, log_file=settings.log_file)

    result = run_provision(settings, dry_run=dry_run, mock_mode=mock)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    report = result.report
    if report is None:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(result.exit_code)

    mode_label = "[dry-run] " if dry_run else "[mock] " if mock else ""
    click.secho(f"\n⚡ {mode_label}WordPress provisioning — {result.operation_id}", fg="cyan", bold=True)
    click.echo(f"   Steps: {len(result.plan.steps) if result.plan else 0} | Actions: {report.total}")
    click.echo()

    for step_name, receipts in report.step_receipts.items():
        failed = any(r.failed for r in receipts)
        skipped = all(r.status == "skipped" for r in receipts)
        if step_name == report.failed_step:
            click.secho(f"   ✗ {step_name}", fg="red")
            receipt = report.failed_receipt
            if receipt is not None and receipt.error:
                for line in receipt.error.split("\n")[:5]:
                    click.echo(f"     │ {line}")
        elif skipped:
            click.secho(f"   ⊘ {step_name}", fg="yellow")
        elif failed:
            click.secho(f"   ✓ {step_name} (with warnings)", fg="yellow")
        else:
            click.secho(f"   ✓ {step_name}", fg="green")

    click.echo()
    status_color = {"ok": "green", "partial": "yellow", "failed": "red"}.get(report.status, "white")
    click.secho(
        f"   Result: {report.succeeded}/{report.total} succeeded",
        fg=status_color,
        bold=True,
    )
    if report.aborted:
        click.secho(f"   Stopped at '{report.failed_step}' (exit {report.exit_code})", fg="red")
    click.echo()

    sys.exit(result.exit_code)


@cli.group()
def config() -> None:
    """Settings commands."""


@config.command("show")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_show(ctx: click.Context, as_json: bool) -> None:
    """Print the effective settings (defaults merged with the settings file)."""
    settings = _load_settings_or_exit(ctx)
    data = settings.model_dump(mode="json")

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(yaml.safe_dump(data, sort_keys=False, default_flow_style=False), nl=False)


# ── Register sub-command groups from wpbootstrap/ui/cli/ ────────────

from wpbootstrap.ui.cli.secrets import secrets  # noqa: E402

cli.add_command(secrets)


if __name__ == "__main__":
    cli()

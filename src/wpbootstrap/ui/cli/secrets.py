"""
CLI commands for the WordPress secret bundle.

Thin wrappers over ``wpbootstrap.core.use_cases.secrets_check``.
"""

from __future__ import annotations

import json
import sys

import click


@click.group()
def secrets() -> None:
    """Secret bundle — check the AWS Secrets Manager payload."""


@secrets.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check(ctx: click.Context, as_json: bool) -> None:
    """Fetch the secret bundle and verify every required key is set."""
    from wpbootstrap.core.config.loader import ConfigError, load_settings
    from wpbootstrap.core.use_cases.secrets_check import check_secrets

    try:
        settings = load_settings(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    result = check_secrets(settings)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    click.echo(f"  Secret: {result.secret_name}")
    if result.region:
        click.echo(f"  Region: {result.region}")

    for key in result.present:
        click.secho(f"  ✓ {key}", fg="green")
    for key in result.missing:
        click.secho(f"  ✗ {key}", fg="red")

    if not result.valid:
        click.echo()
        click.secho(result.error or "Secret check failed", fg="red")
        if result.detail:
            click.echo(f"  ({result.detail})")
        sys.exit(1)

    click.echo()
    click.secho("✅ All required secrets present", fg="green", bold=True)

"""
CLI commands for the setup config file.

Usage::

    vps-setup config example                  # print the template
    vps-setup config example vps-setup.conf   # write it
    vps-setup config check -c vps-setup.conf
    vps-setup config show -c vps-setup.conf
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

_config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="Setup config file.",
)


@click.group()
def config() -> None:
    """Setup configuration — template, validation, display."""


@config.command("example")
@click.argument("path", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.option("--force", is_flag=True, help="Overwrite an existing file.")
def config_example(path: Path | None, force: bool) -> None:
    """Print the example config, or write it to PATH."""
    from vpsetup.core.config.template import render_example_config, write_example_config

    if path is None:
        click.echo(render_example_config(), nl=False)
        return

    if path.exists() and not force:
        click.secho(f"❌ {path} already exists (use --force to overwrite)", fg="red")
        sys.exit(1)

    write_example_config(path)
    click.secho(f"✅ Example config written to {path}", fg="green")


@config.command("check")
@_config_option
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def config_check(config_path: Path, as_json: bool) -> None:
    """Validate a setup config file."""
    from vpsetup.core.use_cases.config_check import check_config

    result = check_config(config_path)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   File: {config_path}")
        click.echo(f"   Settings: {len(result.config or {})}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


@config.command("show")
@_config_option
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def config_show(config_path: Path, as_json: bool) -> None:
    """Show a loaded config grouped by section."""
    from vpsetup.core.config.loader import load_config
    from vpsetup.core.errors import ConfigError

    try:
        loaded = load_config(config_path)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    sections = loaded.sections()
    if as_json:
        click.echo(json.dumps({"path": str(config_path), "sections": sections}, indent=2))
        return

    click.secho(f"\n⚙️  {config_path}", fg="cyan", bold=True)
    if not sections:
        click.echo("   (no settings)")
    for section, values in sections.items():
        click.secho(f"   [{section or 'global'}]", fg="white", bold=True)
        for key, value in values.items():
            click.echo(f"     {key} = {value}")
    for warning in loaded.warnings:
        click.secho(f"   ⚠️  {warning}", fg="yellow")
    click.echo()

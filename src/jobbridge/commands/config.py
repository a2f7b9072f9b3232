# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Config command for jobbridge.

Validates and shows the effective bridge settings.
"""

from dataclasses import asdict

import typer
import yaml

from jobbridge.config import ConfigError, load_settings

app = typer.Typer(help="Manage and validate configuration")


@app.command()
def validate(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """
    Validate configuration file.

    Checks that the config file exists, is valid YAML, and has valid values.
    """
    typer.echo("Validating configuration...")
    typer.echo()

    try:
        settings = load_settings(config_path)
    except FileNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except ConfigError as e:
        typer.echo(f"Validation failed: {e}", err=True)
        raise typer.Exit(1)

    typer.echo("Configuration structure is valid")
    typer.echo()
    typer.echo(f"Host module: {settings.host_module_name}")
    typer.echo(f"Application: {settings.branding.application_name} {settings.branding.version}")
    typer.echo()
    typer.echo("Configuration validation complete!")


@app.command()
def show(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Print the effective settings as YAML."""
    try:
        settings = load_settings(config_path)
    except (FileNotFoundError, ConfigError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(yaml.safe_dump(asdict(settings), sort_keys=False).rstrip())

# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Store command for jobbridge.

Inspects and edits a persisted shared store between runs, e.g. to seed
rootMountPoint before running target-environment jobs.
"""

import json
from pathlib import Path
from typing import List, Optional

import typer

from jobbridge.config import ConfigError, load_settings
from jobbridge.store import load_store, save_store

app = typer.Typer(help="Inspect and edit the persisted shared store")


def _store_file(store_path: Optional[str], config_path: Optional[str]) -> Path:
    if store_path:
        return Path(store_path)
    try:
        settings = load_settings(config_path)
    except (FileNotFoundError, ConfigError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    if not settings.store_path:
        typer.echo("Error: no store file given (--store) or configured (store_path)", err=True)
        raise typer.Exit(1)
    return Path(settings.store_path)


StoreOption = typer.Option(None, "--store", help="JSON file holding the shared store")
ConfigOption = typer.Option(None, "--config", "-c", help="Path to config file")


@app.command("list")
def list_command(
    store_path: Optional[str] = StoreOption,
    config_path: Optional[str] = ConfigOption,
):
    """List keys and values in the store."""
    store = load_store(_store_file(store_path, config_path))
    if not store.count():
        typer.echo("(empty)")
        return
    for key in sorted(store.keys()):
        typer.echo(f"{key} = {json.dumps(store.value(key), default=str)}")


@app.command("get")
def get_command(
    key: str = typer.Argument(..., help="Key to read"),
    store_path: Optional[str] = StoreOption,
    config_path: Optional[str] = ConfigOption,
):
    """Print one value as JSON."""
    store = load_store(_store_file(store_path, config_path))
    if not store.contains(key):
        typer.echo(f"Error: key not found: {key}", err=True)
        raise typer.Exit(1)
    typer.echo(json.dumps(store.value(key), default=str))


@app.command("set")
def set_command(
    values: List[str] = typer.Argument(..., help="key=value entries"),
    store_path: Optional[str] = StoreOption,
    config_path: Optional[str] = ConfigOption,
):
    """Set one or more values (same value parsing as `run --set`)."""
    from jobbridge.cli import parse_kv_args

    path = _store_file(store_path, config_path)
    store = load_store(path)
    for key, value in parse_kv_args(values).items():
        store.insert(key, value)
    save_store(store, path)


@app.command("remove")
def remove_command(
    key: str = typer.Argument(..., help="Key to remove"),
    store_path: Optional[str] = StoreOption,
    config_path: Optional[str] = ConfigOption,
):
    """Remove a key from the store."""
    path = _store_file(store_path, config_path)
    store = load_store(path)
    if not store.remove(key):
        typer.echo(f"Error: key not found: {key}", err=True)
        raise typer.Exit(1)
    save_store(store, path)

# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Main CLI entry point for jobbridge.

Runs one or more job modules in sequence against a shared store.
A module is a directory holding a script (main.py by default, or the
`script` key of its module.desc) and an optional <name>.conf YAML file
with the job configuration.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import yaml

from jobbridge import __version__
from jobbridge.bridge import HostBindingError, InterpreterSession, ScriptRunner, describe
from jobbridge.config import ConfigError, Settings, load_settings
from jobbridge.event_client import EventClient
from jobbridge.schemas import JobDescriptor, ResultStatus
from jobbridge.store import SharedStore, load_store, save_store


app = typer.Typer(
    name="jobbridge",
    help="Run Python job scripts against the jobbridge host API",
    no_args_is_help=True,
)

DEFAULT_SCRIPT = "main.py"
MODULE_DESCRIPTOR = "module.desc"

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERNAL_ERROR = 2
EXIT_HOST_FAILURE = 3


def parse_kv_args(args: Optional[List[str]]) -> Dict[str, Any]:
    """Parse key=value arguments into a dict.

    Supports:
    - Booleans: true, false
    - Nulls: null, none
    - Numbers: integers and floats
    - JSON: values starting with { or [ are parsed as JSON
    - Strings: everything else
    """
    if not args:
        return {}
    result: Dict[str, Any] = {}
    for arg in args:
        if "=" not in arg:
            raise typer.BadParameter(f"expected key=value, got: {arg}")
        key, value = arg.split("=", 1)
        if value.lower() == "true":
            result[key] = True
        elif value.lower() == "false":
            result[key] = False
        elif value.lower() in ("null", "none"):
            result[key] = None
        elif value.startswith("{") or value.startswith("["):
            try:
                result[key] = json.loads(value)
            except json.JSONDecodeError:
                result[key] = value
        else:
            try:
                result[key] = int(value)
            except ValueError:
                try:
                    result[key] = float(value)
                except ValueError:
                    result[key] = value
    return result


def _read_yaml_mapping(path: Path) -> Dict[str, Any]:
    data = yaml.safe_load(path.read_text())
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a YAML mapping")
    return data


def load_job(
    working_path: str,
    script: Optional[str] = None,
    job_config: Optional[str] = None,
) -> JobDescriptor:
    """Build a JobDescriptor for a module directory.

    The script comes from --script, else module.desc's `script` key, else main.py.
    The configuration comes from --job-config, else <dirname>.conf if present.
    """
    module_dir = Path(working_path)

    if script is None:
        descriptor = module_dir / MODULE_DESCRIPTOR
        if descriptor.is_file():
            script = _read_yaml_mapping(descriptor).get("script")
    script = script or DEFAULT_SCRIPT

    if job_config:
        configuration = _read_yaml_mapping(Path(job_config))
    else:
        default_conf = module_dir / f"{module_dir.name}.conf"
        configuration = _read_yaml_mapping(default_conf) if default_conf.is_file() else {}

    return JobDescriptor(
        script_file=script,
        working_path=str(module_dir),
        configuration=configuration,
    )


def _load_settings_or_exit(config_path: Optional[str]) -> Settings:
    try:
        return load_settings(config_path)
    except (FileNotFoundError, ConfigError) as e:
        typer.echo(f"Config error: {e}", err=True)
        raise typer.Exit(EXIT_ERROR)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Run Python job scripts against the jobbridge host API."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def run(
    modules: List[str] = typer.Argument(..., help="Module directories, run in order"),
    script: Optional[str] = typer.Option(None, "--script", "-s", help="Script file relative to each module"),
    job_config: Optional[str] = typer.Option(None, "--job-config", "-j", help="YAML job configuration"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config file"),
    store_path: Optional[str] = typer.Option(None, "--store", help="JSON file holding the shared store"),
    set_values: Optional[List[str]] = typer.Option(None, "--set", help="key=value shared store entries"),
    pre_script: Optional[Path] = typer.Option(None, "--pre-script", help="Bootstrap script (testing only)"),
    events: Optional[str] = typer.Option(None, "--events", help="JSONL file for lifecycle events"),
):
    """Run job modules in sequence, stopping at the first failure."""
    settings = _load_settings_or_exit(config_path)
    store_file = store_path or settings.store_path
    store = load_store(Path(store_file)) if store_file else SharedStore()
    for key, value in parse_kv_args(set_values).items():
        store.insert(key, value)

    events_file = events or settings.events_log
    runner = ScriptRunner(
        store=store,
        settings=settings,
        pre_script=pre_script.read_text() if pre_script else None,
        event_client=EventClient(Path(events_file)) if events_file else None,
    )

    exit_code = EXIT_OK
    for module in modules:
        try:
            job = load_job(module, script, job_config)
        except (OSError, ConfigError, yaml.YAMLError) as e:
            typer.echo(f"Error: cannot load module {module}: {e}", err=True)
            exit_code = EXIT_ERROR
            break

        job.on_progress = lambda value, job=job: typer.echo(
            f"[{value:4.0%}] {job.pretty_status_message}"
        )

        try:
            result = runner.execute(job)
        except HostBindingError as e:
            typer.echo(f"Host failure: {e}", err=True)
            exit_code = EXIT_HOST_FAILURE
            break

        if result:
            typer.echo(f"{job.pretty_name}: ok")
            continue

        typer.echo(f"{job.pretty_name}: {result.summary}", err=True)
        if result.details:
            typer.echo(f"  {result.details}", err=True)
        if result.status == ResultStatus.INTERNAL_ERROR:
            exit_code = EXIT_INTERNAL_ERROR
        else:
            exit_code = EXIT_ERROR
        break

    if store_file:
        save_store(store, Path(store_file))
    raise typer.Exit(exit_code)


@app.command("describe")
def describe_command(
    module: str = typer.Argument(..., help="Module directory"),
    script: Optional[str] = typer.Option(None, "--script", "-s", help="Script file relative to the module"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Show the description a module's script reports about itself."""
    settings = _load_settings_or_exit(config_path)
    try:
        job = load_job(module, script)
    except (OSError, ConfigError, yaml.YAMLError) as e:
        typer.echo(f"Error: cannot load module {module}: {e}", err=True)
        raise typer.Exit(EXIT_ERROR)

    script_path = Path(job.working_path) / job.script_file
    if not script_path.is_file():
        typer.echo(f"Error: script not found: {script_path}", err=True)
        raise typer.Exit(EXIT_ERROR)

    # Inert store: describing a module must not change shared state
    try:
        with InterpreterSession(job, None, settings) as session:
            try:
                session.load(script_path)
            except (Exception, SystemExit) as e:
                typer.echo(f"Error: {script_path} raised {e!r} while loading", err=True)
                raise typer.Exit(EXIT_INTERNAL_ERROR)
            description = describe(session.scope)
    except HostBindingError as e:
        typer.echo(f"Host failure: {e}", err=True)
        raise typer.Exit(EXIT_HOST_FAILURE)

    typer.echo(description or job.pretty_status_message)


@app.command()
def version():
    """Show version information."""
    typer.echo(f"jobbridge version {__version__}")


from jobbridge.commands import config, store

app.add_typer(config.app, name="config")
app.add_typer(store.app, name="store")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

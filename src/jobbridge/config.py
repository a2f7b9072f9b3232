# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Configuration loading for jobbridge.

Settings come from a YAML file, looked up in this order:
1. Explicit path (--config)
2. $JOBBRIDGE_CONFIG
3. ~/.jobbridge/config.yaml (optional, defaults if missing)

$JOBBRIDGE_LOCALE overrides the configured locale.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from jobbridge import __version__


DEFAULT_CONFIG_PATH = Path("~/.jobbridge/config.yaml")
DEFAULT_LOCALE_DIRS = ["/usr/share/locale", "/usr/local/share/locale"]


class ConfigError(Exception):
    """Raised when the configuration file is invalid."""

    pass


@dataclass
class Branding:
    """Constants exposed to scripts as ORGANIZATION_* / APPLICATION_NAME / VERSION*."""

    organization_name: str = "jobbridge"
    organization_domain: str = "jobbridge.dev"
    application_name: str = "jobbridge"
    version: str = __version__
    version_short: str = ".".join(__version__.split(".")[:2])


@dataclass
class Settings:
    """Process-wide bridge settings."""

    branding: Branding = field(default_factory=Branding)
    host_module_name: str = "jobhost"
    locale: Optional[str] = None
    locale_dirs: List[str] = field(default_factory=lambda: list(DEFAULT_LOCALE_DIRS))
    root_mount_point_key: str = "rootMountPoint"
    events_log: Optional[str] = None
    store_path: Optional[str] = None


def _resolve_config_path(config_path: Optional[str]) -> Optional[Path]:
    """Find the config file to read, or None to use defaults."""
    if config_path:
        path = Path(config_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        return path

    env_path = os.environ.get("JOBBRIDGE_CONFIG")
    if env_path:
        path = Path(env_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path} (from $JOBBRIDGE_CONFIG)")
        return path

    path = DEFAULT_CONFIG_PATH.expanduser()
    return path if path.exists() else None


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load the raw configuration mapping.

    Raises:
        FileNotFoundError: If an explicitly requested file is missing.
        ConfigError: If the file is not a YAML mapping.
    """
    path = _resolve_config_path(config_path)
    if path is None:
        return {}

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a YAML mapping")
    return data


def build_settings(config: Dict[str, Any]) -> Settings:
    """Turn a raw configuration mapping into Settings.

    Raises:
        ConfigError: If a key has the wrong type.
    """
    branding_raw = config.get("branding") or {}
    if not isinstance(branding_raw, dict):
        raise ConfigError("branding must be a mapping")
    try:
        branding = Branding(**{k: str(v) for k, v in branding_raw.items()})
    except TypeError as e:
        raise ConfigError(f"invalid branding: {e}")

    locale_dirs = config.get("locale_dirs", DEFAULT_LOCALE_DIRS)
    if not isinstance(locale_dirs, list):
        raise ConfigError(f"locale_dirs must be a list, got: {locale_dirs!r}")

    settings = Settings(
        branding=branding,
        host_module_name=str(config.get("host_module_name", "jobhost")),
        locale=config.get("locale"),
        locale_dirs=[str(d) for d in locale_dirs],
        root_mount_point_key=str(config.get("root_mount_point_key", "rootMountPoint")),
        events_log=config.get("events_log"),
        store_path=config.get("store_path"),
    )

    if not settings.host_module_name.isidentifier():
        raise ConfigError(
            f"host_module_name must be a valid identifier, got: {settings.host_module_name}"
        )

    env_locale = os.environ.get("JOBBRIDGE_LOCALE")
    if env_locale:
        settings.locale = env_locale

    return settings


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Load and validate settings in one step."""
    return build_settings(load_config(config_path))

# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Utility namespace exposed to job scripts as `<host module>.utils`.

Logging, YAML loading, text obscuring, gettext lookups, and wrappers
around the process invoker. The check_* and *_process_output wrappers
raise subprocess.CalledProcessError on a non-zero exit, the same
exception scripts already know from the subprocess module.
"""

import logging
import os
import subprocess
import types
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Union

import yaml

from jobbridge.bridge.process import invoke
from jobbridge.config import Settings
from jobbridge.schemas import JobDescriptor, ProcessCode, ProcessInvocation, ProcessOutcome
from jobbridge.store import SharedStore

script_logger = logging.getLogger("jobbridge.script")

DEFAULT_LOCALE_PATH = "/usr/share/locale"

CommandList = Union[str, Sequence[str]]


def obscure(text: str) -> str:
    """
    Reversibly scramble a string (applying it twice gives the original back).

    Not encryption: only keeps passwords from being readable at a glance
    in logs and config dumps.
    """
    return "".join(
        chr(0x1001F - ord(c)) if 0x21 < ord(c) < 0xFFFE else c for c in text
    )


def load_yaml(path: str) -> Any:
    """
    Load YAML from a file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If the file is not valid YAML
    """
    with open(path) as f:
        return yaml.safe_load(f)


def _locale_name(settings: Settings) -> str:
    if settings.locale:
        return settings.locale
    for var in ("LANGUAGE", "LC_ALL", "LC_MESSAGES", "LANG"):
        value = os.environ.get(var)
        if value:
            # LANGUAGE may hold a colon-separated priority list
            return value.split(":")[0]
    return ""


def languages_for_locale(name: str) -> List[str]:
    """
    Gettext language candidates for a locale name, most specific first.

    Example:
        >>> languages_for_locale("sr_RS.UTF-8@latin")
        ['sr_RS@latin', 'sr_RS', 'sr']
    """
    if not name or name in ("C", "POSIX"):
        return ["en"]

    base, _, modifier = name.partition("@")
    base = base.split(".")[0]
    language = base.split("_")[0]

    candidates = []
    if modifier:
        candidates.append(f"{base}@{modifier}")
    candidates.append(base)
    candidates.append(language)

    result: List[str] = []
    for candidate in candidates:
        if candidate and candidate not in result:
            result.append(candidate)
    return result


class HostUtils:
    """Per-session implementation of the utils namespace.

    Bound to one job (for log prefixes and its lang/ directory) and to the
    shared store (for the target root mount point).
    """

    def __init__(
        self,
        job: JobDescriptor,
        store: Optional[SharedStore],
        settings: Settings,
        invoker: Callable[[ProcessInvocation], ProcessOutcome] = invoke,
    ):
        self.job = job
        self.store = store
        self.settings = settings
        self.invoker = invoker

    # -- logging --------------------------------------------------------

    def _prefixed(self, message: Any) -> str:
        return f"[{self.job.pretty_name}] {message}"

    def debug(self, message: Any) -> None:
        script_logger.debug(self._prefixed(message))

    def warning(self, message: Any) -> None:
        script_logger.warning(self._prefixed(message))

    def error(self, message: Any) -> None:
        script_logger.error(self._prefixed(message))

    # -- processes ------------------------------------------------------

    def _root_mount_point(self) -> Optional[str]:
        if self.store is None:
            return None
        value = self.store.value(self.settings.root_mount_point_key)
        return str(value) if value else None

    def _run(
        self,
        command_list: CommandList,
        input: Optional[str],
        timeout: int,
        callback: Optional[Callable[[str], Any]] = None,
        target_root: bool = True,
    ) -> ProcessOutcome:
        if isinstance(command_list, str):
            command_list = [command_list]
        invocation = ProcessInvocation(
            command_list=list(command_list),
            stdin=input or None,
            timeout=int(timeout or 0),
            callback=callback,
            target_root=target_root,
            root_mount_point=self._root_mount_point() if target_root else None,
        )
        return self.invoker(invocation)

    @staticmethod
    def _check(outcome: ProcessOutcome, command_list: CommandList) -> ProcessOutcome:
        if outcome.exit_code != 0:
            raise subprocess.CalledProcessError(
                int(outcome.exit_code), command_list, output=outcome.output
            )
        return outcome

    def target_env_call(
        self, command_list: CommandList, input: Optional[str] = None, timeout: int = 0
    ) -> int:
        """Run command in target, returns exit code."""
        return int(self._run(command_list, input, timeout).exit_code)

    def check_target_env_call(
        self, command_list: CommandList, input: Optional[str] = None, timeout: int = 0
    ) -> int:
        """Run command in target, raises on error exit."""
        self._check(self._run(command_list, input, timeout), command_list)
        return 0

    def check_target_env_output(
        self, command_list: CommandList, input: Optional[str] = None, timeout: int = 0
    ) -> str:
        """Run command in target, returns output or raises on error exit."""
        return self._check(self._run(command_list, input, timeout), command_list).output

    def target_env_process_output(
        self,
        command_list: CommandList,
        callback: Optional[Callable[[str], Any]] = None,
        input: Optional[str] = None,
        timeout: int = 0,
    ) -> str:
        """Run command in target, passing each output line to callback; raises on error exit."""
        outcome = self._run(command_list, input, timeout, callback=callback)
        return self._check(outcome, command_list).output

    def host_env_process_output(
        self,
        command_list: CommandList,
        callback: Optional[Callable[[str], Any]] = None,
        input: Optional[str] = None,
        timeout: int = 0,
    ) -> str:
        """Run command on the host, passing each output line to callback; raises on error exit."""
        outcome = self._run(command_list, input, timeout, callback=callback, target_root=False)
        return self._check(outcome, command_list).output

    def mount(
        self,
        device_path: str,
        mount_point: str,
        filesystem_name: Optional[str] = None,
        options: Optional[str] = None,
    ) -> int:
        """
        Run the mount utility on the host.

        Returns the program's exit code, or:
        -1 = mount crashed
        -2 = mount could not be started
        -3 = bad arguments
        """
        if not device_path or not mount_point:
            script_logger.error(self._prefixed("mount called without device or mount point"))
            return int(ProcessCode.NO_WORKING_DIRECTORY)

        target = Path(mount_point)
        if not target.is_dir():
            try:
                target.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                script_logger.error(self._prefixed(f"Cannot create mount point {target}: {e}"))
                return int(ProcessCode.NO_WORKING_DIRECTORY)

        args = ["mount"]
        if filesystem_name:
            args += ["-t", filesystem_name]
        if options:
            args += ["-o", options]
        args += [device_path, mount_point]
        return int(self._run(args, None, 0, target_root=False).exit_code)

    # -- gettext --------------------------------------------------------

    def gettext_languages(self) -> List[str]:
        """Languages (most to least specific) for gettext."""
        return languages_for_locale(_locale_name(self.settings))

    def gettext_path(self) -> str:
        """Directory to pass to gettext as localedir."""
        candidates = [str(Path(self.job.working_path) / "lang"), *self.settings.locale_dirs]
        existing = [c for c in candidates if Path(c).is_dir()]

        for language in self.gettext_languages():
            for path in existing:
                if (Path(path) / language).is_dir():
                    return path

        if existing:
            return existing[0]
        return DEFAULT_LOCALE_PATH


def populate_utils(module: types.ModuleType, utils: HostUtils) -> None:
    """Attach the utils functions to a module object."""
    module.obscure = obscure
    module.load_yaml = load_yaml

    module.debug = utils.debug
    module.warn = utils.warning
    module.warning = utils.warning
    module.error = utils.error

    module.target_env_call = utils.target_env_call
    module.check_target_env_call = utils.check_target_env_call
    module.check_target_env_output = utils.check_target_env_output
    module.target_env_process_output = utils.target_env_process_output
    module.host_env_process_output = utils.host_env_process_output
    module.mount = utils.mount

    module.gettext_languages = utils.gettext_languages
    module.gettext_path = utils.gettext_path

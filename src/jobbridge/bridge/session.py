# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Interpreter session for a single job execution.

Each session gets:
- a fresh global scope that plays the role of __main__
- a freshly built host API module, installed in sys.modules
- the job's working path on sys.path, so scripts can import siblings

Everything is undone on exit, whatever the exit path, so nothing a
script defines or imports from its own directory leaks into the next job.
Sessions mutate process-wide import state: run one at a time.
"""

import builtins
import importlib
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Set, Union

from jobbridge.bridge.api import build_host_module
from jobbridge.config import Settings
from jobbridge.schemas import JobDescriptor
from jobbridge.store import SharedStore

logger = logging.getLogger(__name__)

_MISSING = object()


class HostBindingError(Exception):
    """Raised when the host API module cannot be bound into a session."""

    pass


class PreScriptError(Exception):
    """Raised when the injected pre-script fails inside a session."""

    pass


def _imported_from(name: str, module: Any, root: Path) -> bool:
    """True if the module's top-level package or file sits directly in root."""
    path = getattr(module, "__file__", None)
    if not path:
        return False
    try:
        relative = Path(path).resolve().relative_to(root)
    except (OSError, ValueError):
        return False
    top_level = name.partition(".")[0]
    return relative.parts[0].partition(".")[0] == top_level


class InterpreterSession:
    """Scoped interpreter state for one job.

    Use as a context manager; load() and the scope are only valid inside
    the with-block.

    Args:
        job: The job this session runs
        store: Live shared store (None binds an inert proxy)
        settings: Bridge settings (host module name, branding)
        pre_script: Optional bootstrap source run before the job script,
            for test and mocking harnesses only
    """

    def __init__(
        self,
        job: JobDescriptor,
        store: Optional[SharedStore] = None,
        settings: Optional[Settings] = None,
        pre_script: Optional[str] = None,
    ):
        self.job = job
        self.store = store
        self.settings = settings or Settings()
        self.pre_script = pre_script
        self.scope: Dict[str, Any] = {}

        self._module_names = (
            self.settings.host_module_name,
            f"{self.settings.host_module_name}.utils",
        )
        self._saved_modules: Dict[str, Any] = {}
        self._modules_before: Set[str] = set()
        self._sys_path_entry: Optional[str] = None
        self._active = False

    def __enter__(self) -> "InterpreterSession":
        self._active = True
        try:
            self._bind()
        except Exception as e:
            logger.error(f"Error binding host API for {self.job.pretty_name}: {e}")
            self._teardown()
            raise HostBindingError(
                f"could not bind host module '{self.settings.host_module_name}': {e}"
            ) from e

        if self.pre_script:
            try:
                self.exec_source(self.pre_script, "<pre-script>")
            except (Exception, SystemExit) as e:
                logger.error(f"Error in pre-script: {e!r}")
                self._teardown()
                raise PreScriptError(f"pre-script raised {e!r}") from e

        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._teardown()
        return False

    def _bind(self) -> None:
        working_path = Path(self.job.working_path).resolve()
        script_path = working_path / self.job.script_file

        self.scope = {
            "__name__": "__main__",
            "__file__": str(script_path),
            "__doc__": None,
            "__builtins__": builtins,
        }

        module = build_host_module(self.job, self.store, self.settings)
        self._modules_before = set(sys.modules)
        for name, value in zip(self._module_names, (module, module.utils)):
            self._saved_modules[name] = sys.modules.get(name, _MISSING)
            sys.modules[name] = value

        self._sys_path_entry = str(working_path)
        sys.path.insert(0, self._sys_path_entry)
        importlib.invalidate_caches()
        logger.debug(f"Session opened for {self.job.pretty_name}")

    def _teardown(self) -> None:
        if not self._active:
            return
        self._active = False

        for name, saved in self._saved_modules.items():
            if saved is _MISSING:
                sys.modules.pop(name, None)
            else:
                sys.modules[name] = saved
        self._saved_modules.clear()

        if self._sys_path_entry is not None:
            working_path = Path(self._sys_path_entry)
            try:
                sys.path.remove(self._sys_path_entry)
            except ValueError:
                logger.warning(f"Job {self.job.pretty_name} removed its own sys.path entry")
            for name in set(sys.modules) - self._modules_before:
                module = sys.modules.get(name)
                if _imported_from(name, module, working_path):
                    del sys.modules[name]
            self._sys_path_entry = None

        self.scope.clear()
        logger.debug(f"Session closed for {self.job.pretty_name}")

    def exec_source(self, source: Union[str, bytes], filename: str) -> None:
        """Compile and run source in the session scope.

        Bytes are decoded by compile(), honouring a PEP 263 coding line.
        """
        code = compile(source, filename, "exec")
        exec(code, self.scope)

    def load(self, script_path: Path) -> None:
        """Run a script file's top-level statements in the session scope.

        Raises whatever the script raises (SyntaxError included).
        """
        source = Path(script_path).read_bytes()
        self.exec_source(source, str(script_path))

# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Host API surface bound into each interpreter session.

Scripts never see the host's JobDescriptor or SharedStore directly,
only the two proxies below plus the utils namespace:

    import jobhost

    jobhost.job.configuration["key"]
    jobhost.job.setprogress(0.5)
    jobhost.shared_store.insert("rootMountPoint", "/mnt/target")
    jobhost.utils.check_target_env_call(["true"])
"""

import copy
import logging
import types
from typing import Any, Dict, List, Optional

from jobbridge.bridge.utils import HostUtils, populate_utils
from jobbridge.config import Settings
from jobbridge.schemas import JobDescriptor
from jobbridge.store import SharedStore

logger = logging.getLogger(__name__)


class JobProxy:
    """Read-only view of the running job, plus setprogress().

    Lives only as long as the session that created it.
    """

    __slots__ = ("_job", "_configuration")

    def __init__(self, job: JobDescriptor):
        self._job = job
        self._configuration = copy.deepcopy(job.configuration)

    @property
    def module_name(self) -> str:
        return self._job.pretty_name

    @property
    def pretty_name(self) -> str:
        return self._job.pretty_name

    @property
    def working_path(self) -> str:
        return str(self._job.working_path)

    @property
    def configuration(self) -> Dict[str, Any]:
        return self._configuration

    def setprogress(self, progress: float) -> None:
        """Report progress in [0, 1]; values outside the range are ignored."""
        try:
            value = float(progress)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-numeric progress from {self.module_name}: {progress!r}")
            return
        if 0.0 <= value <= 1.0:
            self._job.emit_progress(value)
        else:
            logger.debug(f"Ignoring out-of-range progress from {self.module_name}: {value}")

    def __repr__(self) -> str:
        return f"<Job {self.module_name}>"


class SharedStoreProxy:
    """Forwards to the host's SharedStore without owning it.

    SharedStoreProxy(None) is a valid placeholder: reads return defaults
    and writes do nothing.
    """

    __slots__ = ("_store",)

    def __init__(self, store: Optional[SharedStore] = None):
        self._store = store

    def contains(self, key: str) -> bool:
        return self._store is not None and self._store.contains(key)

    def count(self) -> int:
        return self._store.count() if self._store is not None else 0

    def insert(self, key: str, value: Any) -> None:
        if self._store is not None:
            self._store.insert(key, value)

    def remove(self, key: str) -> bool:
        return self._store.remove(key) if self._store is not None else False

    def value(self, key: str, default: Any = None) -> Any:
        if self._store is None:
            return default
        return self._store.value(key, default)

    def keys(self) -> List[str]:
        return self._store.keys() if self._store is not None else []

    def __repr__(self) -> str:
        return f"<SharedStore keys={self.count()}>"


def build_host_module(
    job: JobDescriptor,
    store: Optional[SharedStore],
    settings: Settings,
    utils: Optional[HostUtils] = None,
) -> types.ModuleType:
    """
    Build a fresh host API module for one session.

    Args:
        job: The job being executed
        store: Live shared store, or None for an inert proxy
        settings: Branding constants and module name
        utils: Prebuilt utils implementation (defaults to HostUtils)

    Returns:
        Module object with constants, Job/SharedStore classes,
        `job` and `shared_store` instances, and a `utils` submodule.
    """
    name = settings.host_module_name
    branding = settings.branding

    module = types.ModuleType(name, f"{branding.application_name} API for Python")
    module.ORGANIZATION_NAME = branding.organization_name
    module.ORGANIZATION_DOMAIN = branding.organization_domain
    module.APPLICATION_NAME = branding.application_name
    module.VERSION = branding.version
    module.VERSION_SHORT = branding.version_short

    utils_module = types.ModuleType(
        f"{name}.utils", f"{branding.application_name} Utility API for Python"
    )
    populate_utils(utils_module, utils or HostUtils(job, store, settings))
    module.utils = utils_module

    module.Job = JobProxy
    module.SharedStore = SharedStoreProxy
    module.job = JobProxy(job)
    module.shared_store = SharedStoreProxy(store)
    return module

"""Execution bridge between the host and Python job scripts.

A job script runs in its own interpreter session with a small host API
module bound in; whatever happens is reduced to one JobResult.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

from jobbridge.bridge.api import JobProxy, SharedStoreProxy, build_host_module
from jobbridge.bridge.metadata import describe
from jobbridge.bridge.process import invoke
from jobbridge.bridge.runner import (
    ReturnShape,
    RunReturn,
    ScriptRunner,
    decode_run_result,
    execute,
)
from jobbridge.bridge.session import HostBindingError, InterpreterSession, PreScriptError
from jobbridge.bridge.utils import HostUtils, obscure

__all__ = [
    "JobProxy",
    "SharedStoreProxy",
    "build_host_module",
    "describe",
    "invoke",
    "ScriptRunner",
    "execute",
    "decode_run_result",
    "ReturnShape",
    "RunReturn",
    "InterpreterSession",
    "HostBindingError",
    "PreScriptError",
    "HostUtils",
    "obscure",
]

# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Job, result and process schemas for jobbridge.

A JobDescriptor goes in, exactly one JobResult comes out:
- JobDescriptor: script file + working path + configuration
- JobResult: ok / error / internal error (with an ErrorKind)
- ProcessInvocation → invoke → ProcessOutcome for external commands
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union


class ResultStatus(Enum):
    """Terminal status of one job execution."""

    OK = "ok"
    ERROR = "error"
    INTERNAL_ERROR = "internal_error"


class ErrorKind(IntEnum):
    """Distinguishes internal errors for the job queue.

    GENERIC_ERROR is the default for anything not otherwise classified.
    """

    NO_ERROR = 0
    GENERIC_ERROR = -1
    SCRIPT_RUNTIME_EXCEPTION = 1
    INVALID_CONFIGURATION = 2
    BAD_INTERNAL_SCRIPT = 3


@dataclass
class JobDescriptor:
    """One unit of work: a script, where it lives, and its configuration.

    Only `description` changes during execution; it is filled in from the
    script's pretty_name() or docstring once the script is loaded.
    """

    script_file: str
    working_path: str
    configuration: Dict[str, Any] = field(default_factory=dict)
    description: str = ""
    on_progress: Optional[Callable[[float], None]] = None

    @property
    def pretty_name(self) -> str:
        return Path(self.working_path).name

    @property
    def pretty_status_message(self) -> str:
        if not self.description:
            return f"Running {self.pretty_name} operation."
        return self.description

    def emit_progress(self, value: float) -> None:
        if self.on_progress is not None:
            self.on_progress(value)


@dataclass
class JobResult:
    """Outcome of executing a job."""

    status: ResultStatus
    summary: str = ""
    details: str = ""
    error_kind: ErrorKind = ErrorKind.NO_ERROR

    @classmethod
    def ok(cls) -> "JobResult":
        return cls(status=ResultStatus.OK)

    @classmethod
    def error(cls, summary: str, details: str = "") -> "JobResult":
        return cls(
            status=ResultStatus.ERROR,
            summary=summary,
            details=details,
            error_kind=ErrorKind.GENERIC_ERROR,
        )

    @classmethod
    def internal_error(
        cls,
        summary: str,
        details: str = "",
        kind: ErrorKind = ErrorKind.GENERIC_ERROR,
    ) -> "JobResult":
        return cls(
            status=ResultStatus.INTERNAL_ERROR,
            summary=summary,
            details=details,
            error_kind=kind,
        )

    def __bool__(self) -> bool:
        return self.status == ResultStatus.OK


class ProcessCode(IntEnum):
    """Sentinel exit codes for failures of the invoker itself."""

    CRASHED = -1
    FAILED_TO_START = -2
    NO_WORKING_DIRECTORY = -3
    TIMED_OUT = -4


@dataclass
class ProcessInvocation:
    """One external command to run."""

    command_list: List[str]
    stdin: Optional[Union[str, bytes]] = None
    timeout: int = 0  # seconds, 0 = no timeout
    callback: Optional[Callable[[str], Any]] = None
    target_root: bool = True
    root_mount_point: Optional[str] = None
    working_directory: Optional[str] = None


@dataclass
class ProcessOutcome:
    """Exit code (or ProcessCode sentinel) plus merged stdout/stderr."""

    exit_code: int
    output: str = ""

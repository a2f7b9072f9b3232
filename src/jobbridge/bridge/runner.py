# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Script runner - execute one job script and reduce it to a JobResult.

1. Validate working directory and script file
2. Open an InterpreterSession (host API bound, pre-script run)
3. Load the script, take its description, report progress 0
4. Call run() and decode what it returned

Every failure caused by the script becomes a JobResult. Only a failure to
bind the host API (HostBindingError) propagates to the caller: no job can
run without it.
"""

import logging
import os
import traceback
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from jobbridge.bridge.metadata import describe
from jobbridge.bridge.session import HostBindingError, InterpreterSession, PreScriptError
from jobbridge.config import Settings
from jobbridge.event_client import EventClient
from jobbridge.schemas import ErrorKind, JobDescriptor, JobResult
from jobbridge.store import SharedStore

logger = logging.getLogger(__name__)

ENTRY_POINT = "run"

BAD_WORKING_DIRECTORY = "Bad working directory path"
BAD_MAIN_SCRIPT = "Bad main script file"
BAD_INTERNAL_SCRIPT = "Bad internal script"


class ReturnShape(Enum):
    """What run() handed back."""

    NO_VALUE = "no_value"
    PAIR = "pair"
    INVALID = "invalid"


@dataclass(frozen=True)
class RunReturn:
    shape: ReturnShape
    summary: str = ""
    details: str = ""


def decode_run_result(value: Any) -> RunReturn:
    """
    Decode the raw return value of run().

    None means success; a tuple or list of exactly two items means
    (summary, details); anything else is invalid.
    """
    if value is None:
        return RunReturn(ReturnShape.NO_VALUE)
    if isinstance(value, (tuple, list)) and len(value) == 2:
        try:
            return RunReturn(ReturnShape.PAIR, str(value[0]), str(value[1]))
        except Exception as e:
            logger.error(f"Error converting run() results to text: {e!r}")
    return RunReturn(ReturnShape.INVALID)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScriptRunner:
    """Executes JobDescriptors one at a time.

    Args:
        store: Shared store visible to every job this runner executes
        settings: Bridge settings
        pre_script: Bootstrap source injected into every session
            (test and mocking harnesses only)
        event_client: Optional JSONL lifecycle log
    """

    def __init__(
        self,
        store: Optional[SharedStore] = None,
        settings: Optional[Settings] = None,
        pre_script: Optional[str] = None,
        event_client: Optional[EventClient] = None,
    ):
        self.store = store
        self.settings = settings or Settings()
        self.pre_script = pre_script
        self.event_client = event_client

    def execute(self, job: JobDescriptor) -> JobResult:
        """Run a job to completion. Raises only HostBindingError."""
        correlation_id = str(uuid.uuid4())
        started_at = _utcnow()
        if self.event_client:
            self.event_client.log_event(
                event_type="job.started",
                correlation_id=correlation_id,
                status="running",
                payload={
                    "job": job.pretty_name,
                    "script_file": job.script_file,
                    "working_path": str(job.working_path),
                },
            )

        try:
            result = self._execute(job)
        except HostBindingError as e:
            if self.event_client:
                self.event_client.log_event(
                    event_type="job.failed",
                    correlation_id=correlation_id,
                    status="aborted",
                    payload={"job": job.pretty_name},
                    error_message=str(e),
                )
            raise

        duration_ms = int((_utcnow() - started_at).total_seconds() * 1000)
        if self.event_client:
            self.event_client.log_result(job, correlation_id, result, duration_ms)

        if result:
            logger.info(f"Job {job.pretty_name} finished in {duration_ms}ms")
        else:
            logger.warning(f"Job {job.pretty_name} failed: {result.summary}: {result.details}")
        return result

    def _execute(self, job: JobDescriptor) -> JobResult:
        name = job.pretty_name

        working_dir = Path(job.working_path)
        if not working_dir.is_dir() or not os.access(working_dir, os.R_OK | os.X_OK):
            return JobResult.error(
                BAD_WORKING_DIRECTORY,
                f"Working directory {job.working_path} for python job {name} is not readable.",
            )

        script_path = (working_dir / job.script_file).resolve()
        if not script_path.is_file() or not os.access(script_path, os.R_OK):
            return JobResult.error(
                BAD_MAIN_SCRIPT,
                f"Main script file {script_path} for python job {name} is not readable.",
            )

        try:
            session = InterpreterSession(job, self.store, self.settings, self.pre_script)
            with session:
                return self._run_in_session(session, job, script_path)
        except PreScriptError:
            return JobResult.internal_error(
                BAD_INTERNAL_SCRIPT,
                f"Internal script for python job {name} raised an exception.",
                ErrorKind.BAD_INTERNAL_SCRIPT,
            )

    def _run_in_session(
        self, session: InterpreterSession, job: JobDescriptor, script_path: Path
    ) -> JobResult:
        name = job.pretty_name

        # Progress reported while loading is dropped so 0 is always first
        on_progress, job.on_progress = job.on_progress, None
        try:
            session.load(script_path)
        except (Exception, SystemExit) as e:
            logger.error(f"Error while loading {script_path}: {e!r}")
            logger.debug(traceback.format_exc())
            return JobResult.internal_error(
                BAD_MAIN_SCRIPT,
                f"Main script file {script_path} for python job {name} "
                f"could not be loaded because it raised an exception.",
                ErrorKind.SCRIPT_RUNTIME_EXCEPTION,
            )
        finally:
            job.on_progress = on_progress

        job.description = describe(session.scope)
        job.emit_progress(0.0)

        if ENTRY_POINT not in session.scope:
            return JobResult.error(
                BAD_MAIN_SCRIPT,
                f"Main script file {script_path} for python job {name} "
                f"does not contain a run() function.",
            )

        try:
            value = session.scope[ENTRY_POINT]()
        except (Exception, SystemExit) as e:
            logger.error(f"Error while running {script_path}: {e!r}")
            logger.debug(traceback.format_exc())
            return JobResult.internal_error(
                BAD_MAIN_SCRIPT,
                f"Main script file {script_path} for python job {name} raised an exception.",
                ErrorKind.SCRIPT_RUNTIME_EXCEPTION,
            )

        decoded = decode_run_result(value)
        if decoded.shape == ReturnShape.NO_VALUE:
            return JobResult.ok()
        if decoded.shape == ReturnShape.PAIR:
            return JobResult.error(decoded.summary, decoded.details)

        logger.error(f"Error in return type of run(): {type(value).__name__}")
        return JobResult.error(
            BAD_MAIN_SCRIPT,
            f"Main script file {script_path} for python job {name} returned invalid results.",
        )


def execute(
    job: JobDescriptor,
    store: Optional[SharedStore] = None,
    settings: Optional[Settings] = None,
    pre_script: Optional[str] = None,
) -> JobResult:
    """Execute a single job with a one-off ScriptRunner."""
    return ScriptRunner(store=store, settings=settings, pre_script=pre_script).execute(job)

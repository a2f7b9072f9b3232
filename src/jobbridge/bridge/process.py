# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Process invoker for job scripts.

Runs one external command to completion, either inside the target root
(via chroot) or on the host. Output (stdout and stderr merged) is streamed
line by line to an optional callback on the calling thread and also
accumulated for the final ProcessOutcome.
"""

import logging
import queue
import subprocess
import threading
import time
from pathlib import Path
from typing import IO, Callable, List, Optional

from jobbridge.schemas import ProcessCode, ProcessInvocation, ProcessOutcome

logger = logging.getLogger(__name__)

# End-of-output marker on the line queue
_EOF = None

# Seconds between exit checks while waiting for output
_POLL_INTERVAL = 0.05

# Seconds to keep collecting output once the command has exited
_DRAIN_TIMEOUT = 0.5


def _build_command(invocation: ProcessInvocation) -> Optional[List[str]]:
    """Final argv for the invocation, or None if the target root is unusable."""
    command = [str(arg) for arg in invocation.command_list]
    if not invocation.target_root:
        return command

    root = invocation.root_mount_point
    if not root or not Path(root).is_dir():
        logger.error(f"No usable root mount point for target command: {root!r}")
        return None
    return ["chroot", str(root), *command]


def _feed_stdin(pipe: IO[bytes], data: bytes) -> None:
    try:
        pipe.write(data)
    except BrokenPipeError:
        logger.debug("Process closed stdin before all input was written")
    finally:
        try:
            pipe.close()
        except BrokenPipeError:
            pass


def _read_lines(pipe: IO[bytes], lines: "queue.Queue[Optional[bytes]]") -> None:
    try:
        for line in iter(pipe.readline, b""):
            lines.put(line)
    finally:
        lines.put(_EOF)


def _drain(lines: "queue.Queue[Optional[bytes]]", handle: Callable[[bytes], None]) -> bool:
    """Hand over output still in flight after exit. True if the pipe closed."""
    drain_deadline = time.monotonic() + _DRAIN_TIMEOUT
    while True:
        try:
            line = lines.get(timeout=max(0.0, drain_deadline - time.monotonic()))
        except queue.Empty:
            return False
        if line is _EOF:
            return True
        handle(line)


def _kill(process: subprocess.Popen) -> None:
    process.kill()
    process.wait()


def invoke(invocation: ProcessInvocation) -> ProcessOutcome:
    """
    Run a command to completion and return its outcome.

    Blocks until the command exits, the timeout expires, or the
    command cannot be started. The callback (if any) runs on this
    thread, once per output line, so slow callbacks eat into the timeout.

    Args:
        invocation: What to run and how

    Returns:
        ProcessOutcome with the exit code or a ProcessCode sentinel:
        FAILED_TO_START if the command could not be launched,
        CRASHED if it died from a signal,
        NO_WORKING_DIRECTORY for an empty command or missing root/cwd,
        TIMED_OUT if it was killed at the deadline.
    """
    if not invocation.command_list:
        logger.warning("Refusing to run an empty command")
        return ProcessOutcome(exit_code=ProcessCode.NO_WORKING_DIRECTORY)

    command = _build_command(invocation)
    if command is None:
        return ProcessOutcome(exit_code=ProcessCode.NO_WORKING_DIRECTORY)

    cwd = invocation.working_directory
    if cwd and not Path(cwd).is_dir():
        logger.error(f"Working directory for command does not exist: {cwd}")
        return ProcessOutcome(exit_code=ProcessCode.NO_WORKING_DIRECTORY)

    stdin_data = invocation.stdin
    if isinstance(stdin_data, str):
        stdin_data = stdin_data.encode("utf-8")

    if len(" ".join(command)) > 100:
        logger.info(f"Running: {' '.join(command)[:100]}...")
    else:
        logger.info(f"Running: {' '.join(command)}")

    try:
        process = subprocess.Popen(
            command,
            stdin=subprocess.PIPE if stdin_data else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            cwd=cwd or None,
        )
    except (OSError, ValueError) as e:
        logger.error(f"Command failed to start: {e}")
        return ProcessOutcome(exit_code=ProcessCode.FAILED_TO_START)

    lines: "queue.Queue[Optional[bytes]]" = queue.Queue()
    reader = threading.Thread(target=_read_lines, args=(process.stdout, lines), daemon=True)
    reader.start()
    if stdin_data:
        threading.Thread(
            target=_feed_stdin, args=(process.stdin, stdin_data), daemon=True
        ).start()

    deadline = time.monotonic() + invocation.timeout if invocation.timeout > 0 else None
    chunks: List[str] = []

    def remaining() -> Optional[float]:
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())

    def handle(line: bytes) -> None:
        text = line.decode("utf-8", errors="replace")
        chunks.append(text)
        if invocation.callback is not None:
            invocation.callback(text.rstrip("\r\n"))

    # Done when the process exits; a background child may still hold the pipe
    output_closed = False
    try:
        while True:
            exit_code = process.poll()
            if exit_code is not None:
                break
            left = remaining()
            if left == 0.0:
                return _timed_out(process, reader, chunks, invocation.timeout)
            try:
                wait = _POLL_INTERVAL if left is None else min(_POLL_INTERVAL, left)
                line = lines.get(timeout=wait)
            except queue.Empty:
                continue
            if line is _EOF:
                output_closed = True
                try:
                    exit_code = process.wait(timeout=remaining())
                except subprocess.TimeoutExpired:
                    return _timed_out(process, reader, chunks, invocation.timeout)
                break
            handle(line)

        if not output_closed:
            output_closed = _drain(lines, handle)
    finally:
        if process.poll() is None:
            _kill(process)

    if output_closed:
        reader.join()
    else:
        logger.debug("Command exited with its output still held open by a child process")
    output = "".join(chunks)
    if exit_code < 0:
        logger.error(f"Command crashed (signal {-exit_code})")
        return ProcessOutcome(exit_code=ProcessCode.CRASHED, output=output)

    logger.debug(f"Command finished with exit code {exit_code}")
    return ProcessOutcome(exit_code=exit_code, output=output)


def _timed_out(
    process: subprocess.Popen,
    reader: threading.Thread,
    chunks: List[str],
    timeout: int,
) -> ProcessOutcome:
    logger.warning(f"Command timed out after {timeout}s, killing it")
    _kill(process)
    reader.join(timeout=1)
    return ProcessOutcome(exit_code=ProcessCode.TIMED_OUT, output="".join(chunks))

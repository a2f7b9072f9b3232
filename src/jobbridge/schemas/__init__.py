# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""jobbridge schemas."""

from jobbridge.schemas.job import (
    ErrorKind,
    JobDescriptor,
    JobResult,
    ProcessCode,
    ProcessInvocation,
    ProcessOutcome,
    ResultStatus,
)

__all__ = [
    "ErrorKind",
    "JobDescriptor",
    "JobResult",
    "ProcessCode",
    "ProcessInvocation",
    "ProcessOutcome",
    "ResultStatus",
]

# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""JSONL event log for job lifecycle events."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from jobbridge.schemas import JobDescriptor, JobResult


class EventClient:
    """Appends one JSON object per line: job.started, job.completed, job.failed."""

    def __init__(self, log_path: Path):
        self.log_path = Path(log_path).expanduser()
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log_event(
        self,
        event_type: str,
        correlation_id: str,
        status: str,
        payload: Optional[Dict[str, Any]] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """Log an event to the JSONL file."""
        event = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            "correlation_id": correlation_id,
            "status": status,
        }
        if payload:
            event["payload"] = payload
        if error_message:
            event["error_message"] = error_message

        with open(self.log_path, "a") as f:
            f.write(json.dumps(event, default=str) + "\n")

    def log_result(
        self, job: JobDescriptor, correlation_id: str, result: JobResult, duration_ms: int
    ) -> None:
        """Log the terminal event for a job from its result."""
        payload = {
            "job": job.pretty_name,
            "description": job.description,
            "duration_ms": duration_ms,
        }
        if result:
            self.log_event("job.completed", correlation_id, "succeeded", payload)
            return

        payload["error_kind"] = result.error_kind.name
        payload["details"] = result.details
        self.log_event(
            "job.failed",
            correlation_id,
            result.status.value,
            payload,
            error_message=result.summary,
        )

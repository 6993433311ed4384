from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.TIMED_OUT})

# Replicate prediction statuses; anything unrecognised is still in flight.
RUNNER_STATUSES: dict[str, JobStatus] = {
    "starting": JobStatus.PENDING,
    "processing": JobStatus.RUNNING,
    "running": JobStatus.RUNNING,
    "succeeded": JobStatus.SUCCEEDED,
    "failed": JobStatus.FAILED,
    "canceled": JobStatus.FAILED,
}


def map_runner_status(raw: object) -> JobStatus:
    if isinstance(raw, str):
        return RUNNER_STATUSES.get(raw.strip().lower(), JobStatus.RUNNING)
    return JobStatus.RUNNING


@dataclass(slots=True)
class Job:
    id: str
    status: JobStatus = JobStatus.PENDING
    output_fragments: list[str] = field(default_factory=list)
    error: str | None = None
    attempts: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def output_text(self) -> str:
        return "".join(self.output_fragments)

    def append_fragments(self, fragments: list[str]) -> None:
        if self.is_terminal:
            raise RuntimeError(f"job {self.id} is {self.status.value}; output is closed")
        self.output_fragments.extend(fragments)

    def finish(self, status: JobStatus, *, error: str | None = None) -> None:
        if self.is_terminal:
            raise RuntimeError(f"job {self.id} is already {self.status.value}")
        self.status = status
        self.error = error

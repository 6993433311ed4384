from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Protocol

from opentelemetry import trace

from voice_recipe.core.errors import JobCancelled, JobFailed, JobTimedOut, TransportError
from voice_recipe.jobs.models import Job, JobStatus, map_runner_status

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

SleepFn = Callable[[float], Awaitable[None]]
ProgressFn = Callable[[int, int], None]


class RunnerClient(Protocol):
    async def create_prediction(self, payload: dict[str, Any]) -> dict[str, Any]: ...

    async def get_prediction(self, prediction_id: str) -> dict[str, Any]: ...


class JobDriver:
    """Submits one prediction and polls it until a terminal state.

    The attempt budget is a hard ceiling: at most ``max_attempts`` fetches are
    made, each preceded by a ``poll_interval_seconds`` sleep.
    """

    def __init__(
        self,
        client: RunnerClient,
        *,
        poll_interval_seconds: float = 1.0,
        max_attempts: int = 30,
        sleep: SleepFn = asyncio.sleep,
        on_progress: ProgressFn | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.client = client
        self.poll_interval_seconds = poll_interval_seconds
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._on_progress = on_progress

    async def submit_and_await(
        self,
        payload: dict[str, Any],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> Job:
        created = await self.client.create_prediction(payload)
        job = Job(id=str(created["id"]))
        logger.info("prediction submitted id=%s", job.id)

        while job.attempts < self.max_attempts:
            _raise_if_cancelled(job, cancel_event)
            await self._sleep(self.poll_interval_seconds)
            _raise_if_cancelled(job, cancel_event)

            job.attempts += 1
            with tracer.start_as_current_span("job.poll") as span:
                span.set_attribute("job.id", job.id)
                span.set_attribute("job.attempt", job.attempts)
                try:
                    prediction = await self.client.get_prediction(job.id)
                except TransportError as exc:
                    exc.job = job
                    raise

            status = map_runner_status(prediction.get("status"))
            fragments = output_fragments(prediction.get("output"))
            logger.info(
                "polled prediction id=%s status=%s attempt %s/%s", job.id, status.value, job.attempts, self.max_attempts
            )
            if self._on_progress is not None:
                self._on_progress(job.attempts, self.max_attempts)

            if status is JobStatus.SUCCEEDED:
                job.append_fragments(fragments)
                job.finish(JobStatus.SUCCEEDED)
                logger.info("prediction succeeded id=%s attempts=%s", job.id, job.attempts)
                return job

            if status is JobStatus.FAILED:
                message = _error_message(prediction)
                job.finish(JobStatus.FAILED, error=message)
                logger.warning("prediction failed id=%s error=%s", job.id, message)
                raise JobFailed(message, job=job)

            job.status = status
            job.append_fragments(fragments)

        job.finish(JobStatus.TIMED_OUT, error="Prediction timed out")
        logger.warning("prediction timed out id=%s attempts=%s", job.id, job.attempts)
        raise JobTimedOut(f"prediction {job.id} did not finish after {job.attempts} attempts", job=job)


def output_fragments(output: Any) -> list[str]:
    if output is None:
        return []
    if isinstance(output, str):
        return [output] if output else []
    if isinstance(output, list):
        return [item if isinstance(item, str) else json.dumps(item) for item in output if item is not None]
    if isinstance(output, dict):
        transcription = output.get("transcription")
        if isinstance(transcription, str):
            return [transcription]
        return [json.dumps(output)]
    return [str(output)]


def _error_message(prediction: dict[str, Any]) -> str:
    error = prediction.get("error")
    if isinstance(error, str) and error.strip():
        return error.strip()
    if error:
        return json.dumps(error)
    if prediction.get("status") == "canceled":
        return "Prediction canceled"
    return "Unknown error"


def _raise_if_cancelled(job: Job, cancel_event: asyncio.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.info("prediction polling cancelled id=%s attempts=%s", job.id, job.attempts)
        raise JobCancelled(f"polling cancelled for prediction {job.id}", job=job)

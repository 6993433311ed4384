from __future__ import annotations

import asyncio
from typing import Any

import pytest

from voice_recipe.core.errors import JobCancelled, JobFailed, JobTimedOut, TransportError
from voice_recipe.jobs.driver import JobDriver, output_fragments
from voice_recipe.jobs.models import JobStatus


class ScriptedRunner:
    def __init__(self, polls: list[dict[str, Any]], *, repeat_last: bool = False) -> None:
        self.polls = polls
        self.repeat_last = repeat_last
        self.submitted: list[dict[str, Any]] = []
        self.fetches = 0

    async def create_prediction(self, payload: dict[str, Any]) -> dict[str, Any]:
        self.submitted.append(payload)
        return {"id": "pred-1", "status": "starting"}

    async def get_prediction(self, prediction_id: str) -> dict[str, Any]:
        assert prediction_id == "pred-1"
        self.fetches += 1
        if self.fetches > len(self.polls) and self.repeat_last:
            return self.polls[-1]
        return self.polls[self.fetches - 1]


def _driver(runner: ScriptedRunner, sleeps: list[float], **kwargs: Any) -> JobDriver:
    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return JobDriver(runner, sleep=fake_sleep, **kwargs)


def test_driver_returns_success_after_running_polls() -> None:
    runner = ScriptedRunner([{"status": "processing"}] * 5 + [{"status": "succeeded", "output": ["done"]}])
    sleeps: list[float] = []

    job = asyncio.run(_driver(runner, sleeps).submit_and_await({"version": "m", "input": {"prompt": "x"}}))

    assert job.status is JobStatus.SUCCEEDED
    assert job.output_fragments == ["done"]
    assert job.output_text == "done"
    assert runner.fetches == 6
    assert job.attempts == 6
    assert sleeps == [1.0] * 6
    assert runner.submitted == [{"version": "m", "input": {"prompt": "x"}}]


def test_driver_times_out_after_attempt_budget() -> None:
    runner = ScriptedRunner([{"status": "processing"}], repeat_last=True)
    sleeps: list[float] = []

    with pytest.raises(JobTimedOut) as exc_info:
        asyncio.run(_driver(runner, sleeps).submit_and_await({}))

    assert runner.fetches == 30
    assert exc_info.value.kind == "timed_out"
    assert exc_info.value.job is not None
    assert exc_info.value.job.status is JobStatus.TIMED_OUT


def test_driver_honours_configured_budget_and_interval() -> None:
    runner = ScriptedRunner([{"status": "starting"}], repeat_last=True)
    sleeps: list[float] = []

    with pytest.raises(JobTimedOut):
        asyncio.run(_driver(runner, sleeps, poll_interval_seconds=0.25, max_attempts=3).submit_and_await({}))

    assert runner.fetches == 3
    assert sleeps == [0.25, 0.25, 0.25]


def test_driver_reports_runner_failure_message() -> None:
    runner = ScriptedRunner([{"status": "processing"}, {"status": "failed", "error": "OOM"}])

    with pytest.raises(JobFailed) as exc_info:
        asyncio.run(_driver(runner, []).submit_and_await({}))

    assert exc_info.value.message == "OOM"
    assert exc_info.value.kind == "failed"
    assert exc_info.value.job.status is JobStatus.FAILED
    assert runner.fetches == 2


def test_driver_uses_generic_message_when_runner_gives_none() -> None:
    runner = ScriptedRunner([{"status": "failed", "error": None}])

    with pytest.raises(JobFailed) as exc_info:
        asyncio.run(_driver(runner, []).submit_and_await({}))

    assert exc_info.value.message == "Unknown error"


def test_driver_treats_canceled_prediction_as_failure() -> None:
    runner = ScriptedRunner([{"status": "canceled"}])

    with pytest.raises(JobFailed) as exc_info:
        asyncio.run(_driver(runner, []).submit_and_await({}))

    assert exc_info.value.message == "Prediction canceled"


def test_driver_appends_partial_output_in_arrival_order_without_dedupe() -> None:
    runner = ScriptedRunner(
        [
            {"status": "processing", "output": ["{\"title\":"]},
            {"status": "processing", "output": None},
            {"status": "processing", "output": ["{\"title\":", " \"Tea\"}"]},
            {"status": "succeeded", "output": [" \"Tea\"}"]},
        ]
    )

    job = asyncio.run(_driver(runner, []).submit_and_await({}))

    assert job.output_fragments == ["{\"title\":", "{\"title\":", " \"Tea\"}", " \"Tea\"}"]


def test_driver_stops_at_cancellation_boundary() -> None:
    runner = ScriptedRunner([{"status": "processing"}], repeat_last=True)
    cancel_event = asyncio.Event()
    fetches_before_cancel = 2

    async def cancelling_sleep(_: float) -> None:
        if runner.fetches >= fetches_before_cancel:
            cancel_event.set()

    driver = JobDriver(runner, sleep=cancelling_sleep)

    with pytest.raises(JobCancelled) as exc_info:
        asyncio.run(driver.submit_and_await({}, cancel_event=cancel_event))

    assert runner.fetches == fetches_before_cancel
    assert exc_info.value.kind == "cancelled"


def test_driver_propagates_transport_errors_with_collected_output() -> None:
    class FlakyRunner(ScriptedRunner):
        async def get_prediction(self, prediction_id: str) -> dict[str, Any]:
            if self.fetches == 2:
                self.fetches += 1
                raise TransportError("connection reset")
            return await super().get_prediction(prediction_id)

    runner = FlakyRunner([{"status": "processing", "output": ["{\"title\":"]}, {"status": "processing", "output": [" \"Tea\""]}])

    with pytest.raises(TransportError, match="connection reset") as exc_info:
        asyncio.run(_driver(runner, []).submit_and_await({}))

    assert runner.fetches == 3
    assert exc_info.value.job is not None
    assert exc_info.value.job.attempts == 3
    assert exc_info.value.job.output_fragments == ["{\"title\":", " \"Tea\""]


def test_driver_emits_progress_for_every_poll_including_the_last() -> None:
    runner = ScriptedRunner([{"status": "processing"}] * 2 + [{"status": "succeeded", "output": "ok"}])
    progress: list[tuple[int, int]] = []

    asyncio.run(_driver(runner, [], max_attempts=5, on_progress=lambda n, total: progress.append((n, total))).submit_and_await({}))

    assert progress == [(1, 5), (2, 5), (3, 5)]


def test_driver_emits_progress_before_reporting_failure() -> None:
    runner = ScriptedRunner([{"status": "failed", "error": "OOM"}])
    progress: list[tuple[int, int]] = []

    with pytest.raises(JobFailed):
        asyncio.run(_driver(runner, [], on_progress=lambda n, total: progress.append((n, total))).submit_and_await({}))

    assert progress == [(1, 30)]


def test_driver_rejects_empty_budget() -> None:
    with pytest.raises(ValueError):
        JobDriver(ScriptedRunner([]), max_attempts=0)


def test_output_fragments_normalises_runner_shapes() -> None:
    assert output_fragments(None) == []
    assert output_fragments("") == []
    assert output_fragments("text") == ["text"]
    assert output_fragments(["a", None, "b"]) == ["a", "b"]
    assert output_fragments({"transcription": "hello there"}) == ["hello there"]
    assert output_fragments({"segments": []}) == ['{"segments": []}']

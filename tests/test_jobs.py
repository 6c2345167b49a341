"""Tests for the investigation queue and the log monitor cycle runner."""
import asyncio
import threading

import pytest

from intel_service.jobs.queue import InvestigationQueue
from intel_service.jobs.scheduler import CycleRunner
from tests.conftest import make_alert


class FlakyHandler:
    """Handler that fails a fixed number of times before succeeding."""

    def __init__(self, failures):
        self.failures = failures
        self.calls = []

    def __call__(self, alert, source):
        self.calls.append((alert.alert_name, source))
        if len(self.calls) <= self.failures:
            raise RuntimeError("database unavailable")
        return "ok"


def _recording_sleep(delays):
    async def sleep(delay):
        delays.append(delay)

    return sleep


@pytest.mark.asyncio
async def test_queue_runs_job():
    """A queued alert is handed to the handler with its source."""
    handler = FlakyHandler(failures=0)
    queue = InvestigationQueue(handler=handler)
    await queue.start()
    try:
        job_id = queue.enqueue(make_alert(), "grafana")
        await asyncio.wait_for(queue.join(), timeout=5)
    finally:
        await queue.stop()

    assert job_id
    assert handler.calls == [("HighErrorRate", "grafana")]
    assert queue.get_counts() == {"waiting": 0, "active": 0, "completed": 1, "failed": 0}


@pytest.mark.asyncio
async def test_queue_retries_with_backoff():
    """A failing job is retried with exponentially growing delays."""
    delays = []
    handler = FlakyHandler(failures=2)
    queue = InvestigationQueue(handler=handler, attempts=3, backoff_delay=2.0, sleep=_recording_sleep(delays))
    await queue.start()
    try:
        queue.enqueue(make_alert())
        await asyncio.wait_for(queue.join(), timeout=5)
    finally:
        await queue.stop()

    assert len(handler.calls) == 3
    assert delays == [2.0, 4.0]
    assert queue.get_counts()["completed"] == 1
    assert queue.get_counts()["failed"] == 0


@pytest.mark.asyncio
async def test_queue_gives_up_after_attempts():
    """A job that keeps failing is counted as failed after the last attempt."""
    delays = []
    handler = FlakyHandler(failures=10)
    queue = InvestigationQueue(handler=handler, attempts=3, backoff_delay=1.0, sleep=_recording_sleep(delays))
    await queue.start()
    try:
        queue.enqueue(make_alert())
        queue.enqueue(make_alert(alert_name="Second"))
        await asyncio.wait_for(queue.join(), timeout=5)
    finally:
        await queue.stop()

    assert len(handler.calls) == 6
    assert delays == [1.0, 2.0, 1.0, 2.0]
    assert queue.get_counts()["failed"] == 2


@pytest.mark.asyncio
async def test_queue_start_and_stop_are_idempotent():
    queue = InvestigationQueue(handler=FlakyHandler(failures=0), concurrency=2)
    await queue.start()
    await queue.start()
    assert queue.is_started
    await queue.stop()
    await queue.stop()
    assert not queue.is_started


def test_enqueue_before_start_waits():
    """Jobs queued before the workers start stay waiting."""
    queue = InvestigationQueue(handler=FlakyHandler(failures=0))
    queue.enqueue(make_alert())
    assert queue.get_counts()["waiting"] == 1


class BlockingCycle:
    """Cycle that blocks until released, to hold the runner slot."""

    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()
        self.runs = 0

    def __call__(self):
        self.runs += 1
        self.started.set()
        self.release.wait(timeout=5)
        return {"run": self.runs}


@pytest.mark.asyncio
async def test_runner_rejects_overlapping_cycles():
    """A trigger that arrives while a cycle runs is rejected."""
    cycle = BlockingCycle()
    runner = CycleRunner(cycle=cycle)

    assert runner.try_start()
    await asyncio.to_thread(cycle.started.wait, 5)
    assert runner.is_running

    assert not runner.try_start()
    assert await runner.run_once() is None

    cycle.release.set()
    await runner.stop()
    assert not runner.is_running
    assert cycle.runs == 1

    assert await runner.run_once() == {"run": 2}


@pytest.mark.asyncio
async def test_runner_survives_failing_cycle():
    """A cycle that raises releases the slot and yields None."""
    calls = []

    def failing_cycle():
        calls.append(1)
        raise RuntimeError("Railway unavailable")

    runner = CycleRunner(cycle=failing_cycle)
    assert await runner.run_once() is None
    assert not runner.is_running
    assert await runner.run_once() is None
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_runner_timer_start_stop():
    runner = CycleRunner(cycle=lambda: None, interval_minutes=60)
    await runner.start()
    await runner.start()
    await runner.stop()
    assert not runner.is_running

# Copyright 2026 icecake0141
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# This file was created or modified with the assistance of an AI (Large Language Model).
# Review required for correctness, security, and licensing.
"""Unit tests for the bounded worker pool."""

import logging
import threading
import time

from harvester.app.application.events import (
    JOB_CANCELLED,
    JOB_FAILED,
    JOB_STARTED,
    JOB_SUCCEEDED,
)
from harvester.app.application.execution_control import ExecutionControl
from harvester.app.application.retry_controller import RetryController
from harvester.app.application.worker_pool import PoolConfig, WorkerPool
from harvester.app.domain.errors import AuthError
from harvester.app.domain.models import AssetTarget, Job, JobStatus, Transcript
from harvester.app.infrastructure.logging_event_publisher import LoggingEventPublisher
from harvester.tests.helpers.event_store import InMemoryEventStore


class StubRunner:
    """Deterministic runner with outcomes keyed by asset name."""

    def __init__(self, failing=(), delay=0.0, on_run=None):
        self.failing = set(failing)
        self.delay = delay
        self.on_run = on_run
        self.calls: list[str] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def run(self, job, control):
        with self._lock:
            self.calls.append(job.asset.name)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.on_run is not None:
                self.on_run(job, control)
            if self.delay:
                time.sleep(self.delay)
            if job.asset.name in self.failing:
                raise AuthError(f"{job.asset.name} rejected password")
            transcript = Transcript(job.asset, job.vendor)
            transcript.append("show version", f"{job.asset.name}#")
            return transcript
        finally:
            with self._lock:
                self.active -= 1


class MemorySink:
    def __init__(self, error=None):
        self.error = error
        self.written: dict[str, str] = {}

    def write(self, job, transcript):
        if self.error is not None:
            raise self.error
        path = f"/collections/{job.asset.name}.txt"
        self.written[path] = transcript.render()
        return path


def _job(name, password="secret", address=None) -> Job:
    return Job(
        vendor="zte",
        username="admin",
        password=password,
        asset=AssetTarget(name=name, address=address or f"192.0.2.{len(name)}", port=22),
    )


def _pool(runner, sink=None, store=None, max_retries=0):
    store = store or InMemoryEventStore()
    sink = sink or MemorySink()
    pool = WorkerPool(
        retry=RetryController(runner, publisher=store, backoff_step=0),
        sink=sink,
        publisher=store,
    )
    return pool, sink, store


def test_every_job_is_processed_once():
    runner = StubRunner()
    pool, sink, store = _pool(runner)
    jobs = [_job(f"node-{i}") for i in range(6)]

    summary = pool.run(jobs, PoolConfig(concurrency=3), ExecutionControl())

    assert summary.succeeded == 6
    assert sorted(runner.calls) == sorted(job.asset.name for job in jobs)
    assert len(sink.written) == 6
    for result in summary.results:
        assert result.attempts == 1
        assert result.command_blocks == 1
        assert result.output_path == f"/collections/{result.asset.name}.txt"
        assert store.types_for(result.asset.name) == [JOB_STARTED, JOB_SUCCEEDED]


def test_results_follow_job_order():
    pool, _, _ = _pool(StubRunner(delay=0.01))
    jobs = [_job(f"node-{i}") for i in range(5)]

    summary = pool.run(jobs, PoolConfig(concurrency=5), ExecutionControl())

    assert [r.asset.name for r in summary.results] == [j.asset.name for j in jobs]


def test_concurrency_is_bounded():
    runner = StubRunner(delay=0.05)
    pool, _, _ = _pool(runner)

    summary = pool.run(
        [_job(f"node-{i}") for i in range(8)], PoolConfig(concurrency=2), ExecutionControl()
    )

    assert summary.succeeded == 8
    assert runner.max_active <= 2


def test_failed_job_does_not_affect_others():
    runner = StubRunner(failing={"bad"})
    pool, sink, store = _pool(runner)

    summary = pool.run(
        [_job("good"), _job("bad")],
        PoolConfig(concurrency=2, max_retries=2),
        ExecutionControl(),
    )

    good, bad = summary.results
    assert good.status == JobStatus.SUCCEEDED
    assert bad.status == JobStatus.FAILED
    assert bad.attempts == 3
    assert "rejected password" in bad.error
    assert runner.calls.count("bad") == 3
    assert store.types_for("bad")[-1] == JOB_FAILED
    assert list(sink.written) == ["/collections/good.txt"]


def test_same_device_jobs_are_isolated():
    barrier = threading.Barrier(2, timeout=2)

    def both_in_flight(job, control):
        barrier.wait()

    class CredentialRunner(StubRunner):
        def run(self, job, control):
            if job.password != "right":
                self.failing.add(job.asset.name)
            return super().run(job, control)

    runner = CredentialRunner(on_run=both_in_flight)
    pool, _, _ = _pool(runner)
    jobs = [
        _job("switch-a", password="right", address="198.51.100.7"),
        _job("switch-b", password="wrong", address="198.51.100.7"),
    ]

    summary = pool.run(jobs, PoolConfig(concurrency=2), ExecutionControl())

    ok, failed = summary.results
    assert ok.status == JobStatus.SUCCEEDED
    assert failed.status == JobStatus.FAILED
    assert runner.max_active == 2


def test_cancelled_before_run_marks_everything_cancelled():
    runner = StubRunner()
    pool, sink, store = _pool(runner)
    control = ExecutionControl()
    control.cancel()

    summary = pool.run([_job("a"), _job("bb")], PoolConfig(concurrency=2), control)

    assert summary.cancelled == 2
    assert runner.calls == []
    assert sink.written == {}
    assert store.types_for("a") == [JOB_CANCELLED]
    assert store.types_for("bb") == [JOB_CANCELLED]


def test_cancellation_mid_run_drains_remaining_jobs():
    def cancel_on_first(job, control):
        control.cancel()

    runner = StubRunner(on_run=cancel_on_first)
    pool, _, store = _pool(runner)

    summary = pool.run(
        [_job(f"node-{i}") for i in range(4)],
        PoolConfig(concurrency=1),
        ExecutionControl(),
    )

    assert runner.calls == ["node-0"]
    assert summary.results[0].status == JobStatus.SUCCEEDED
    assert [r.status for r in summary.results[1:]] == [JobStatus.CANCELLED] * 3
    for result in summary.results[1:]:
        assert store.types_for(result.asset.name) == [JOB_CANCELLED]
        assert result.error == "cancelled before start"


def test_cancellation_inside_retry_is_reported():
    def cancel_then_fail(job, control):
        control.cancel()

    runner = StubRunner(failing={"flaky"}, on_run=cancel_then_fail)
    pool, _, store = _pool(runner)

    summary = pool.run(
        [_job("flaky")], PoolConfig(concurrency=1, max_retries=3), ExecutionControl()
    )

    assert summary.results[0].status == JobStatus.CANCELLED
    assert runner.calls == ["flaky"]
    assert store.types_for("flaky") == [JOB_STARTED, JOB_CANCELLED]


def test_write_failure_fails_job_without_retry():
    runner = StubRunner()
    pool, _, _ = _pool(runner, sink=MemorySink(error=PermissionError("read-only")))

    summary = pool.run(
        [_job("core")], PoolConfig(concurrency=1, max_retries=3), ExecutionControl()
    )

    result = summary.results[0]
    assert result.status == JobStatus.FAILED
    assert result.error.startswith("write transcript:")
    assert runner.calls == ["core"]


def test_queued_cancellations_are_logged_per_job(caplog):
    def cancel_on_first(job, control):
        control.cancel()

    pool = WorkerPool(
        retry=RetryController(StubRunner(on_run=cancel_on_first), backoff_step=0),
        sink=MemorySink(),
        publisher=LoggingEventPublisher(),
    )

    with caplog.at_level(logging.INFO, logger="harvester.jobs"):
        pool.run(
            [_job("n0"), _job("n1"), _job("n2")],
            PoolConfig(concurrency=1),
            ExecutionControl(),
        )

    cancelled = [r for r in caplog.records if r.getMessage() == "job cancelled"]
    assert [r.fields["asset"] for r in cancelled] == ["n1", "n2"]
    assert all(r.fields["protocol"] == "ssh" for r in cancelled)
    assert all(r.fields["vendor"] == "zte" for r in cancelled)


def test_unexpected_runner_error_is_not_reported_as_write_failure():
    class ExplodingRunner:
        def run(self, job, control):
            raise OSError(97, "Address family not supported by protocol")

    sink = MemorySink()
    pool, _, store = _pool(ExplodingRunner(), sink=sink)

    summary = pool.run([_job("v6only")], PoolConfig(concurrency=1), ExecutionControl())

    result = summary.results[0]
    assert result.status == JobStatus.FAILED
    assert result.error.startswith("unexpected error:")
    assert "write transcript" not in result.error
    assert sink.written == {}
    assert store.types_for("v6only") == [JOB_STARTED, JOB_FAILED]

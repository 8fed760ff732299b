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
"""Unit tests for bounded retries with linear backoff."""

import threading
import time

import pytest

from harvester.app.application.events import JOB_RETRYING
from harvester.app.application.execution_control import ExecutionControl
from harvester.app.application.retry_controller import RetryController
from harvester.app.domain.errors import (
    ConnectError,
    JobCancelledError,
    RetryExhaustedError,
)
from harvester.app.domain.models import AssetTarget, Job, Transcript
from harvester.tests.helpers.event_store import InMemoryEventStore


class StubRunner:
    """Fails a fixed number of times, then returns a transcript."""

    def __init__(self, failures: int, error=None):
        self.failures = failures
        self.error = error or ConnectError("dial tcp 192.0.2.9:22: connection refused")
        self.calls = 0

    def run(self, job, control):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return Transcript(job.asset, job.vendor)


class RecordingControl(ExecutionControl):
    """Records backoff waits instead of sleeping."""

    def __init__(self):
        super().__init__()
        self.waits: list[float] = []

    def wait(self, seconds):
        self.waits.append(seconds)
        return self.is_cancelled()


def _job() -> Job:
    return Job(
        vendor="huawei",
        username="admin",
        password="secret",
        asset=AssetTarget(name="agg-1", address="192.0.2.9", port=22),
    )


def test_always_failing_job_runs_max_retries_plus_one_times():
    runner = StubRunner(failures=100)
    retry = RetryController(runner, backoff_step=0)

    with pytest.raises(RetryExhaustedError) as excinfo:
        retry.run(_job(), max_retries=3, control=ExecutionControl())

    assert runner.calls == 4
    assert excinfo.value.attempts == 4
    assert "failed after 4 attempts" in str(excinfo.value)
    assert "connection refused" in str(excinfo.value)
    assert isinstance(excinfo.value.last_error, ConnectError)


def test_zero_retries_means_single_attempt():
    runner = StubRunner(failures=1)

    with pytest.raises(RetryExhaustedError):
        RetryController(runner, backoff_step=0).run(_job(), 0, ExecutionControl())

    assert runner.calls == 1


def test_success_after_retry_reports_attempts_and_event():
    store = InMemoryEventStore()
    runner = StubRunner(failures=1)
    retry = RetryController(runner, publisher=store, backoff_step=0)

    transcript, attempts = retry.run(_job(), max_retries=2, control=ExecutionControl())

    assert attempts == 2
    assert transcript.asset.name == "agg-1"
    events = store.list_events("agg-1")
    assert [e.type for e in events] == [JOB_RETRYING]
    assert events[0].attempt == 1
    assert "retry 1/2" in events[0].message


def test_backoff_grows_linearly():
    control = RecordingControl()
    runner = StubRunner(failures=100)

    with pytest.raises(RetryExhaustedError):
        RetryController(runner).run(_job(), max_retries=3, control=control)

    assert control.waits == [2.0, 4.0, 6.0]


def test_cancelled_before_first_attempt():
    control = ExecutionControl()
    control.cancel()
    runner = StubRunner(failures=0)

    with pytest.raises(JobCancelledError):
        RetryController(runner).run(_job(), max_retries=3, control=control)

    assert runner.calls == 0


def test_cancellation_is_never_retried():
    runner = StubRunner(failures=100, error=JobCancelledError())

    with pytest.raises(JobCancelledError):
        RetryController(runner, backoff_step=0).run(_job(), 5, ExecutionControl())

    assert runner.calls == 1


def test_cancellation_interrupts_backoff():
    control = ExecutionControl()
    runner = StubRunner(failures=100)
    timer = threading.Timer(0.1, control.cancel)
    timer.start()

    started = time.monotonic()
    with pytest.raises(JobCancelledError, match="backoff"):
        RetryController(runner, backoff_step=5).run(_job(), 3, control)
    timer.cancel()

    assert time.monotonic() - started < 2.0
    assert runner.calls == 1

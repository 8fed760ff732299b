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
"""Bounded worker pool draining a pre-filled job queue."""

from __future__ import annotations

import logging
import queue
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Protocol

from harvester.app.application.events import (
    JOB_CANCELLED,
    JOB_FAILED,
    JOB_STARTED,
    JOB_SUCCEEDED,
    CollectionEvent,
    EventPublisher,
)
from harvester.app.application.execution_control import ExecutionControl
from harvester.app.application.retry_controller import RetryController
from harvester.app.domain.errors import JobCancelledError, RetryExhaustedError
from harvester.app.domain.models import (
    CollectionSummary,
    Job,
    JobEvent,
    JobResult,
    Transcript,
)
from harvester.app.domain.state_machine import JobStateMachine

logger = logging.getLogger(__name__)

MAX_CONCURRENCY = 50


class TranscriptSink(Protocol):
    """Persistence target for finished transcripts."""

    def write(self, job: Job, transcript: Transcript) -> str:
        """Store the transcript and return where it went."""


@dataclass(frozen=True)
class PoolConfig:
    """Runtime behavior for the worker pool."""

    concurrency: int = 5
    max_retries: int = 0


class WorkerPool:
    """Fixed set of workers sharing one closed job queue."""

    def __init__(
        self,
        retry: RetryController,
        sink: TranscriptSink,
        publisher: EventPublisher | None = None,
        state_machine: Optional[JobStateMachine] = None,
    ):
        self.retry = retry
        self.sink = sink
        self.publisher = publisher
        self.state_machine = state_machine or JobStateMachine()

    def _emit(self, event_type: str, job: Job, **kwargs) -> None:
        if self.publisher is None:
            return
        self.publisher.publish(CollectionEvent.for_job(event_type, job, **kwargs))

    def _advance(self, result: JobResult, event: JobEvent) -> None:
        result.status = self.state_machine.transition(result.status, event).next_status

    def run(
        self, jobs: list[Job], config: PoolConfig, control: ExecutionControl
    ) -> CollectionSummary:
        """Run every job and wait for all workers to exit."""
        summary = CollectionSummary(
            results=[JobResult(asset=job.asset, vendor=job.vendor) for job in jobs]
        )
        concurrency = max(1, min(config.concurrency, MAX_CONCURRENCY))

        # Filled completely, then closed with one sentinel per worker.
        pending: queue.Queue[tuple[int, Job] | None] = queue.Queue()
        for index, job in enumerate(jobs):
            pending.put((index, job))
        for _ in range(concurrency):
            pending.put(None)

        with ThreadPoolExecutor(
            max_workers=concurrency, thread_name_prefix="collector"
        ) as executor:
            futures = [
                executor.submit(self._worker, worker_id, pending, config, control, summary)
                for worker_id in range(concurrency)
            ]
            for future in futures:
                future.result()

        for job, result in zip(jobs, summary.results):
            if self.state_machine.can_transition(result.status, JobEvent.CANCEL):
                result.error = "cancelled before start"
                self._advance(result, JobEvent.CANCEL)
                self._emit(JOB_CANCELLED, job, message=result.error)
        return summary

    def _worker(
        self,
        worker_id: int,
        pending: queue.Queue,
        config: PoolConfig,
        control: ExecutionControl,
        summary: CollectionSummary,
    ) -> None:
        while True:
            item = pending.get()
            if item is None:
                return
            if control.is_cancelled():
                logger.warning("worker cancelled", extra={"fields": {"worker_id": worker_id}})
                return
            index, job = item
            self._run_one(job, summary.results[index], config, control)

    def _fail(self, job: Job, result: JobResult, error: str) -> None:
        result.error = error
        self._advance(result, JobEvent.FAIL)
        self._emit(JOB_FAILED, job, attempt=result.attempts, message=error)

    def _run_one(
        self,
        job: Job,
        result: JobResult,
        config: PoolConfig,
        control: ExecutionControl,
    ) -> None:
        self._advance(result, JobEvent.START)
        self._emit(JOB_STARTED, job)
        try:
            transcript, attempts = self.retry.run(job, config.max_retries, control)
        except JobCancelledError as exc:
            result.error = str(exc)
            self._advance(result, JobEvent.CANCEL)
            self._emit(JOB_CANCELLED, job, message=result.error)
            return
        except RetryExhaustedError as exc:
            result.attempts = exc.attempts
            self._fail(job, result, str(exc))
            return
        except Exception as exc:
            logger.exception("unexpected error collecting %s", job.asset.key)
            self._fail(job, result, f"unexpected error: {exc}")
            return

        result.attempts = attempts
        try:
            result.output_path = self.sink.write(job, transcript)
        except OSError as exc:
            self._fail(job, result, f"write transcript: {exc}")
            return
        result.command_blocks = transcript.block_count
        self._advance(result, JobEvent.SUCCEED)
        self._emit(
            JOB_SUCCEEDED,
            job,
            attempt=result.attempts,
            output_path=result.output_path,
        )

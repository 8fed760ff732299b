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
"""Bounded re-attempts with linear backoff."""

from __future__ import annotations

import logging
from typing import Protocol

from harvester.app.application.events import (
    JOB_RETRYING,
    CollectionEvent,
    EventPublisher,
)
from harvester.app.application.execution_control import ExecutionControl
from harvester.app.domain.errors import (
    CollectorError,
    JobCancelledError,
    RetryExhaustedError,
)
from harvester.app.domain.models import Job, Transcript

logger = logging.getLogger(__name__)

BACKOFF_STEP_SECONDS = 2.0


class JobRunner(Protocol):
    """Anything that can run one attempt of a job."""

    def run(self, job: Job, control: ExecutionControl) -> Transcript:
        """Run one attempt and return the transcript."""


class RetryController:
    """Runs a job up to ``max_retries + 1`` times.

    Every error kind is retried the same way; only cancellation stops the
    loop early. Attempt ``n`` (zero based) waits ``n * backoff_step``
    seconds first.
    """

    def __init__(
        self,
        runner: JobRunner,
        publisher: EventPublisher | None = None,
        backoff_step: float = BACKOFF_STEP_SECONDS,
    ):
        self.runner = runner
        self.publisher = publisher
        self.backoff_step = backoff_step

    def run(
        self, job: Job, max_retries: int, control: ExecutionControl
    ) -> tuple[Transcript, int]:
        """Return the first successful transcript and the attempts it took.

        Raises JobCancelledError unchanged, or RetryExhaustedError once
        every attempt has failed.
        """
        last_error: Exception | None = None
        total = max(0, max_retries) + 1
        for attempt in range(total):
            if control.is_cancelled():
                raise JobCancelledError()

            if attempt > 0:
                backoff = attempt * self.backoff_step
                self._emit_retry(job, attempt, max_retries, backoff, last_error)
                if control.wait(backoff):
                    raise JobCancelledError("cancelled during retry backoff")

            try:
                return self.runner.run(job, control), attempt + 1
            except JobCancelledError:
                raise
            except CollectorError as exc:
                last_error = exc
                logger.debug("attempt %s of %s failed: %s", attempt + 1, total, exc)

        raise RetryExhaustedError(attempts=total, last_error=last_error) from last_error

    def _emit_retry(
        self,
        job: Job,
        attempt: int,
        max_retries: int,
        backoff: float,
        last_error: Exception | None,
    ) -> None:
        if self.publisher is None:
            return
        self.publisher.publish(
            CollectionEvent.for_job(
                JOB_RETRYING,
                job,
                attempt=attempt,
                message=(
                    f"retry {attempt}/{max_retries} in {backoff:g}s "
                    f"after: {last_error}"
                ),
            )
        )

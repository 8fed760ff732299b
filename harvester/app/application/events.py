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
"""Collection event contracts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from harvester.app.domain.models import Job

JOB_STARTED = "job_started"
JOB_SUCCEEDED = "job_succeeded"
JOB_FAILED = "job_failed"
JOB_RETRYING = "job_retrying"
JOB_CANCELLED = "job_cancelled"


def utc_now() -> str:
    """UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class CollectionEvent:
    """Single event emitted while running a job."""

    type: str
    asset: str
    address: str
    vendor: str
    protocol: str
    timestamp: str
    attempt: int | None = None
    message: str | None = None
    output_path: str | None = None

    @classmethod
    def for_job(cls, event_type: str, job: Job, **kwargs: Any) -> "CollectionEvent":
        return cls(
            type=event_type,
            asset=job.asset.name,
            address=job.asset.address,
            vendor=job.vendor,
            protocol=job.protocol.value,
            timestamp=utc_now(),
            **kwargs,
        )


class EventPublisher(Protocol):
    """Publisher for collection events."""

    def publish(self, event: CollectionEvent) -> None:
        """Publish one event."""

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
"""Error taxonomy for configuration, sessions and job orchestration."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from harvester.app.domain.models import Transcript


class CollectorError(Exception):
    """Base class for all collector errors.

    ``stage`` names where the failure happened (dial, handshake, auth,
    unknown-vendor, cancelled, ...). ``transcript`` holds whatever was
    captured before the failure and ``command_index`` the position of the
    command being processed, when there was one.
    """

    stage = "job"

    def __init__(
        self,
        message: str,
        *,
        stage: Optional[str] = None,
        transcript: Optional[Transcript] = None,
        command_index: Optional[int] = None,
    ):
        super().__init__(message)
        if stage is not None:
            self.stage = stage
        self.transcript = transcript
        self.command_index = command_index

    def __str__(self) -> str:
        message = super().__str__()
        if self.command_index is not None:
            return f"{self.stage}: {message} (command #{self.command_index})"
        return f"{self.stage}: {message}"


class ConfigError(CollectorError):
    """Invalid or incomplete configuration; aborts the run before any I/O."""

    stage = "config"


class UnknownVendorError(ConfigError):
    """Vendor is not part of the supported command profiles."""

    stage = "unknown-vendor"

    def __init__(self, vendor: str, **kwargs):
        super().__init__(
            f"unknown vendor {vendor!r} (use huawei or zte)", **kwargs
        )
        self.vendor = vendor


class SessionError(CollectorError):
    """Per-job transport failure; retryable."""


class ConnectError(SessionError):
    stage = "dial"


class AuthError(SessionError):
    stage = "auth"


class HostKeyRejectedError(AuthError):
    stage = "handshake"


class WriteError(SessionError):
    stage = "write"


class JobCancelledError(CollectorError):
    """Cancellation was requested; never retried."""

    stage = "cancelled"

    def __init__(self, message: str = "collection cancelled", **kwargs):
        super().__init__(message, **kwargs)


class RetryExhaustedError(CollectorError):
    """All attempts of a job failed."""

    stage = "retry"

    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(f"failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error

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
"""Single-job executor: one session, one vendor command list, one transcript."""

from __future__ import annotations

import contextlib
import logging
import time
from typing import Mapping

from harvester.app.application.execution_control import ExecutionControl
from harvester.app.application.transport import TransportFactory, TransportSession
from harvester.app.domain.errors import CollectorError, JobCancelledError, WriteError
from harvester.app.domain.models import Job, Transcript
from harvester.app.domain.vendor_profiles import (
    VENDOR_PROFILES,
    VendorProfile,
    commands_for_vendor,
    prompts_for_vendor,
)

logger = logging.getLogger(__name__)

INITIAL_PROMPT_TIMEOUT = 10.0
EXIT_COMMAND = "quit"
EXIT_DRAIN_DELAY = 0.3


def _fields(job: Job, **extra) -> dict:
    fields = {
        "asset": job.asset.name,
        "address": job.asset.address,
        "vendor": job.vendor,
        "protocol": job.protocol.value,
    }
    fields.update(extra)
    return {"fields": fields}


class JobExecutor:
    """Drives a transport session through login and the command loop."""

    def __init__(
        self,
        transports: TransportFactory,
        profiles: Mapping[str, VendorProfile] = VENDOR_PROFILES,
        initial_prompt_timeout: float = INITIAL_PROMPT_TIMEOUT,
        exit_drain_delay: float = EXIT_DRAIN_DELAY,
    ):
        self.transports = transports
        self.profiles = profiles
        self.initial_prompt_timeout = initial_prompt_timeout
        self.exit_drain_delay = exit_drain_delay

    def run(self, job: Job, control: ExecutionControl) -> Transcript:
        """Collect one transcript.

        Raises UnknownVendorError before any network I/O, JobCancelledError
        when cancellation is seen, and SessionError subclasses for dial,
        handshake, auth and shell failures. Raised errors carry the partial
        transcript.
        """
        commands = commands_for_vendor(job.vendor, self.profiles)
        prompts = prompts_for_vendor(job.vendor, self.profiles)
        if control.is_cancelled():
            raise JobCancelledError()

        session = self.transports.open(job, control)
        transcript = Transcript(job.asset, job.vendor)
        try:
            session.login(job.username, job.password, job.timeout, control)
            self._drain_banner(session, prompts, job, control)
            self._run_commands(session, commands, prompts, job, control, transcript)
            self._logout(session)
        except CollectorError as exc:
            if exc.transcript is None:
                exc.transcript = transcript
            raise
        finally:
            session.close()
        return transcript

    def _drain_banner(
        self,
        session: TransportSession,
        prompts: list[str],
        job: Job,
        control: ExecutionControl,
    ) -> None:
        result = session.read_until(prompts, self.initial_prompt_timeout, control)
        if result.cancelled:
            raise JobCancelledError("cancelled waiting for initial prompt")
        if result.timed_out:
            logger.warning("timeout waiting for initial prompt", extra=_fields(job))

    def _run_commands(
        self,
        session: TransportSession,
        commands: list[str],
        prompts: list[str],
        job: Job,
        control: ExecutionControl,
        transcript: Transcript,
    ) -> None:
        for index, raw in enumerate(commands):
            command = raw.strip()
            if not command:
                continue
            if control.is_cancelled():
                raise JobCancelledError(command_index=index)

            try:
                session.send_line(command)
            except WriteError as exc:
                logger.warning(
                    "error sending command",
                    extra=_fields(job, cmd=command, index=index, error=str(exc)),
                )
                continue

            result = session.read_until(prompts, job.timeout, control)
            transcript.append(command, result.text, matched=result.matched)
            if result.cancelled:
                raise JobCancelledError(command_index=index)
            if result.timed_out:
                logger.warning(
                    "timeout reading command output",
                    extra=_fields(job, cmd=command, index=index),
                )

    def _logout(self, session: TransportSession) -> None:
        with contextlib.suppress(WriteError):
            session.send_line(EXIT_COMMAND)
        time.sleep(self.exit_drain_delay)

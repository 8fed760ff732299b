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
"""Selects the transport variant matching a job's protocol."""

from __future__ import annotations

from harvester.app.application.execution_control import ExecutionControl
from harvester.app.application.transport import (
    READ_POLL_INTERVAL,
    TransportFactory,
    TransportSession,
)
from harvester.app.domain.errors import ConnectError
from harvester.app.domain.models import Job, Protocol
from harvester.app.infrastructure.host_keys import AcceptAnyHostKey, HostKeyVerifier
from harvester.app.infrastructure.ssh_session import open_ssh_session
from harvester.app.infrastructure.telnet_session import open_telnet_session


class ProtocolSessionFactory(TransportFactory):
    """Opens SSH or Telnet sessions for jobs."""

    def __init__(
        self,
        host_key_verifier: HostKeyVerifier | None = None,
        poll_interval: float = READ_POLL_INTERVAL,
    ):
        self.host_key_verifier = host_key_verifier or AcceptAnyHostKey()
        self.poll_interval = poll_interval

    def open(self, job: Job, control: ExecutionControl) -> TransportSession:
        if job.protocol == Protocol.SSH:
            return open_ssh_session(
                job, control, self.host_key_verifier, poll_interval=self.poll_interval
            )
        if job.protocol == Protocol.TELNET:
            return open_telnet_session(job, control, poll_interval=self.poll_interval)
        raise ConnectError(f"unknown protocol {job.protocol!r} (use ssh or telnet)")

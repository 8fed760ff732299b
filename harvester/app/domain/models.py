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
"""Domain models for the collection engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

DEFAULT_PORTS = {"ssh": 22, "telnet": 23}


class Protocol(str, Enum):
    """Supported line protocols."""

    SSH = "ssh"
    TELNET = "telnet"


class JobStatus(str, Enum):
    """Lifecycle states for a collection job."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobEvent(str, Enum):
    """Events that trigger state transitions."""

    START = "start"
    SUCCEED = "succeed"
    FAIL = "fail"
    CANCEL = "cancel"


@dataclass(frozen=True)
class JobTransition:
    """Single transition entry."""

    current: JobStatus
    event: JobEvent
    next_status: JobStatus


@dataclass(frozen=True)
class AssetTarget:
    """Resolved connection target for one device."""

    name: str
    address: str
    port: int
    protocol: Protocol = Protocol.SSH

    @property
    def key(self) -> str:
        """Stable key for maps and logs."""
        return f"{self.name}@{self.address}:{self.port}"


@dataclass(frozen=True)
class LegacySSHOptions:
    """Deprecated algorithm lists offered to old SSH stacks."""

    enabled: bool = False
    kex_algorithms: tuple[str, ...] = ()
    ciphers: tuple[str, ...] = ()
    macs: tuple[str, ...] = ()
    host_key_algorithms: tuple[str, ...] = ()


@dataclass(frozen=True)
class Job:
    """One unit of collection work, immutable once enqueued."""

    vendor: str
    username: str
    password: str = field(repr=False)
    asset: AssetTarget
    timeout: float = 30.0
    ssh_legacy: Optional[LegacySSHOptions] = None

    @property
    def protocol(self) -> Protocol:
        return self.asset.protocol


@dataclass(frozen=True)
class CommandBlock:
    """Captured output of one command."""

    command: str
    output: str
    matched: bool = True

    def render(self) -> str:
        return f"\n\n==== CMD: {self.command} ====\n{self.output}"


class Transcript:
    """Append-only capture of one session with one asset."""

    def __init__(
        self,
        asset: AssetTarget,
        vendor: str,
        started_at: Optional[datetime] = None,
    ):
        self.asset = asset
        self.vendor = vendor
        self.started_at = started_at or datetime.now().astimezone()
        self._blocks: list[CommandBlock] = []

    @property
    def header(self) -> str:
        return (
            f"### ASSET={self.asset.name} IP={self.asset.address} "
            f"VENDOR={self.vendor} PROTOCOL={self.asset.protocol.value} "
            f"TIME={self.started_at.isoformat(timespec='seconds')} ###\n\n"
        )

    @property
    def blocks(self) -> list[CommandBlock]:
        return list(self._blocks)

    @property
    def block_count(self) -> int:
        return len(self._blocks)

    def append(self, command: str, output: str, matched: bool = True) -> None:
        self._blocks.append(CommandBlock(command=command, output=output, matched=matched))

    def render(self) -> str:
        """Full transcript text as written to disk."""
        return self.header + "".join(block.render() for block in self._blocks)


@dataclass(frozen=True)
class ReadResult:
    """Outcome of one read-until-prompt cycle."""

    text: str
    matched: bool
    eof: bool = False
    cancelled: bool = False

    @property
    def timed_out(self) -> bool:
        return not (self.matched or self.eof or self.cancelled)


@dataclass
class JobResult:
    """Final outcome for one job."""

    asset: AssetTarget
    vendor: str
    status: JobStatus = JobStatus.QUEUED
    attempts: int = 0
    error: Optional[str] = None
    output_path: Optional[str] = None
    command_blocks: int = 0


@dataclass
class CollectionSummary:
    """Outcome of one collection run across all jobs."""

    results: list[JobResult] = field(default_factory=list)

    def count(self, status: JobStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def succeeded(self) -> int:
        return self.count(JobStatus.SUCCEEDED)

    @property
    def failed(self) -> int:
        return self.count(JobStatus.FAILED)

    @property
    def cancelled(self) -> int:
        return self.count(JobStatus.CANCELLED)

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
"""Transport session contract and the prompt-delimited stream reader.

Both the SSH and the Telnet variant expose the same small capability set
(``login``, ``send_line``, ``read_until``, ``close``). Neither inherits
from the other; they share the buffering logic by owning a
:class:`PromptReader`.
"""

from __future__ import annotations

import codecs
import time
from typing import Callable, Iterable, Optional, Protocol

from harvester.app.application.execution_control import ExecutionControl
from harvester.app.domain.models import Job, ReadResult

READ_POLL_INTERVAL = 0.5
READ_CHUNK_SIZE = 4096


class TransportSession(Protocol):
    """One open CLI session with a device."""

    def login(
        self,
        username: str,
        password: str,
        timeout: float,
        control: Optional[ExecutionControl] = None,
    ) -> None:
        """Finish session setup so the device CLI accepts commands."""

    def send_line(self, text: str) -> None:
        """Write ``text`` followed by a newline."""

    def read_until(
        self,
        patterns: Iterable[str],
        timeout: float,
        control: Optional[ExecutionControl] = None,
        ignore_case: bool = False,
    ) -> ReadResult:
        """Accumulate output until a pattern shows up or the timeout expires."""

    def close(self) -> None:
        """Release the underlying connection."""


class TransportFactory(Protocol):
    """Opens the right session variant for a job."""

    def open(self, job: Job, control: ExecutionControl) -> TransportSession:
        """Connect to the job's asset."""


class PromptReader:
    """Accumulating reader over a polled byte source.

    ``receive(wait)`` must return the bytes that arrived within ``wait``
    seconds (``b""`` when none did) and raise ``EOFError`` once the peer
    has closed the stream.
    """

    def __init__(
        self,
        receive: Callable[[float], bytes],
        poll_interval: float = READ_POLL_INTERVAL,
        encoding: str = "utf-8",
    ):
        self._receive = receive
        self.poll_interval = poll_interval
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self.buffer = ""

    def feed(self, data: bytes, final: bool = False) -> None:
        self.buffer += self._decoder.decode(data, final=final)

    def _take(self, **flags: bool) -> ReadResult:
        text, self.buffer = self.buffer, ""
        return ReadResult(text=text, **flags)

    def _contains(self, needles: list[str], ignore_case: bool) -> bool:
        haystack = self.buffer.lower() if ignore_case else self.buffer
        return any(needle in haystack for needle in needles)

    def read_until(
        self,
        patterns: Iterable[str],
        timeout: float,
        control: Optional[ExecutionControl] = None,
        ignore_case: bool = False,
    ) -> ReadResult:
        """Poll until any pattern occurs anywhere in the accumulated buffer.

        The whole buffer is searched after every poll, so text left over
        from earlier reads can complete a match. The returned text keeps
        the matched prompt. Timeout and cancellation return the partial
        buffer; end of stream returns it with ``eof=True``.
        """
        needles = [p.lower() if ignore_case else p for p in patterns if p]
        deadline = time.monotonic() + timeout
        while True:
            if control is not None and control.is_cancelled():
                return self._take(matched=False, cancelled=True)
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return self._take(matched=False)
            try:
                chunk = self._receive(min(self.poll_interval, remaining))
            except EOFError:
                self.feed(b"", final=True)
                return self._take(
                    matched=self._contains(needles, ignore_case), eof=True
                )
            if chunk:
                self.feed(chunk)
            if self._contains(needles, ignore_case):
                return self._take(matched=True)

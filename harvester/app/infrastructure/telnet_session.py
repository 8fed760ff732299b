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
"""Telnet transport session over a plain TCP socket."""

from __future__ import annotations

import logging
import select
import socket
from typing import Iterable, Optional

from harvester.app.application.execution_control import ExecutionControl
from harvester.app.application.transport import (
    READ_CHUNK_SIZE,
    READ_POLL_INTERVAL,
    PromptReader,
    TransportSession,
)
from harvester.app.domain.errors import AuthError, JobCancelledError, WriteError
from harvester.app.domain.models import Job, ReadResult
from harvester.app.infrastructure.dialer import dial

logger = logging.getLogger(__name__)

LOGIN_PROMPTS = ("sername:", "ogin:")
PASSWORD_PROMPTS = ("assword:",)

IAC = 255
DONT = 254
DO = 253
WONT = 252
WILL = 251
SB = 250
SE = 240
CR = 13
NUL = 0

_DATA, _IAC, _OPTION, _SUB, _SUB_IAC = range(5)


class TelnetOptionFilter:
    """Strips IAC sequences from the stream and refuses every option.

    The NUL of an NVT bare carriage return (CR NUL) is dropped as well.

    Keeps state between chunks so a sequence split across two reads is
    still recognised.
    """

    def __init__(self) -> None:
        self._state = _DATA
        self._command = 0
        self._after_cr = False

    def process(self, data: bytes) -> tuple[bytes, bytes]:
        """Return (payload, negotiation replies) for one received chunk."""
        payload = bytearray()
        replies = bytearray()
        for byte in data:
            if self._state == _DATA:
                if byte == IAC:
                    self._state = _IAC
                elif not (byte == NUL and self._after_cr):
                    payload.append(byte)
                self._after_cr = byte == CR
            elif self._state == _IAC:
                if byte == IAC:
                    payload.append(IAC)
                    self._state = _DATA
                elif byte in (WILL, WONT, DO, DONT):
                    self._command = byte
                    self._state = _OPTION
                elif byte == SB:
                    self._state = _SUB
                else:
                    self._state = _DATA
            elif self._state == _OPTION:
                if self._command == DO:
                    replies += bytes((IAC, WONT, byte))
                elif self._command == WILL:
                    replies += bytes((IAC, DONT, byte))
                self._state = _DATA
            elif self._state == _SUB:
                if byte == IAC:
                    self._state = _SUB_IAC
            else:
                self._state = _DATA if byte == SE else _SUB
        return bytes(payload), bytes(replies)


class TelnetSession(TransportSession):
    """CLI session over a raw Telnet connection."""

    def __init__(self, sock: socket.socket, poll_interval: float = READ_POLL_INTERVAL):
        self._sock = sock
        self._options = TelnetOptionFilter()
        self._reader = PromptReader(self._receive, poll_interval=poll_interval)
        self._closed = False

    @property
    def buffer(self) -> str:
        return self._reader.buffer

    def _receive(self, wait: float) -> bytes:
        ready, _, _ = select.select([self._sock], [], [], wait)
        if not ready:
            return b""
        try:
            data = self._sock.recv(READ_CHUNK_SIZE)
        except (socket.timeout, BlockingIOError):
            return b""
        except OSError as exc:
            raise EOFError(str(exc)) from exc
        if not data:
            raise EOFError("connection closed by peer")
        payload, replies = self._options.process(data)
        if replies:
            try:
                self._sock.sendall(replies)
            except OSError as exc:
                raise EOFError(str(exc)) from exc
        return payload

    def _wait_for_prompt(
        self,
        patterns: Iterable[str],
        what: str,
        timeout: float,
        control: Optional[ExecutionControl],
    ) -> None:
        result = self.read_until(patterns, timeout, control, ignore_case=True)
        if result.cancelled:
            raise JobCancelledError(f"cancelled waiting for {what} prompt", stage="auth")
        if not result.matched:
            raise AuthError(f"timeout waiting for {what} prompt")

    def login(
        self,
        username: str,
        password: str,
        timeout: float,
        control: Optional[ExecutionControl] = None,
    ) -> None:
        self._wait_for_prompt(LOGIN_PROMPTS, "login", timeout, control)
        try:
            self.send_line(username)
        except WriteError as exc:
            raise AuthError(f"sending username: {exc}") from exc

        self._wait_for_prompt(PASSWORD_PROMPTS, "password", timeout, control)
        try:
            self.send_line(password)
        except WriteError as exc:
            raise AuthError(f"sending password: {exc}") from exc

    def send_line(self, text: str) -> None:
        # NVT line ending, literal 0xFF doubled.
        data = (text + "\r\n").encode("utf-8").replace(b"\xff", b"\xff\xff")
        try:
            self._sock.sendall(data)
        except OSError as exc:
            raise WriteError(str(exc)) from exc

    def read_until(
        self,
        patterns: Iterable[str],
        timeout: float,
        control: Optional[ExecutionControl] = None,
        ignore_case: bool = False,
    ) -> ReadResult:
        return self._reader.read_until(patterns, timeout, control, ignore_case)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()


def open_telnet_session(
    job: Job,
    control: Optional[ExecutionControl] = None,
    poll_interval: float = READ_POLL_INTERVAL,
) -> TelnetSession:
    """Dial the job's asset and wrap the socket in a TelnetSession."""
    logger.info(
        "connecting via telnet to %s:%s",
        job.asset.address,
        job.asset.port,
        extra={"fields": {"asset": job.asset.name, "protocol": "telnet"}},
    )
    sock = dial(job.asset.address, job.asset.port, job.timeout, control, poll_interval)
    return TelnetSession(sock, poll_interval=poll_interval)

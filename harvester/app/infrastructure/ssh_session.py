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
"""SSH transport session using Paramiko.

The shell runs on a vt100 pseudo-terminal. Paramiko's ``get_pty`` sends no
terminal modes, so echo stays on and devices echo each command into the
transcript ahead of its output.
"""

from __future__ import annotations

import logging
import socket
import threading
import time
from typing import Iterable, Optional

import paramiko
from paramiko.ssh_exception import BadAuthenticationType

from harvester.app.application.execution_control import ExecutionControl
from harvester.app.application.transport import (
    READ_CHUNK_SIZE,
    READ_POLL_INTERVAL,
    PromptReader,
    TransportSession,
)
from harvester.app.domain.errors import (
    AuthError,
    ConnectError,
    HostKeyRejectedError,
    JobCancelledError,
    SessionError,
    WriteError,
)
from harvester.app.domain.models import Job, LegacySSHOptions, ReadResult
from harvester.app.infrastructure.dialer import dial
from harvester.app.infrastructure.host_keys import HostKeyVerifier

logger = logging.getLogger(__name__)

PTY_TERM = "vt100"
PTY_WIDTH = 200
PTY_HEIGHT = 80

DEFAULT_LEGACY_KEX = (
    "diffie-hellman-group-exchange-sha256",
    "diffie-hellman-group-exchange-sha1",
    "diffie-hellman-group14-sha1",
    "diffie-hellman-group1-sha1",
)
DEFAULT_LEGACY_CIPHERS = (
    "aes128-ctr",
    "aes192-ctr",
    "aes256-ctr",
    "aes128-cbc",
    "aes192-cbc",
    "aes256-cbc",
    "3des-cbc",
)
DEFAULT_LEGACY_MACS = (
    "hmac-sha2-256",
    "hmac-sha2-512",
    "hmac-sha1",
    "hmac-sha1-96",
)


def _set_supported(
    options: paramiko.SecurityOptions, attr: str, names: Iterable[str]
) -> list[str]:
    """Restrict one algorithm list to the names Paramiko implements."""
    supported = []
    for name in names:
        try:
            setattr(options, attr, (name,))
        except ValueError:
            logger.warning("legacy %s algorithm %s not supported, skipping", attr, name)
            continue
        supported.append(name)
    if supported:
        setattr(options, attr, tuple(supported))
    return supported


def apply_legacy_algorithms(
    transport: paramiko.Transport, legacy: LegacySSHOptions
) -> dict[str, list[str]]:
    """Replace the negotiated algorithm lists with the legacy ones."""
    options = transport.get_security_options()
    applied = {
        "kex": _set_supported(options, "kex", legacy.kex_algorithms or DEFAULT_LEGACY_KEX),
        "ciphers": _set_supported(
            options, "ciphers", legacy.ciphers or DEFAULT_LEGACY_CIPHERS
        ),
        "macs": _set_supported(options, "digests", legacy.macs or DEFAULT_LEGACY_MACS),
    }
    if legacy.host_key_algorithms:
        applied["host_keys"] = _set_supported(
            options, "key_types", legacy.host_key_algorithms
        )
    logger.warning("legacy SSH algorithms applied", extra={"fields": applied})
    return applied


def _wait_for(
    event: threading.Event,
    deadline: float,
    control: Optional[ExecutionControl],
    error_cls: type[SessionError],
    what: str,
    poll_interval: float,
) -> None:
    while not event.wait(max(0.0, min(poll_interval, deadline - time.monotonic()))):
        if control is not None and control.is_cancelled():
            raise JobCancelledError(f"{what} cancelled", stage=error_cls.stage)
        if time.monotonic() >= deadline:
            raise error_cls(f"{what} timed out")


class SSHSession(TransportSession):
    """Interactive shell channel on an authenticated SSH transport."""

    def __init__(
        self, transport: paramiko.Transport, poll_interval: float = READ_POLL_INTERVAL
    ):
        self._transport = transport
        self._channel: Optional[paramiko.Channel] = None
        self._reader = PromptReader(self._receive, poll_interval=poll_interval)

    @property
    def buffer(self) -> str:
        return self._reader.buffer

    def _require_channel(self) -> paramiko.Channel:
        if self._channel is None:
            raise SessionError("shell not started", stage="shell")
        return self._channel

    def _receive(self, wait: float) -> bytes:
        channel = self._require_channel()
        channel.settimeout(wait)
        try:
            data = channel.recv(READ_CHUNK_SIZE)
        except socket.timeout:
            return b""
        if not data:
            raise EOFError("channel closed by peer")
        return data

    def login(
        self,
        username: str,
        password: str,
        timeout: float,
        control: Optional[ExecutionControl] = None,
    ) -> None:
        """Open a PTY shell; credentials were checked during the handshake.

        Network OS CLIs refuse piped exec requests, so the commands are
        typed into an interactive shell on a pseudo-terminal.
        """
        del username, password, control
        try:
            channel = self._transport.open_session(timeout=timeout)
            channel.get_pty(term=PTY_TERM, width=PTY_WIDTH, height=PTY_HEIGHT)
            channel.invoke_shell()
        except (paramiko.SSHException, OSError) as exc:
            raise ConnectError(f"start shell: {exc}", stage="shell") from exc
        self._channel = channel

    def send_line(self, text: str) -> None:
        channel = self._require_channel()
        try:
            channel.sendall((text + "\n").encode("utf-8"))
        except (paramiko.SSHException, OSError) as exc:
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
        if self._channel is not None:
            self._channel.close()
        self._transport.close()


def _authenticate(
    transport: paramiko.Transport,
    job: Job,
    deadline: float,
    control: Optional[ExecutionControl],
    poll_interval: float,
) -> None:
    event = threading.Event()
    try:
        transport.auth_password(job.username, job.password, event=event)
    except paramiko.SSHException as exc:
        raise AuthError(f"password authentication: {exc}") from exc
    _wait_for(event, deadline, control, AuthError, "password authentication", poll_interval)
    if transport.is_authenticated():
        return

    exc = transport.get_exception()
    if isinstance(exc, BadAuthenticationType) and "keyboard-interactive" in exc.allowed_types:
        logger.debug("password auth refused, trying keyboard-interactive")

        def answer(title, instructions, prompts):
            del title, instructions
            return [job.password for _ in prompts]

        try:
            transport.auth_interactive(job.username, answer)
        except paramiko.SSHException as inner:
            raise AuthError(f"keyboard-interactive: {inner}") from inner
        if transport.is_authenticated():
            return
    raise AuthError(f"authentication failed for {job.username}: {exc or 'rejected'}")


def open_ssh_session(
    job: Job,
    control: Optional[ExecutionControl],
    verifier: HostKeyVerifier,
    poll_interval: float = READ_POLL_INTERVAL,
) -> SSHSession:
    """Dial, negotiate, verify the host key and authenticate with a password."""
    logger.info(
        "connecting via ssh to %s:%s",
        job.asset.address,
        job.asset.port,
        extra={"fields": {"asset": job.asset.name, "protocol": "ssh"}},
    )
    sock = dial(job.asset.address, job.asset.port, job.timeout, control, poll_interval)
    deadline = time.monotonic() + job.timeout
    try:
        transport = paramiko.Transport(sock)
    except (paramiko.SSHException, OSError) as exc:
        sock.close()
        raise ConnectError(f"ssh transport: {exc}") from exc

    try:
        if job.ssh_legacy is not None and job.ssh_legacy.enabled:
            apply_legacy_algorithms(transport, job.ssh_legacy)

        negotiated = threading.Event()
        try:
            transport.start_client(event=negotiated, timeout=job.timeout)
        except paramiko.SSHException as exc:
            raise ConnectError(f"ssh handshake: {exc}", stage="handshake") from exc
        _wait_for(negotiated, deadline, control, ConnectError, "ssh handshake", poll_interval)
        if not transport.is_active():
            exc = transport.get_exception()
            raise ConnectError(
                f"ssh handshake: {exc or 'negotiation failed'}", stage="handshake"
            )

        key = transport.get_remote_server_key()
        if not verifier.accepts(job.asset.address, job.asset.port, key):
            raise HostKeyRejectedError(
                f"host key {key.get_name()} rejected for {job.asset.address}"
            )

        _authenticate(transport, job, deadline, control, poll_interval)
    except Exception:
        transport.close()
        raise
    return SSHSession(transport, poll_interval=poll_interval)

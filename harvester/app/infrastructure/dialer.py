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
"""TCP dialer that gives up promptly on cancellation."""

from __future__ import annotations

import errno
import logging
import os
import select
import socket
import time
from typing import Optional

from harvester.app.application.execution_control import ExecutionControl
from harvester.app.application.transport import READ_POLL_INTERVAL
from harvester.app.domain.errors import ConnectError, JobCancelledError

logger = logging.getLogger(__name__)

_IN_PROGRESS = {errno.EINPROGRESS, errno.EWOULDBLOCK, errno.EAGAIN, errno.EALREADY}


def _connect(
    sock: socket.socket,
    sockaddr,
    deadline: float,
    control: Optional[ExecutionControl],
    poll_interval: float,
) -> None:
    err = sock.connect_ex(sockaddr)
    if err == 0:
        return
    if err not in _IN_PROGRESS:
        raise OSError(err, os.strerror(err))
    while True:
        if control is not None and control.is_cancelled():
            raise JobCancelledError("dial cancelled", stage="dial")
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise socket.timeout("timed out")
        _, writable, _ = select.select([], [sock], [], min(poll_interval, remaining))
        if writable:
            err = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
            if err:
                raise OSError(err, os.strerror(err))
            return


def dial(
    address: str,
    port: int,
    timeout: float,
    control: Optional[ExecutionControl] = None,
    poll_interval: float = READ_POLL_INTERVAL,
) -> socket.socket:
    """Open a TCP connection, checking for cancellation every poll interval.

    Returns a blocking socket. Raises ConnectError on resolution or
    connection failure and JobCancelledError when cancelled mid-dial.
    """
    deadline = time.monotonic() + timeout
    try:
        infos = socket.getaddrinfo(address, port, type=socket.SOCK_STREAM)
    except socket.gaierror as exc:
        raise ConnectError(f"resolve {address}: {exc}") from exc

    last_error: Optional[OSError] = None
    for family, socktype, proto, _, sockaddr in infos:
        try:
            sock = socket.socket(family, socktype, proto)
        except OSError as exc:
            last_error = exc
            logger.debug("cannot open socket for %s: %s", sockaddr, exc)
            continue
        sock.setblocking(False)
        try:
            _connect(sock, sockaddr, deadline, control, poll_interval)
        except JobCancelledError:
            sock.close()
            raise
        except OSError as exc:
            sock.close()
            last_error = exc
            logger.debug("dial %s:%s via %s failed: %s", address, port, sockaddr, exc)
            continue
        sock.setblocking(True)
        return sock

    raise ConnectError(f"dial tcp {address}:{port}: {last_error}") from last_error

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
"""Unit tests for the Telnet session over a local socket pair."""

import socket
import threading

import pytest

from harvester.app.domain.errors import AuthError, WriteError
from harvester.app.infrastructure.telnet_session import (
    DO,
    DONT,
    IAC,
    SB,
    SE,
    WILL,
    WONT,
    TelnetOptionFilter,
    TelnetSession,
)


@pytest.fixture
def socket_pair():
    local, peer = socket.socketpair()
    peer.settimeout(2)
    yield local, peer
    local.close()
    peer.close()


def _read_until(peer: socket.socket, marker: bytes) -> bytes:
    data = b""
    while marker not in data:
        chunk = peer.recv(1024)
        if not chunk:
            break
        data += chunk
    return data


def test_option_filter_refuses_options():
    payload, replies = TelnetOptionFilter().process(
        bytes([IAC, DO, 1, IAC, WILL, 3]) + b"login:"
    )

    assert payload == b"login:"
    assert replies == bytes([IAC, WONT, 1, IAC, DONT, 3])


def test_option_filter_keeps_state_across_chunks():
    options = TelnetOptionFilter()

    first = options.process(b"abc" + bytes([IAC]))
    second = options.process(bytes([DO, 24]) + b"def")

    assert first == (b"abc", b"")
    assert second == (b"def", bytes([IAC, WONT, 24]))


def test_option_filter_strips_subnegotiation_and_unescapes_iac():
    payload, replies = TelnetOptionFilter().process(
        bytes([IAC, SB, 24, 1, IAC, SE]) + b"x" + bytes([IAC, IAC]) + b"y"
    )

    assert payload == b"x\xffy"
    assert replies == b""


def test_option_filter_drops_nul_after_bare_carriage_return():
    options = TelnetOptionFilter()

    first = options.process(b"line one\r\0line two\r")
    second = options.process(b"\0<HUAWEI>\0")

    assert first == (b"line one\rline two\r", b"")
    assert second == (b"<HUAWEI>\0", b"")


def test_login_answers_prompts(socket_pair):
    local, peer = socket_pair
    session = TelnetSession(local, poll_interval=0.02)
    received = {}

    def device():
        peer.sendall(bytes([IAC, WILL, 1]) + b"\r\nUsername:")
        received["username"] = _read_until(peer, b"\r\n")
        peer.sendall(b"Password:")
        received["password"] = _read_until(peer, b"\r\n")
        peer.sendall(b"\r\nZXR10#")

    thread = threading.Thread(target=device)
    thread.start()
    session.login("admin", "s3cret", timeout=2)
    thread.join(timeout=2)

    assert received["username"].endswith(b"admin\r\n")
    assert bytes([IAC, DONT, 1]) in received["username"]
    assert received["password"] == b"s3cret\r\n"
    assert session.read_until(["#"], timeout=1).text == "\r\nZXR10#"


def test_login_without_prompt_is_auth_error(socket_pair):
    local, _ = socket_pair
    session = TelnetSession(local, poll_interval=0.02)

    with pytest.raises(AuthError, match="login prompt"):
        session.login("admin", "s3cret", timeout=0.2)


def test_send_line_uses_crlf(socket_pair):
    local, peer = socket_pair
    session = TelnetSession(local, poll_interval=0.02)

    session.send_line("display version")

    assert _read_until(peer, b"\r\n") == b"display version\r\n"


def test_read_reports_end_of_stream(socket_pair):
    local, peer = socket_pair
    session = TelnetSession(local, poll_interval=0.02)
    peer.sendall(b"bye")
    peer.close()

    result = session.read_until(["#"], timeout=1)

    assert result.eof
    assert result.text == "bye"


def test_send_after_peer_closed_is_write_error(socket_pair):
    local, peer = socket_pair
    session = TelnetSession(local, poll_interval=0.02)
    peer.close()

    with pytest.raises(WriteError):
        for _ in range(100):
            session.send_line("show version")


def test_close_is_idempotent(socket_pair):
    local, _ = socket_pair
    session = TelnetSession(local, poll_interval=0.02)

    session.close()
    session.close()

    assert local.fileno() == -1

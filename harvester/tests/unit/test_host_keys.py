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
"""Unit tests for host key verification policies."""

import paramiko
import pytest

from harvester.app.infrastructure.host_keys import (
    AcceptAnyHostKey,
    KnownHostsVerifier,
    create_host_key_verifier,
)


@pytest.fixture(scope="module")
def keys():
    return paramiko.RSAKey.generate(1024), paramiko.RSAKey.generate(1024)


@pytest.fixture
def known_hosts(tmp_path, keys):
    trusted, _ = keys
    host_keys = paramiko.HostKeys()
    host_keys.add("192.0.2.1", trusted.get_name(), trusted)
    host_keys.add("[192.0.2.2]:2222", trusted.get_name(), trusted)
    path = tmp_path / "known_hosts"
    host_keys.save(str(path))
    return str(path)


def test_lookup_name_follows_openssh_convention():
    assert KnownHostsVerifier.lookup_name("192.0.2.1", 22) == "192.0.2.1"
    assert KnownHostsVerifier.lookup_name("192.0.2.1", 830) == "[192.0.2.1]:830"


@pytest.mark.parametrize("path", [None, "", "/nonexistent/known_hosts"])
def test_missing_known_hosts_falls_back_to_accept_any(path, caplog):
    verifier = create_host_key_verifier(path)

    assert isinstance(verifier, AcceptAnyHostKey)
    assert "not verified" in caplog.text


def test_known_hosts_accepts_matching_key(known_hosts, keys):
    trusted, _ = keys
    verifier = create_host_key_verifier(known_hosts)

    assert isinstance(verifier, KnownHostsVerifier)
    assert verifier.accepts("192.0.2.1", 22, trusted)
    assert verifier.accepts("192.0.2.2", 2222, trusted)


def test_known_hosts_rejects_mismatch_and_unknown_hosts(known_hosts, keys, caplog):
    trusted, impostor = keys
    verifier = create_host_key_verifier(known_hosts)

    assert not verifier.accepts("192.0.2.1", 22, impostor)
    assert "mismatch" in caplog.text
    assert not verifier.accepts("192.0.2.2", 22, trusted)
    assert "not present" in caplog.text

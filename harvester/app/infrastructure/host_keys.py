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
"""Host key verification policies for SSH sessions."""

from __future__ import annotations

import logging
import os
from typing import Optional, Protocol

import paramiko
from paramiko.hostkeys import InvalidHostKey

logger = logging.getLogger(__name__)


class HostKeyVerifier(Protocol):
    """Decides whether a server key is acceptable for an address."""

    def accepts(self, address: str, port: int, key: paramiko.PKey) -> bool:
        """Return True if the key may be trusted."""


class AcceptAnyHostKey(HostKeyVerifier):
    """Trusts every key. Only for labs or fleets without known_hosts."""

    def accepts(self, address: str, port: int, key: paramiko.PKey) -> bool:
        del address, port, key
        return True


class KnownHostsVerifier(HostKeyVerifier):
    """Checks keys against an OpenSSH known_hosts file."""

    def __init__(self, host_keys: paramiko.HostKeys):
        self.host_keys = host_keys

    @staticmethod
    def lookup_name(address: str, port: int) -> str:
        if port == 22:
            return address
        return f"[{address}]:{port}"

    def accepts(self, address: str, port: int, key: paramiko.PKey) -> bool:
        name = self.lookup_name(address, port)
        if self.host_keys.check(name, key):
            return True
        known = self.host_keys.lookup(name)
        if known is None:
            logger.warning("host %s not present in known_hosts", name)
        else:
            logger.warning(
                "host key mismatch for %s (offered %s)", name, key.get_name()
            )
        return False


def create_host_key_verifier(known_hosts_path: Optional[str]) -> HostKeyVerifier:
    """Build the verifier for a run, falling back to accept-any with a warning."""
    if known_hosts_path:
        known_hosts_path = os.path.expanduser(known_hosts_path)
    if not known_hosts_path:
        logger.warning(
            "known_hosts_file not configured, host keys are not verified "
            "(not recommended for production)"
        )
        return AcceptAnyHostKey()

    if not os.path.exists(known_hosts_path):
        logger.warning(
            "known_hosts file not found, host keys are not verified",
            extra={"fields": {"path": known_hosts_path}},
        )
        return AcceptAnyHostKey()

    try:
        host_keys = paramiko.HostKeys(known_hosts_path)
    except (OSError, InvalidHostKey) as exc:
        logger.warning(
            "error loading known_hosts, host keys are not verified",
            extra={"fields": {"path": known_hosts_path, "error": str(exc)}},
        )
        return AcceptAnyHostKey()

    logger.info("using known_hosts", extra={"fields": {"path": known_hosts_path}})
    return KnownHostsVerifier(host_keys)

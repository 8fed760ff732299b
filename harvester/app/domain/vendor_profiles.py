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
"""Static per-vendor command lists and prompt terminators."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from harvester.app.domain.errors import UnknownVendorError


@dataclass(frozen=True)
class VendorProfile:
    """Commands and prompts for one CLI dialect."""

    commands: tuple[str, ...]
    prompts: tuple[str, ...]


VENDOR_PROFILES: dict[str, VendorProfile] = {
    "huawei": VendorProfile(
        commands=(
            "screen-length 0 temporary",
            "display version",
            "display license",
            "display current-configuration",
            "display interface brief",
            "display interface description",
            "display interface transceiver",
            "display eth-trunk brief",
            "display bgp peer",
            "display ospf peer",
            "display isis peer",
        ),
        prompts=("<", ">", "]"),
    ),
    "zte": VendorProfile(
        commands=(
            "terminal length 0",
            "show version",
            "show license",
            "show running-config",
            "show interface brief",
            "show interface description",
            "show interface transceiver",
            "show port-channel brief",
            "show bgp summary",
            "show ospf neighbor",
            "show isis neighbor",
        ),
        prompts=("#", ">"),
    ),
}

SUPPORTED_VENDORS = tuple(VENDOR_PROFILES)


def normalize_vendor(vendor: str) -> str:
    return vendor.strip().lower()


def _profile(vendor: str, profiles: Mapping[str, VendorProfile]) -> VendorProfile:
    try:
        return profiles[vendor]
    except KeyError:
        raise UnknownVendorError(vendor) from None


def commands_for_vendor(
    vendor: str, profiles: Mapping[str, VendorProfile] = VENDOR_PROFILES
) -> list[str]:
    """Ordered command list for a vendor."""
    return list(_profile(vendor, profiles).commands)


def prompts_for_vendor(
    vendor: str, profiles: Mapping[str, VendorProfile] = VENDOR_PROFILES
) -> list[str]:
    """Prompt terminator substrings for a vendor."""
    return list(_profile(vendor, profiles).prompts)

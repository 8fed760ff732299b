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
"""Turns the validated inventory into one resolved Job per active asset."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from harvester.app.config.settings import CollectorConfig
from harvester.app.domain.models import AssetTarget, Job, Protocol

logger = logging.getLogger(__name__)


@dataclass
class JobBatch:
    """Jobs for one run plus the asset counts reported at start-up."""

    jobs: list[Job] = field(default_factory=list)
    total: int = 0
    active: int = 0
    inactive: int = 0
    skipped: int = 0


def build_jobs(
    config: CollectorConfig, environ: Optional[Mapping[str, str]] = None
) -> JobBatch:
    """Resolve protocol, port, credentials and the active flag for every asset.

    Inactive assets produce no job. An active asset without a resolvable
    password is logged and skipped.
    """
    environ = os.environ if environ is None else environ
    legacy = config.ssh_legacy.to_options() if config.ssh_legacy else None
    batch = JobBatch()

    for group in config.groups:
        group_password = group.resolve_password(environ)
        for asset in group.assets:
            batch.total += 1
            if not asset.is_active():
                batch.inactive += 1
                logger.info(
                    "asset inactive, skipping",
                    extra={"fields": {"asset": asset.name, "address": asset.address}},
                )
                continue
            batch.active += 1

            username = asset.username or group.username
            password = asset.resolve_password(environ) or group_password
            if not password:
                batch.skipped += 1
                logger.error(
                    "password not configured",
                    extra={
                        "fields": {
                            "asset": asset.name,
                            "vendor": group.vendor,
                            "username": username,
                        }
                    },
                )
                continue

            batch.jobs.append(
                Job(
                    vendor=group.vendor,
                    username=username,
                    password=password,
                    asset=AssetTarget(
                        name=asset.name,
                        address=asset.address,
                        port=asset.resolved_port(),
                        protocol=Protocol(asset.resolved_protocol()),
                    ),
                    timeout=float(config.timeout_seconds),
                    ssh_legacy=legacy,
                )
            )
    return batch

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
"""Publishes collection events as structured log records."""

from __future__ import annotations

import logging

from harvester.app.application.events import (
    JOB_CANCELLED,
    JOB_FAILED,
    JOB_RETRYING,
    JOB_STARTED,
    JOB_SUCCEEDED,
    CollectionEvent,
    EventPublisher,
)

_MESSAGES = {
    JOB_STARTED: (logging.INFO, "job started"),
    JOB_SUCCEEDED: (logging.INFO, "job succeeded"),
    JOB_FAILED: (logging.ERROR, "job failed"),
    JOB_RETRYING: (logging.INFO, "retrying job"),
    JOB_CANCELLED: (logging.WARNING, "job cancelled"),
}


class LoggingEventPublisher(EventPublisher):
    """Maps each event type to a level and message on one logger."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("harvester.jobs")

    def publish(self, event: CollectionEvent) -> None:
        level, message = _MESSAGES.get(event.type, (logging.INFO, event.type))
        fields = {
            "event": event.type,
            "asset": event.asset,
            "address": event.address,
            "vendor": event.vendor,
            "protocol": event.protocol,
        }
        if event.attempt is not None:
            fields["attempt"] = event.attempt
        if event.output_path is not None:
            fields["file"] = event.output_path
        if event.message is not None:
            fields["error" if event.type == JOB_FAILED else "detail"] = event.message
        self.logger.log(level, message, extra={"fields": fields})

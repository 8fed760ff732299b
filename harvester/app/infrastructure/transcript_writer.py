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
"""Atomic persistence of finished transcripts."""

from __future__ import annotations

import contextlib
import os
import tempfile
from datetime import datetime
from typing import Optional

from harvester.app.application.worker_pool import TranscriptSink
from harvester.app.domain.models import Job, Transcript

_UNSAFE = (":", "/", "\\", " ")


def sanitize(value: str) -> str:
    """Make a name or address safe to embed in a file name."""
    value = value.strip()
    for char in _UNSAFE:
        value = value.replace(char, "_")
    return value


def transcript_filename(job: Job, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now()).strftime("%H%M%S")
    return (
        f"{sanitize(job.asset.name)}__{sanitize(job.asset.address)}__"
        f"{job.vendor}__{job.protocol.value}__{stamp}.txt"
    )


def write_atomic(path: str, data: bytes, mode: int = 0o644) -> None:
    """Write to a temp file in the target directory, then rename over ``path``."""
    directory = os.path.dirname(path) or "."
    fd, tmp_path = tempfile.mkstemp(prefix=".tmp-collect-", dir=directory)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.remove(tmp_path)
        raise


class FileTranscriptWriter(TranscriptSink):
    """Stores each transcript as one text file in the run directory."""

    def __init__(self, output_dir: str):
        self.output_dir = output_dir

    def write(self, job: Job, transcript: Transcript) -> str:
        path = os.path.join(self.output_dir, transcript_filename(job))
        write_atomic(path, transcript.render().encode("utf-8"))
        return path

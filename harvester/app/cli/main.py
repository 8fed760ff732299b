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
"""Command-line entrypoint: collect transcripts for every active asset."""

from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from datetime import date
from typing import Optional, Sequence

from harvester.app.application.execution_control import ExecutionControl
from harvester.app.application.job_executor import JobExecutor
from harvester.app.application.job_producer import build_jobs
from harvester.app.application.retry_controller import RetryController
from harvester.app.application.worker_pool import PoolConfig, WorkerPool
from harvester.app.config.settings import CollectorConfig, load_config
from harvester.app.domain.errors import ConfigError
from harvester.app.domain.models import CollectionSummary
from harvester.app.infrastructure.host_keys import create_host_key_verifier
from harvester.app.infrastructure.logging_event_publisher import LoggingEventPublisher
from harvester.app.infrastructure.session_factory import ProtocolSessionFactory
from harvester.app.infrastructure.transcript_writer import FileTranscriptWriter
from harvester.app.logging_setup import configure_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nw-harvest",
        description="Collect show/display transcripts from network devices.",
    )
    parser.add_argument("config", help="path to the targets JSON file")
    parser.add_argument(
        "--log-level",
        default=os.getenv("NW_HARVEST_LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-format",
        default=os.getenv("NW_HARVEST_LOG_FORMAT", "text"),
        choices=["text", "json"],
    )
    return parser


def install_signal_handlers(control: ExecutionControl) -> None:
    """SIGINT/SIGTERM request a graceful drain instead of killing workers."""

    def handler(signum, frame):
        del frame
        logger.warning(
            "interrupt received, cancelling",
            extra={"fields": {"signal": signal.Signals(signum).name}},
        )
        control.cancel()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def prepare_output_dir(base_dir: str, today: Optional[date] = None) -> str:
    out_dir = os.path.join(base_dir, (today or date.today()).isoformat())
    os.makedirs(out_dir, exist_ok=True)
    return out_dir


def run_collection(
    config: CollectorConfig,
    config_path: str,
    control: ExecutionControl,
    pool: Optional[WorkerPool] = None,
) -> CollectionSummary:
    """Wire the engine for one run and execute it."""
    if config.legacy_enabled:
        legacy = config.ssh_legacy
        logger.warning(
            "SSH legacy mode enabled, old/insecure algorithms allowed",
            extra={
                "fields": {
                    "kex": legacy.kex_algorithms,
                    "ciphers": legacy.ciphers,
                    "macs": legacy.macs,
                }
            },
        )

    out_dir = prepare_output_dir(config.base_dir)
    logger.info(
        "starting collection",
        extra={
            "fields": {
                "config": config_path,
                "output_dir": out_dir,
                "concurrency": config.concurrency,
                "timeout": config.timeout_seconds,
                "max_retries": config.max_retries,
                "ssh_legacy": config.legacy_enabled,
            }
        },
    )

    if pool is None:
        publisher = LoggingEventPublisher()
        transports = ProtocolSessionFactory(
            create_host_key_verifier(config.known_hosts_file)
        )
        pool = WorkerPool(
            retry=RetryController(JobExecutor(transports), publisher=publisher),
            sink=FileTranscriptWriter(out_dir),
            publisher=publisher,
        )

    batch = build_jobs(config)
    logger.info(
        "jobs enqueued",
        extra={
            "fields": {
                "total_assets": batch.total,
                "active": batch.active,
                "inactive": batch.inactive,
                "skipped": batch.skipped,
            }
        },
    )

    summary = pool.run(
        batch.jobs,
        PoolConfig(concurrency=config.concurrency, max_retries=config.max_retries),
        control,
    )
    logger.info(
        "collection finished",
        extra={
            "fields": {
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "cancelled": summary.cancelled,
            }
        },
    )
    return summary


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Exit status is non-zero only for usage and configuration errors."""
    argv = sys.argv[1:] if argv is None else list(argv)
    if not argv:
        print("usage: nw-harvest <targets.json>", file=sys.stderr)
        return EXIT_USAGE

    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, json_output=args.log_format == "json")

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        logger.error("invalid config", extra={"fields": {"error": str(exc)}})
        return EXIT_CONFIG_ERROR

    control = ExecutionControl()
    install_signal_handlers(control)
    try:
        run_collection(config, args.config, control)
    except OSError as exc:
        logger.error("cannot prepare output directory", extra={"fields": {"error": str(exc)}})
        return EXIT_CONFIG_ERROR
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

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
"""Pydantic models for the inventory (targets) file."""

from __future__ import annotations

import ipaddress
import json
import socket
from typing import List, Mapping, Optional

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from harvester.app.domain.errors import ConfigError
from harvester.app.domain.models import DEFAULT_PORTS, LegacySSHOptions
from harvester.app.domain.vendor_profiles import SUPPORTED_VENDORS, normalize_vendor

DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_CONCURRENCY = 5
DEFAULT_BASE_DIR = "./collections"
MAX_TIMEOUT_SECONDS = 300
MAX_CONCURRENCY = 50


def _resolve_secret(
    literal: Optional[str], env_name: Optional[str], environ: Mapping[str, str]
) -> str:
    """Environment variable wins when set and non-empty."""
    if env_name:
        value = environ.get(env_name, "")
        if value:
            return value
    return literal or ""


class SSHLegacyConfig(BaseModel):
    """Opt-in deprecated algorithm lists for old SSH stacks."""

    enabled: bool = False
    kex_algorithms: List[str] = Field(default_factory=list)
    ciphers: List[str] = Field(default_factory=list)
    macs: List[str] = Field(default_factory=list)
    host_key_algorithms: List[str] = Field(default_factory=list)

    def to_options(self) -> LegacySSHOptions:
        return LegacySSHOptions(
            enabled=self.enabled,
            kex_algorithms=tuple(self.kex_algorithms),
            ciphers=tuple(self.ciphers),
            macs=tuple(self.macs),
            host_key_algorithms=tuple(self.host_key_algorithms),
        )


class AssetConfig(BaseModel):
    """One managed device."""

    name: str = Field(min_length=1)
    address: str = Field(min_length=1)
    port: int = Field(default=0, ge=0, le=65535)
    protocol: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)
    password_env: Optional[str] = None
    active: Optional[bool] = None

    @field_validator("name", "address")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @field_validator("protocol")
    @classmethod
    def _known_protocol(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        proto = value.strip().lower()
        if proto not in DEFAULT_PORTS:
            raise ValueError(f"invalid protocol {value!r} (use ssh or telnet)")
        return proto

    def is_active(self) -> bool:
        return True if self.active is None else self.active

    def resolved_protocol(self) -> str:
        return self.protocol or "ssh"

    def resolved_port(self) -> int:
        return self.port or DEFAULT_PORTS[self.resolved_protocol()]

    def resolve_password(self, environ: Mapping[str, str]) -> str:
        return _resolve_secret(self.password, self.password_env, environ)


class GroupConfig(BaseModel):
    """Assets sharing a vendor and default credentials."""

    vendor: str
    username: str = Field(min_length=1)
    password: Optional[str] = Field(default=None, repr=False)
    password_env: Optional[str] = None
    assets: List[AssetConfig] = Field(min_length=1)

    @field_validator("vendor")
    @classmethod
    def _known_vendor(cls, value: str) -> str:
        vendor = normalize_vendor(value)
        if vendor not in SUPPORTED_VENDORS:
            raise ValueError(f"invalid vendor {value!r} (use huawei or zte)")
        return vendor

    @model_validator(mode="after")
    def _password_configured(self) -> "GroupConfig":
        if not self.password and not self.password_env:
            raise ValueError("configure password or password_env")
        return self

    def resolve_password(self, environ: Mapping[str, str]) -> str:
        return _resolve_secret(self.password, self.password_env, environ)


class CollectorConfig(BaseModel):
    """Top-level inventory file."""

    base_dir: str = DEFAULT_BASE_DIR
    timeout_seconds: int = Field(default=DEFAULT_TIMEOUT_SECONDS, le=MAX_TIMEOUT_SECONDS)
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, le=MAX_CONCURRENCY)
    max_retries: int = 0
    known_hosts_file: Optional[str] = None
    ssh_legacy: Optional[SSHLegacyConfig] = None
    groups: List[GroupConfig] = Field(min_length=1)

    @field_validator("base_dir")
    @classmethod
    def _default_base_dir(cls, value: str) -> str:
        return value or DEFAULT_BASE_DIR

    @field_validator("timeout_seconds")
    @classmethod
    def _default_timeout(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_TIMEOUT_SECONDS

    @field_validator("concurrency")
    @classmethod
    def _default_concurrency(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_CONCURRENCY

    @field_validator("max_retries")
    @classmethod
    def _non_negative_retries(cls, value: int) -> int:
        return max(0, value)

    @property
    def legacy_enabled(self) -> bool:
        return self.ssh_legacy is not None and self.ssh_legacy.enabled


def _address_is_valid(address: str) -> bool:
    try:
        ipaddress.ip_address(address)
        return True
    except ValueError:
        pass
    try:
        socket.getaddrinfo(address, None)
    except (socket.gaierror, UnicodeError):
        return False
    return True


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"])
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def parse_config(data: dict, resolve_hostnames: bool = True) -> CollectorConfig:
    """Validate a decoded inventory document."""
    if not data.get("groups"):
        raise ConfigError("no group defined in groups[]")
    try:
        config = CollectorConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(_format_validation_error(exc)) from exc

    if resolve_hostnames:
        for i, group in enumerate(config.groups):
            for j, asset in enumerate(group.assets):
                if not _address_is_valid(asset.address):
                    raise ConfigError(
                        f"groups.{i}.assets.{j}: invalid address {asset.address!r}"
                    )
    return config


def load_config(path: str, resolve_hostnames: bool = True) -> CollectorConfig:
    """Read and validate the inventory file at ``path``."""
    try:
        with open(path, encoding="utf-8") as handle:
            data = json.load(handle)
    except OSError as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top-level value must be an object")
    return parse_config(data, resolve_hostnames=resolve_hostnames)

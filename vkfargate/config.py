"""Loading and validating the Fargate provider's TOML configuration."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from os import PathLike
from typing import IO, Any

from vkfargate.regions import FARGATE_REGIONS
from vkfargate.units import parse_quantity

OPERATING_SYSTEM_LINUX = "Linux"

# Provider configuration defaults.
DEFAULT_PLATFORM_VERSION = "LATEST"
DEFAULT_CLUSTER_NAME = "default"
DEFAULT_ASSIGN_PUBLIC_IPV4_ADDRESS = False
DEFAULT_OPERATING_SYSTEM = OPERATING_SYSTEM_LINUX

# Default capacity advertised by the provider, kept low to prevent accidental overuse.
DEFAULT_CPU_CAPACITY = "20"
DEFAULT_MEMORY_CAPACITY = "40Gi"
DEFAULT_STORAGE_CAPACITY = "40Gi"
DEFAULT_POD_CAPACITY = "20"

# Minimum capacity advertised: the smallest Fargate task size.
MIN_CPU_CAPACITY = "250m"
MIN_MEMORY_CAPACITY = "512Mi"
MIN_POD_CAPACITY = "1"


class ConfigError(ValueError):
    """The provider configuration is malformed or invalid."""


@dataclass
class ProviderConfig:
    """The contents of the provider configuration file."""

    region: str = ""
    cluster_name: str = DEFAULT_CLUSTER_NAME
    subnets: list[str] = field(default_factory=list)
    security_groups: list[str] = field(default_factory=list)
    assign_public_ipv4_address: bool = DEFAULT_ASSIGN_PUBLIC_IPV4_ADDRESS
    execution_role_arn: str = ""
    cloud_watch_log_group_name: str = ""
    platform_version: str = DEFAULT_PLATFORM_VERSION
    operating_system: str = DEFAULT_OPERATING_SYSTEM
    cpu: str = DEFAULT_CPU_CAPACITY
    memory: str = DEFAULT_MEMORY_CAPACITY
    storage: str = DEFAULT_STORAGE_CAPACITY
    pods: str = DEFAULT_POD_CAPACITY


# TOML key (matched without regard to case) -> (attribute, expected type).
_FIELDS: dict[str, tuple[str, type]] = {
    "region": ("region", str),
    "clustername": ("cluster_name", str),
    "subnets": ("subnets", list),
    "securitygroups": ("security_groups", list),
    "assignpublicipv4address": ("assign_public_ipv4_address", bool),
    "executionrolearn": ("execution_role_arn", str),
    "cloudwatchloggroupname": ("cloud_watch_log_group_name", str),
    "platformversion": ("platform_version", str),
    "operatingsystem": ("operating_system", str),
    "cpu": ("cpu", str),
    "memory": ("memory", str),
    "storage": ("storage", str),
    "pods": ("pods", str),
}


def _read_fields(document: dict[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key, raw in document.items():
        spec = _FIELDS.get(key.lower())
        if spec is None:
            continue
        attribute, kind = spec
        if kind is list:
            if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
                raise ConfigError(f"{key} must be a list of strings")
            values[attribute] = list(raw)
        elif not isinstance(raw, kind):
            raise ConfigError(f"{key} must be of type {kind.__name__}")
        else:
            values[attribute] = raw
    return values


def _check_quantity(value: str, label: str, minimum: str | None, name: str) -> None:
    try:
        quantity = parse_quantity(value)
    except ValueError:
        raise ConfigError(f"Invalid {label} value {value}") from None
    if minimum is not None and quantity < parse_quantity(minimum):
        raise ConfigError(f"{name} value {value} is less than the minimum {minimum}")


def _validate(config: ProviderConfig) -> None:
    if not config.region:
        raise ConfigError("Region is a required field")
    if not FARGATE_REGIONS.include(config.region):
        raise ConfigError(
            f"Fargate is available only in regions [{' '.join(FARGATE_REGIONS.names())}]"
            f" and not available in {config.region}"
        )
    if not config.subnets:
        raise ConfigError("Subnets is a required field")
    if config.operating_system != OPERATING_SYSTEM_LINUX:
        raise ConfigError(
            f"Fargate does not support operating system {config.operating_system}"
        )
    if config.cloud_watch_log_group_name and not config.execution_role_arn:
        raise ConfigError("Execution role required if CloudWatch log group is specified")

    _check_quantity(config.cpu, "CPU", MIN_CPU_CAPACITY, "CPU")
    _check_quantity(config.memory, "memory", MIN_MEMORY_CAPACITY, "Memory")
    _check_quantity(config.storage, "storage", None, "Storage")
    _check_quantity(config.pods, "pods", MIN_POD_CAPACITY, "Pod")


def load_config(stream: IO[str] | IO[bytes]) -> ProviderConfig:
    """Read and validate a provider configuration from a TOML stream.

    Raises ConfigError when the document is malformed or the configuration invalid.
    """
    data = stream.read()
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as err:
            raise ConfigError(f"configuration is not valid UTF-8: {err}") from err
    try:
        document = tomllib.loads(data)
    except tomllib.TOMLDecodeError as err:
        raise ConfigError(str(err)) from err

    config = ProviderConfig(**_read_fields(document))
    _validate(config)
    return config


def load_config_file(path: str | PathLike[str]) -> ProviderConfig:
    """Read and validate the provider configuration file at the given path."""
    with open(path, "rb") as stream:
        return load_config(stream)
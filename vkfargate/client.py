"""Interfaces of the regional ECS and CloudWatch Logs services, and their data."""

from __future__ import annotations

import abc
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from vkfargate.container import ContainerDefinition, RuntimeContainer

log = logging.getLogger(__name__)

LAUNCH_TYPE_FARGATE = "FARGATE"
DESIRED_STATUS_RUNNING = "RUNNING"
COMPATIBILITY_FARGATE = "FARGATE"
NETWORK_MODE_AWSVPC = "awsvpc"
ASSIGN_PUBLIC_IP_ENABLED = "ENABLED"
ASSIGN_PUBLIC_IP_DISABLED = "DISABLED"

# Task attachment types.
ATTACHMENT_ENI = "ElasticNetworkInterface"
ATTACHMENT_ENI_PRIVATE_IPV4_ADDRESS = "privateIPv4Address"


class ServiceError(Exception):
    """A service call failed, or the service reported a failure for it."""


@dataclass
class Attachment:
    """A resource attached to a task, such as its network interface."""

    type: str
    details: dict[str, str] = field(default_factory=dict)


@dataclass
class Task:
    """A Fargate task as described by the service."""

    task_arn: str
    task_definition_arn: str = ""
    last_status: str = ""
    started_by: str = ""
    created_at: datetime | None = None
    containers: list[RuntimeContainer] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)

    @property
    def private_ipv4_address(self) -> str:
        """The private IPv4 address of the task's network interface, or ""."""
        address = ""
        for attachment in self.attachments:
            if attachment.type == ATTACHMENT_ENI:
                address = attachment.details.get(ATTACHMENT_ENI_PRIVATE_IPV4_ADDRESS, address)
        return address


@dataclass
class TaskDefinition:
    """A Fargate task definition; CPU in CPU units, memory in MiB, both as text."""

    family: str
    container_definitions: list[ContainerDefinition] = field(default_factory=list)
    cpu: str = ""
    memory: str = ""
    network_mode: str = NETWORK_MODE_AWSVPC
    requires_compatibilities: list[str] = field(
        default_factory=lambda: [COMPATIBILITY_FARGATE]
    )
    execution_role_arn: str | None = None
    task_role_arn: str | None = None
    task_definition_arn: str = ""


class EcsApi(abc.ABC):
    """The calls made to the regional ECS service.

    Every call raises ServiceError when it fails or when the service reports
    a failure; the error message then carries the reason.
    """

    @abc.abstractmethod
    def create_cluster(self, name: str) -> str:
        """Create a cluster and return its ARN."""

    @abc.abstractmethod
    def describe_clusters(self, names: list[str]) -> list[str]:
        """Return the ARNs of the named clusters that exist."""

    @abc.abstractmethod
    def list_tasks(self, cluster: str, desired_status: str, launch_type: str) -> Iterable[str]:
        """Yield the ARNs of the cluster's tasks, across all result pages."""

    @abc.abstractmethod
    def describe_tasks(self, cluster: str, task_arns: list[str]) -> list[Task]:
        """Describe the given tasks."""

    @abc.abstractmethod
    def describe_task_definition(self, task_definition_arn: str) -> TaskDefinition:
        """Describe a registered task definition."""

    @abc.abstractmethod
    def register_task_definition(self, definition: TaskDefinition) -> TaskDefinition:
        """Register a task definition and return it with its ARN set."""

    @abc.abstractmethod
    def deregister_task_definition(self, task_definition_arn: str) -> None:
        """Deregister a task definition."""

    @abc.abstractmethod
    def run_task(
        self,
        *,
        cluster: str,
        task_definition: str,
        started_by: str,
        platform_version: str,
        subnets: list[str],
        security_groups: list[str],
        assign_public_ip: str,
        launch_type: str = LAUNCH_TYPE_FARGATE,
        count: int = 1,
    ) -> list[Task]:
        """Start tasks from a task definition and return them."""

    @abc.abstractmethod
    def stop_task(self, cluster: str, task_arn: str, reason: str) -> None:
        """Stop a running task."""


class LogsApi(abc.ABC):
    """The calls made to the regional CloudWatch Logs service."""

    @abc.abstractmethod
    def describe_log_streams(self, log_group_name: str, prefix: str) -> list[str]:
        """Return the names of the group's log streams starting with the prefix."""

    @abc.abstractmethod
    def get_log_events(
        self, log_group_name: str, log_stream_name: str, limit: int
    ) -> Iterable[list[str]]:
        """Yield pages of log event messages from a stream."""


@dataclass
class Client:
    """Communicates with the regional Fargate and CloudWatch Logs services."""

    region: str
    api: EcsApi
    logs_api: LogsApi

    def __post_init__(self) -> None:
        log.info("Created Fargate service client.")
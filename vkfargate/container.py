"""Fargate container definitions built from Kubernetes container specs."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone

from vkfargate.kube import (
    RESOURCE_CPU,
    RESOURCE_MEMORY,
    Container,
    ContainerState,
    ContainerStateRunning,
    ContainerStateTerminated,
    ContainerStateWaiting,
    ContainerStatus,
    ResourceRequirements,
)
from vkfargate.units import MiB, VCPU

# Container status strings.
CONTAINER_STATUS_PROVISIONING = "PROVISIONING"
CONTAINER_STATUS_PENDING = "PENDING"
CONTAINER_STATUS_RUNNING = "RUNNING"
CONTAINER_STATUS_STOPPED = "STOPPED"

# Container log configuration options.
LOG_DRIVER_AWSLOGS = "awslogs"
LOG_OPTION_REGION = "awslogs-region"
LOG_OPTION_GROUP = "awslogs-group"
LOG_OPTION_STREAM_PREFIX = "awslogs-stream-prefix"

# Default container resource limits.
CONTAINER_DEFAULT_CPU_LIMIT = VCPU // 4
CONTAINER_DEFAULT_MEMORY_LIMIT = 512  # MiB


@dataclass
class KeyValuePair:
    name: str
    value: str


@dataclass
class LogConfiguration:
    log_driver: str
    options: dict[str, str] = field(default_factory=dict)


@dataclass
class ContainerDefinition:
    """A Fargate container definition; CPU in CPU units, memory in MiB."""

    name: str
    image: str = ""
    entry_point: list[str] = field(default_factory=list)
    command: list[str] = field(default_factory=list)
    working_directory: str | None = None
    environment: list[KeyValuePair] = field(default_factory=list)
    cpu: int | None = None
    memory: int | None = None
    memory_reservation: int | None = None
    log_configuration: LogConfiguration | None = None
    # (container port, host port) pairs.
    port_mappings: list[tuple[int, int]] = field(default_factory=list)


@dataclass
class RuntimeContainer:
    """The runtime state of a container reported by Fargate."""

    name: str
    last_status: str
    reason: str | None = None
    exit_code: int | None = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class FargateContainer:
    """A Kubernetes container as it is represented in Fargate."""

    definition: ContainerDefinition
    start_time: datetime | None = None
    finish_time: datetime | None = None

    @classmethod
    def from_spec(cls, spec: Container) -> FargateContainer:
        """Translate a Kubernetes container spec to a Fargate container."""
        definition = ContainerDefinition(
            name=spec.name,
            image=spec.image,
            entry_point=list(spec.command),
            command=list(spec.args),
            working_directory=spec.working_dir or None,
            environment=[KeyValuePair(env.name, env.value) for env in spec.env],
        )
        container = cls(definition)
        container.set_resource_requirements(spec.resources)
        return container

    @classmethod
    def from_definition(
        cls, definition: ContainerDefinition, start_time: datetime | None
    ) -> FargateContainer:
        """Rebuild a container from a copy of an existing Fargate definition."""
        return cls(copy.deepcopy(definition), start_time=start_time)

    def configure_logs(self, region: str, log_group_name: str, stream_prefix: str) -> None:
        """Send the container's logs to the given CloudWatch log group."""
        self.definition.log_configuration = LogConfiguration(
            log_driver=LOG_DRIVER_AWSLOGS,
            options={
                LOG_OPTION_REGION: region,
                LOG_OPTION_GROUP: log_group_name,
                LOG_OPTION_STREAM_PREFIX: f"{stream_prefix}_{self.definition.name}",
            },
        )

    def get_status(self, runtime_state: RuntimeContainer) -> ContainerStatus:
        """The Kubernetes status of the container for its Fargate runtime state."""
        reason = runtime_state.reason or ""
        ready = False
        last_status = runtime_state.last_status

        if last_status in (CONTAINER_STATUS_PROVISIONING, CONTAINER_STATUS_PENDING):
            state = ContainerState(waiting=ContainerStateWaiting(reason=reason))
        elif last_status == CONTAINER_STATUS_RUNNING:
            if self.start_time is None:
                self.start_time = _now()
            ready = True
            state = ContainerState(running=ContainerStateRunning(started_at=self.start_time))
        elif last_status == CONTAINER_STATUS_STOPPED:
            if self.finish_time is None:
                self.finish_time = _now()
            state = ContainerState(
                terminated=ContainerStateTerminated(
                    exit_code=runtime_state.exit_code or 0,
                    reason=reason,
                    started_at=self.start_time,
                    finished_at=self.finish_time,
                )
            )
        else:
            state = ContainerState()

        return ContainerStatus(
            name=runtime_state.name,
            state=state,
            ready=ready,
            restart_count=0,
            image=self.definition.image,
        )

    def set_resource_requirements(self, reqs: ResourceRequirements | None) -> None:
        """Translate Kubernetes resource requirements to Fargate CPU units and MiB.

        Limits are preferred over requests for CPU, since Fargate tasks do not
        share resources. For memory a missing request or limit takes the
        other's value; memory is rounded up to the next MiB.
        """
        cpu = CONTAINER_DEFAULT_CPU_LIMIT
        memory = CONTAINER_DEFAULT_MEMORY_LIMIT
        memory_reservation = CONTAINER_DEFAULT_MEMORY_LIMIT

        if reqs is not None:
            cpu_quantity = reqs.limits.get(RESOURCE_CPU) or reqs.requests.get(RESOURCE_CPU)
            if cpu_quantity is not None:
                cpu = cpu_quantity.milli_value() * VCPU // 1000

            request = reqs.requests.get(RESOURCE_MEMORY)
            limit = reqs.limits.get(RESOURCE_MEMORY)
            if request is not None or limit is not None:
                request = request if request is not None else limit
                limit = limit if limit is not None else request
                memory_reservation = (request.value() + MiB - 1) // MiB
                memory = (limit.value() + MiB - 1) // MiB

        self.definition.cpu = cpu
        self.definition.memory = memory
        self.definition.memory_reservation = memory_reservation
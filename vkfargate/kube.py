"""The Kubernetes object model used by the provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from vkfargate.units import Quantity

# Resource names.
RESOURCE_CPU = "cpu"
RESOURCE_MEMORY = "memory"
RESOURCE_STORAGE = "storage"
RESOURCE_PODS = "pods"

# Pod condition types.
POD_SCHEDULED = "PodScheduled"
POD_INITIALIZED = "Initialized"
POD_READY = "Ready"

# Node condition types.
NODE_READY = "Ready"
NODE_OUT_OF_DISK = "OutOfDisk"
NODE_MEMORY_PRESSURE = "MemoryPressure"
NODE_DISK_PRESSURE = "DiskPressure"
NODE_NETWORK_UNAVAILABLE = "NetworkUnavailable"

# Node address types.
NODE_INTERNAL_IP = "InternalIP"

PROTOCOL_TCP = "TCP"
QOS_BEST_EFFORT = "BestEffort"


class PodPhase(StrEnum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


class ConditionStatus(StrEnum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


@dataclass
class EnvVar:
    name: str
    value: str = ""


@dataclass
class ContainerPort:
    container_port: int
    host_port: int = 0
    protocol: str = PROTOCOL_TCP


@dataclass
class ResourceRequirements:
    """Resource limits and requests, keyed by resource name."""

    limits: dict[str, Quantity] = field(default_factory=dict)
    requests: dict[str, Quantity] = field(default_factory=dict)


@dataclass
class Container:
    name: str
    image: str = ""
    command: list[str] = field(default_factory=list)
    args: list[str] = field(default_factory=list)
    working_dir: str = ""
    env: list[EnvVar] = field(default_factory=list)
    ports: list[ContainerPort] = field(default_factory=list)
    resources: ResourceRequirements = field(default_factory=ResourceRequirements)


@dataclass
class ContainerStateWaiting:
    reason: str = ""
    message: str = ""


@dataclass
class ContainerStateRunning:
    started_at: datetime | None = None


@dataclass
class ContainerStateTerminated:
    exit_code: int = 0
    signal: int = 0
    reason: str = ""
    message: str = ""
    started_at: datetime | None = None
    finished_at: datetime | None = None
    container_id: str = ""


@dataclass
class ContainerState:
    """The state of a container: at most one of its parts is set."""

    waiting: ContainerStateWaiting | None = None
    running: ContainerStateRunning | None = None
    terminated: ContainerStateTerminated | None = None

    def __post_init__(self) -> None:
        parts = [self.waiting, self.running, self.terminated]
        if sum(part is not None for part in parts) > 1:
            raise ValueError("a container state may hold only one of waiting, running or terminated")


@dataclass
class ContainerStatus:
    name: str
    state: ContainerState = field(default_factory=ContainerState)
    ready: bool = False
    restart_count: int = 0
    image: str = ""
    image_id: str = ""
    container_id: str = ""


@dataclass
class PodCondition:
    type: str
    status: ConditionStatus


@dataclass
class PodStatus:
    phase: PodPhase = PodPhase.UNKNOWN
    conditions: list[PodCondition] = field(default_factory=list)
    message: str = ""
    reason: str = ""
    host_ip: str = ""
    pod_ip: str = ""
    start_time: datetime | None = None
    init_container_statuses: list[ContainerStatus] | None = None
    container_statuses: list[ContainerStatus] = field(default_factory=list)
    qos_class: str = ""


@dataclass
class Pod:
    namespace: str
    name: str
    uid: str = ""
    annotations: dict[str, str] = field(default_factory=dict)
    node_name: str = ""
    containers: list[Container] = field(default_factory=list)
    volumes: list[str] = field(default_factory=list)
    status: PodStatus = field(default_factory=PodStatus)
    kind: str = "Pod"
    api_version: str = "v1"


@dataclass
class NodeCondition:
    type: str
    status: ConditionStatus
    last_heartbeat_time: datetime | None = None
    last_transition_time: datetime | None = None
    reason: str = ""
    message: str = ""


@dataclass
class NodeAddress:
    type: str
    address: str
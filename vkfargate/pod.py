"""Kubernetes pods as Fargate tasks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from vkfargate import kube
from vkfargate.client import (
    ASSIGN_PUBLIC_IP_DISABLED,
    ASSIGN_PUBLIC_IP_ENABLED,
    LAUNCH_TYPE_FARGATE,
    ServiceError,
    Task,
    TaskDefinition,
)
from vkfargate.container import FargateContainer
from vkfargate.units import TASK_SIZE_TABLE, MiB, parse_quantity

if TYPE_CHECKING:
    from vkfargate.cluster import Cluster

log = logging.getLogger(__name__)

# Prefixes for objects created in Fargate.
TASK_DEF_FAMILY_PREFIX = "vk-podspec"
TASK_TAG_PREFIX = "vk-pod"

# Task status strings.
TASK_STATUS_PROVISIONING = "PROVISIONING"
TASK_STATUS_PENDING = "PENDING"
TASK_STATUS_RUNNING = "RUNNING"
TASK_STATUS_STOPPED = "STOPPED"

# Reason used for task state changes.
TASK_GENERIC_REASON = "Initiated by user"

# Annotation to configure the task role.
TASK_ROLE_ANNOTATION = "iam.amazonaws.com/role"

_PHASES = {
    TASK_STATUS_PROVISIONING: kube.PodPhase.PENDING,
    TASK_STATUS_PENDING: kube.PodPhase.PENDING,
    TASK_STATUS_RUNNING: kube.PodPhase.RUNNING,
    TASK_STATUS_STOPPED: kube.PodPhase.SUCCEEDED,
}

_SCHEDULED = {TASK_STATUS_PROVISIONING, TASK_STATUS_PENDING, TASK_STATUS_RUNNING, TASK_STATUS_STOPPED}
_STARTED = {TASK_STATUS_RUNNING, TASK_STATUS_STOPPED}


def build_task_definition_tag(cluster_name: str, namespace: str, name: str) -> str:
    """The task definition tag of a pod: vk-podspec_cluster_namespace_name."""
    return f"{TASK_DEF_FAMILY_PREFIX}_{cluster_name}_{namespace}_{name}"


def _condition(flag: bool) -> kube.ConditionStatus:
    return kube.ConditionStatus.TRUE if flag else kube.ConditionStatus.FALSE


@dataclass(eq=False)
class Pod:
    """A Kubernetes pod running as a Fargate task."""

    namespace: str = ""
    name: str = ""
    uid: str = ""
    cluster: Cluster | None = None
    task_def_arn: str = ""
    task_arn: str = ""
    task_role_arn: str = ""
    task_status: str = ""
    task_refresh_time: datetime | None = None
    task_cpu: int = 0
    task_memory: int = 0
    containers: dict[str, FargateContainer] = field(default_factory=dict)

    @classmethod
    def create(cls, cluster: Cluster, pod: kube.Pod) -> Pod:
        """Register a task definition for a Kubernetes pod and add the pod to the cluster."""
        fg_pod = cls(namespace=pod.namespace, name=pod.name, uid=pod.uid, cluster=cluster)
        tag = fg_pod.task_definition_tag

        definitions = []
        for spec in pod.containers:
            container = FargateContainer.from_spec(spec)
            if cluster.cloud_watch_log_group_name:
                container.configure_logs(cluster.region, cluster.cloud_watch_log_group_name, tag)
            fg_pod.task_cpu += container.definition.cpu
            fg_pod.task_memory += container.definition.memory
            fg_pod.containers[spec.name] = container
            definitions.append(container.definition)

        fg_pod.map_task_size()

        task_def = TaskDefinition(
            family=tag,
            container_definitions=definitions,
            cpu=str(fg_pod.task_cpu),
            memory=str(fg_pod.task_memory),
        )
        if cluster.execution_role_arn:
            task_def.execution_role_arn = cluster.execution_role_arn
        role = pod.annotations.get(TASK_ROLE_ANNOTATION)
        if role is not None:
            task_def.task_role_arn = role
            fg_pod.task_role_arn = role

        log.debug("RegisterTaskDefinition input: %s", task_def)
        try:
            registered = cluster.client.api.register_task_definition(task_def)
        except ServiceError as err:
            raise ServiceError(f"failed to register task definition: {err}") from err
        log.debug("RegisterTaskDefinition output: %s", registered)

        fg_pod.task_def_arn = registered.task_definition_arn
        cluster.insert_pod(fg_pod, tag)
        return fg_pod

    @classmethod
    def from_tag(cls, cluster: Cluster, tag: str) -> Pod:
        """Rebuild a pod from its task definition tag; ValueError if the tag is not one."""
        parts = tag.split("_")
        if len(parts) < 4 or parts[0] != TASK_DEF_FAMILY_PREFIX or parts[1] != cluster.name:
            raise ValueError("invalid tag")
        return cls(namespace=parts[2], name=parts[3], cluster=cluster)

    @property
    def task_definition_tag(self) -> str:
        return build_task_definition_tag(self._cluster.name, self.namespace, self.name)

    @property
    def task_tag(self) -> str:
        """The tag mapping a task back to its pod."""
        return str(self.uid)

    @property
    def _cluster(self) -> Cluster:
        if self.cluster is None:
            raise ValueError(f"pod {self.namespace}/{self.name} belongs to no cluster")
        return self.cluster

    def start(self) -> None:
        """Run the pod's task on Fargate."""
        cluster = self._cluster
        assign_public_ip = (
            ASSIGN_PUBLIC_IP_ENABLED
            if cluster.assign_public_ipv4_address
            else ASSIGN_PUBLIC_IP_DISABLED
        )
        request = dict(
            cluster=cluster.name,
            task_definition=self.task_def_arn,
            started_by=self.task_tag,
            platform_version=cluster.platform_version,
            subnets=list(cluster.subnets),
            security_groups=list(cluster.security_groups),
            assign_public_ip=assign_public_ip,
            launch_type=LAUNCH_TYPE_FARGATE,
            count=1,
        )
        log.debug("RunTask input: %s", request)
        try:
            tasks = cluster.client.api.run_task(**request)
        except ServiceError as err:
            raise ServiceError(f"failed to run task: {err}") from err
        log.debug("RunTask output: %s", tasks)
        if not tasks:
            raise ServiceError("failed to run task: no task was started")
        self.task_arn = tasks[0].task_arn

    def stop(self) -> None:
        """Stop the pod's task, deregister its definition and remove it from the cluster."""
        cluster = self._cluster
        api = cluster.client.api
        log.debug("StopTask input: cluster=%s task=%s", cluster.name, self.task_arn)
        try:
            api.stop_task(cluster.name, self.task_arn, TASK_GENERIC_REASON)
        except ServiceError as err:
            raise ServiceError(f"failed to stop task: {err}") from err

        try:
            api.deregister_task_definition(self.task_def_arn)
        except ServiceError as err:
            log.warning("Failed to deregister task definition: %s", err)

        cluster.remove_pod(self.task_definition_tag)

    def get_spec(self) -> kube.Pod:
        """The Kubernetes pod for the task's current state."""
        return self._spec(self._describe())

    def get_status(self) -> kube.PodStatus:
        """The Kubernetes pod status; phase Unknown if the task cannot be described."""
        try:
            task = self._describe()
        except ServiceError:
            return kube.PodStatus(phase=kube.PodPhase.UNKNOWN)
        return self._status(task)

    def map_task_size(self) -> None:
        """Fit the pod's summed requirements to the smallest Fargate task size.

        Raises ValueError when no task size is large enough.
        """
        for row in TASK_SIZE_TABLE:
            if self.task_cpu > row.cpu:
                continue
            memory = next(
                (size // MiB for size in row.memory.sizes() if self.task_memory <= size // MiB),
                None,
            )
            if memory is not None:
                log.debug(
                    "Mapped resource requirements (cpu:%s, memory:%s) to task size (cpu:%s, memory:%s)",
                    self.task_cpu, self.task_memory, row.cpu, memory,
                )
                self.task_cpu = row.cpu
                self.task_memory = memory
                return
        raise ValueError(
            f"resource requirements (cpu:{self.task_cpu}, memory:{self.task_memory}) are too high"
        )

    def _describe(self) -> Task:
        cluster = self._cluster
        try:
            tasks = cluster.client.api.describe_tasks(cluster.name, [self.task_arn])
        except ServiceError as err:
            raise ServiceError(f"failed to describe task: {err}") from err
        if not tasks:
            raise ServiceError("failed to describe task: no task was returned")
        task = tasks[0]
        self.task_status = task.last_status
        self.task_refresh_time = datetime.now(timezone.utc)
        return task

    def _spec(self, task: Task) -> kube.Pod:
        containers = []
        for runtime in task.containers:
            definition = self.containers[runtime.name].definition
            cpu = parse_quantity(f"{definition.cpu}")
            containers.append(
                kube.Container(
                    name=runtime.name,
                    image=definition.image,
                    command=list(definition.entry_point),
                    args=list(definition.command),
                    working_dir=definition.working_directory or "",
                    env=[kube.EnvVar(env.name, env.value) for env in definition.environment],
                    ports=[
                        kube.ContainerPort(container_port, host_port, kube.PROTOCOL_TCP)
                        for container_port, host_port in definition.port_mappings
                    ],
                    resources=kube.ResourceRequirements(
                        limits={
                            kube.RESOURCE_CPU: cpu,
                            kube.RESOURCE_MEMORY: parse_quantity(f"{definition.memory}Mi"),
                        },
                        requests={
                            kube.RESOURCE_CPU: cpu,
                            kube.RESOURCE_MEMORY: parse_quantity(
                                f"{definition.memory_reservation}Mi"
                            ),
                        },
                    ),
                )
            )

        annotations = {TASK_ROLE_ANNOTATION: self.task_role_arn} if self.task_role_arn else {}

        return kube.Pod(
            namespace=self.namespace,
            name=self.name,
            uid=self.uid,
            annotations=annotations,
            node_name=self._cluster.node_name,
            containers=containers,
            volumes=[],
            status=self._status(task),
        )

    def _status(self, task: Task) -> kube.PodStatus:
        status = self.task_status
        conditions = [
            kube.PodCondition(kube.POD_SCHEDULED, _condition(status in _SCHEDULED)),
            kube.PodCondition(kube.POD_INITIALIZED, _condition(status in _STARTED)),
            kube.PodCondition(kube.POD_READY, _condition(status in _STARTED)),
        ]
        address = task.private_ipv4_address
        return kube.PodStatus(
            phase=_PHASES.get(status, kube.PodPhase.UNKNOWN),
            conditions=conditions,
            host_ip=address,
            pod_ip=address,
            start_time=task.created_at,
            init_container_statuses=None,
            container_statuses=[
                self.containers[runtime.name].get_status(runtime) for runtime in task.containers
            ],
            qos_class=kube.QOS_BEST_EFFORT,
        )
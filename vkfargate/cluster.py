"""Fargate clusters and the local cache of the pods deployed on them."""

from __future__ import annotations

import io
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

from vkfargate.client import (
    DESIRED_STATUS_RUNNING,
    LAUNCH_TYPE_FARGATE,
    Client,
    ServiceError,
)
from vkfargate.container import FargateContainer
from vkfargate.pod import Pod, build_task_definition_tag
from vkfargate.regions import FARGATE_REGIONS

log = logging.getLogger(__name__)

CLUSTER_FAILURE_REASON_MISSING = "MISSING"


class PodNotFoundError(LookupError):
    """No pod with the given namespace and name is deployed on the cluster."""


@dataclass
class ClusterConfig:
    """The configurable parameters of a Fargate cluster."""

    region: str
    name: str
    node_name: str = ""
    subnets: list[str] = field(default_factory=list)
    security_groups: list[str] = field(default_factory=list)
    assign_public_ipv4_address: bool = False
    execution_role_arn: str = ""
    cloud_watch_log_group_name: str = ""
    platform_version: str = ""


@dataclass(eq=False)
class Cluster:
    """A Fargate cluster and the pods known to run on it."""

    region: str
    name: str
    client: Client
    node_name: str = ""
    arn: str = ""
    subnets: list[str] = field(default_factory=list)
    security_groups: list[str] = field(default_factory=list)
    assign_public_ipv4_address: bool = False
    execution_role_arn: str = ""
    cloud_watch_log_group_name: str = ""
    platform_version: str = ""
    _pods: dict[str, Pod] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        # Without a node name, the node is named after the cluster.
        if not self.node_name:
            self.node_name = self.name

    @classmethod
    def create(cls, config: ClusterConfig, client: Client) -> Cluster:
        """Find or create the configured cluster and load the state of its pods.

        Raises ValueError for an invalid name or region, ServiceError when a
        service call fails.
        """
        # '_' separates the parts of task tags.
        if "_" in config.name:
            raise ValueError("cluster name should not contain the '_' character")
        if not FARGATE_REGIONS.include(config.region):
            raise ValueError(f"Fargate is not available in region {config.region}")

        cluster = cls(
            region=config.region,
            name=config.name,
            client=client,
            node_name=config.node_name,
            subnets=list(config.subnets),
            security_groups=list(config.security_groups),
            assign_public_ipv4_address=config.assign_public_ipv4_address,
            execution_role_arn=config.execution_role_arn,
            cloud_watch_log_group_name=config.cloud_watch_log_group_name,
            platform_version=config.platform_version,
        )

        cluster._describe()
        if not cluster.arn:
            cluster._create()
        cluster.load_pod_state()
        return cluster

    def _create(self) -> None:
        log.info("Creating Fargate cluster %s in region %s", self.name, self.region)
        try:
            self.arn = self.client.api.create_cluster(self.name)
        except ServiceError as err:
            log.error("failed to create cluster: %s", err)
            raise ServiceError(f"failed to create cluster: {err}") from err
        log.info("Created Fargate cluster %s in region %s", self.name, self.region)

    def _describe(self) -> None:
        log.info("Looking for Fargate cluster %s in region %s.", self.name, self.region)
        try:
            arns = self.client.api.describe_clusters([self.name])
        except ServiceError as err:
            if CLUSTER_FAILURE_REASON_MISSING in str(err):
                log.info("Fargate cluster %s is missing: %s", self.name, err)
                return
            log.error("failed to describe cluster: %s", err)
            raise ServiceError(f"failed to describe cluster: {err}") from err
        if arns:
            log.info("Found Fargate cluster %s in region %s.", self.name, self.region)
            self.arn = arns[0]

    def load_pod_state(self) -> None:
        """Rebuild the local pod cache from the tasks running on the cluster.

        Tasks that cannot be described or that are not pods are skipped.
        """
        api = self.client.api
        log.info("Loading pod state from cluster %s.", self.name)

        try:
            task_arns = list(
                api.list_tasks(self.name, DESIRED_STATUS_RUNNING, LAUNCH_TYPE_FARGATE)
            )
        except ServiceError as err:
            log.error("failed to load pod state: %s", err)
            raise ServiceError(f"failed to load pod state: {err}") from err

        log.info("Found %d tasks on cluster %s.", len(task_arns), self.name)

        pods: dict[str, Pod] = {}
        for task_arn in task_arns:
            try:
                tasks = api.describe_tasks(self.name, [task_arn])
            except ServiceError:
                tasks = []
            if len(tasks) != 1:
                log.warning("Failed to describe task %s. Skipping.", task_arn)
                continue
            task = tasks[0]

            try:
                task_def = api.describe_task_definition(task.task_definition_arn)
            except ServiceError:
                log.warning(
                    "Failed to describe task definition %s. Skipping.", task.task_definition_arn
                )
                continue

            # A pod's tag is its task definition's family.
            tag = task_def.family
            try:
                pod = Pod.from_tag(self, tag)
            except ValueError as err:
                log.info("Skipping unknown task %s: %s", task_arn, err)
                continue

            pod.uid = task.started_by
            pod.task_def_arn = task.task_definition_arn
            pod.task_arn = task.task_arn
            if task_def.task_role_arn is not None:
                pod.task_role_arn = task_def.task_role_arn
            pod.task_status = task.last_status
            pod.task_refresh_time = datetime.now(timezone.utc)

            for definition in task_def.container_definitions:
                container = FargateContainer.from_definition(definition, task.created_at)
                pod.task_cpu += container.definition.cpu or 0
                pod.task_memory += container.definition.memory or 0
                pod.containers[definition.name] = container
                log.info("Found pod %s/%s on cluster %s.", pod.namespace, pod.name, self.name)

            pods[tag] = pod

        with self._lock:
            self._pods = pods

    def get_pod(self, namespace: str, name: str) -> Pod:
        """The pod with the given namespace and name; PodNotFoundError if unknown."""
        tag = build_task_definition_tag(self.name, namespace, name)
        with self._lock:
            pod = self._pods.get(tag)
        if pod is None:
            raise PodNotFoundError(f"pod {namespace}/{name} is not found")
        return pod

    def get_pods(self) -> list[Pod]:
        """All pods deployed on the cluster."""
        with self._lock:
            return list(self._pods.values())

    def insert_pod(self, pod: Pod, tag: str) -> None:
        """Add a pod to the cluster under its tag."""
        with self._lock:
            self._pods[tag] = pod

    def remove_pod(self, tag: str) -> None:
        """Remove the pod with the given tag, if any."""
        with self._lock:
            self._pods.pop(tag, None)

    def get_container_logs(
        self, namespace: str, pod_name: str, container_name: str, tail: int
    ) -> io.StringIO | None:
        """The logs of a container, one message per line; None if nothing was logged yet.

        Raises ValueError when no CloudWatch log group is configured.
        """
        if not self.cloud_watch_log_group_name:
            raise ValueError('logs not configured, please specify a "CloudWatchLogGroupName"')

        logs_api = self.client.logs_api
        prefix = f"{build_task_definition_tag(self.name, namespace, pod_name)}_{container_name}"
        streams = logs_api.describe_log_streams(self.cloud_watch_log_group_name, prefix)
        if not streams:
            return None

        lines: list[str] = []
        for page in logs_api.get_log_events(self.cloud_watch_log_group_name, streams[0], tail):
            # The service never marks the last page; an empty page ends the stream.
            if not page:
                break
            lines.extend(f"{message}\n" for message in page)

        return io.StringIO("".join(lines))
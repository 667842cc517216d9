"""The virtual-kubelet provider that runs Kubernetes pods as Fargate tasks."""

from __future__ import annotations

import io
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from os import PathLike
from typing import Any

from vkfargate import kube
from vkfargate.client import Client, ServiceError
from vkfargate.cluster import Cluster, ClusterConfig
from vkfargate.config import ConfigError, ProviderConfig, load_config_file
from vkfargate.pod import Pod
from vkfargate.units import Quantity, parse_quantity

log = logging.getLogger(__name__)

KUBELET_CONFIG_OK = "KubeletConfigOk"

_TRANSITION_REASON = "Fargate cluster is ready"
_TRANSITION_MESSAGE = "ok"


@dataclass
class ContainerLogOpts:
    """Options for reading a container's logs."""

    tail: int = 0
    limit_bytes: int = 0
    timestamps: bool = False
    follow: bool = False


class NotImplementedByProviderError(NotImplementedError):
    """The operation is not supported by the Fargate provider."""

    def __init__(self, message: str = "not implemented by Fargate provider") -> None:
        super().__init__(message)


class FargateProvider:
    """Deploys Kubernetes pods on a Fargate cluster for a virtual node."""

    def __init__(
        self,
        config: str | PathLike[str],
        resource_manager: Any,
        node_name: str,
        operating_system: str,
        internal_ip: str,
        daemon_endpoint_port: int,
        client_factory: Callable[[str], Client],
    ) -> None:
        """Load the configuration file, then find or create the configured cluster.

        ``client_factory`` builds the service client for a region. Raises
        ConfigError when the configuration cannot be loaded, and ValueError or
        ServiceError when the cluster cannot be set up.
        """
        log.info("Creating Fargate provider.")

        self.resource_manager = resource_manager
        self.node_name = node_name
        self.internal_ip = internal_ip
        self.daemon_endpoint_port = daemon_endpoint_port
        self._operating_system = operating_system

        try:
            self.config: ProviderConfig = load_config_file(config)
        except (ConfigError, OSError) as err:
            raise ConfigError(f"failed to load configuration file {config}: {err}") from err

        log.info("Loaded provider configuration file %s.", config)

        cluster_config = ClusterConfig(
            region=self.config.region,
            name=self.config.cluster_name,
            node_name=node_name,
            subnets=list(self.config.subnets),
            security_groups=list(self.config.security_groups),
            assign_public_ipv4_address=self.config.assign_public_ipv4_address,
            execution_role_arn=self.config.execution_role_arn,
            cloud_watch_log_group_name=self.config.cloud_watch_log_group_name,
            platform_version=self.config.platform_version,
        )

        try:
            self.cluster = Cluster.create(cluster_config, client_factory(self.config.region))
        except ServiceError as err:
            raise ServiceError(f"failed to create Fargate cluster: {err}") from err
        except ValueError as err:
            raise ValueError(f"failed to create Fargate cluster: {err}") from err

        self.last_transition_time = datetime.now(timezone.utc)
        log.info("Created Fargate provider for node %s.", node_name)

    def create_pod(self, pod: kube.Pod) -> None:
        """Register and start a Kubernetes pod on Fargate."""
        log.info("Received CreatePod request for %s/%s.", pod.namespace, pod.name)
        try:
            fg_pod = Pod.create(self.cluster, pod)
        except (ServiceError, ValueError) as err:
            log.error("Failed to create pod: %s.", err)
            raise
        try:
            fg_pod.start()
        except ServiceError as err:
            log.error("Failed to start pod: %s.", err)
            raise

    def update_pod(self, pod: kube.Pod) -> None:
        """Updating pods is not supported."""
        log.info("Received UpdatePod request for %s/%s.", pod.namespace, pod.name)
        raise NotImplementedByProviderError()

    def delete_pod(self, pod: kube.Pod) -> None:
        """Stop a pod's task and forget the pod; PodNotFoundError if unknown."""
        log.info("Received DeletePod request for %s/%s.", pod.namespace, pod.name)
        fg_pod = self.cluster.get_pod(pod.namespace, pod.name)
        try:
            fg_pod.stop()
        except ServiceError as err:
            log.error("Failed to stop pod: %s.", err)
            raise

    def get_pod(self, namespace: str, name: str) -> kube.Pod:
        """The Kubernetes pod with the given namespace and name."""
        log.info("Received GetPod request for %s/%s.", namespace, name)
        spec = self.cluster.get_pod(namespace, name).get_spec()
        log.debug("Responding to GetPod: %s.", spec)
        return spec

    def get_container_logs(
        self, namespace: str, pod_name: str, container_name: str, opts: ContainerLogOpts
    ) -> io.StringIO | None:
        """The logs of a container; None if nothing was logged yet."""
        log.info(
            "Received GetContainerLogs request for %s/%s/%s.", namespace, pod_name, container_name
        )
        return self.cluster.get_container_logs(namespace, pod_name, container_name, opts.tail)

    def get_pod_full_name(self, namespace: str, pod: str) -> str:
        """The full pod name in the provider's context; Fargate has none."""
        return ""

    def run_in_container(
        self,
        namespace: str,
        pod_name: str,
        container_name: str,
        cmd: list[str],
        attach: Any,
    ) -> None:
        """Running commands in containers is not supported."""
        raise NotImplementedByProviderError()

    def get_pod_status(self, namespace: str, name: str) -> kube.PodStatus:
        """The status of the pod with the given namespace and name."""
        log.info("Received GetPodStatus request for %s/%s.", namespace, name)
        status = self.cluster.get_pod(namespace, name).get_status()
        log.debug("Responding to GetPodStatus: %s.", status)
        return status

    def get_pods(self) -> list[kube.Pod]:
        """All pods on the cluster whose tasks can be described."""
        log.info("Received GetPods request.")
        result = []
        for fg_pod in self.cluster.get_pods():
            try:
                result.append(fg_pod.get_spec())
            except ServiceError as err:
                log.warning("Failed to get pod spec: %s.", err)
        log.debug("Responding to GetPods: %s.", result)
        return result

    def capacity(self) -> dict[str, Quantity]:
        """The capacity advertised for the node, keyed by resource name."""
        log.info("Received Capacity request.")
        return {
            kube.RESOURCE_CPU: parse_quantity(self.config.cpu),
            kube.RESOURCE_MEMORY: parse_quantity(self.config.memory),
            kube.RESOURCE_STORAGE: parse_quantity(self.config.storage),
            kube.RESOURCE_PODS: parse_quantity(self.config.pods),
        }

    def node_conditions(self) -> list[kube.NodeCondition]:
        """Static healthy conditions reported for the node."""
        log.info("Received NodeConditions request.")
        heartbeat = datetime.now(timezone.utc)
        statuses = [
            (kube.NODE_READY, kube.ConditionStatus.TRUE),
            (kube.NODE_OUT_OF_DISK, kube.ConditionStatus.FALSE),
            (kube.NODE_MEMORY_PRESSURE, kube.ConditionStatus.FALSE),
            (kube.NODE_DISK_PRESSURE, kube.ConditionStatus.FALSE),
            (kube.NODE_NETWORK_UNAVAILABLE, kube.ConditionStatus.FALSE),
            (KUBELET_CONFIG_OK, kube.ConditionStatus.TRUE),
        ]
        return [
            kube.NodeCondition(
                type=condition_type,
                status=status,
                last_heartbeat_time=heartbeat,
                last_transition_time=self.last_transition_time,
                reason=_TRANSITION_REASON,
                message=_TRANSITION_MESSAGE,
            )
            for condition_type, status in statuses
        ]

    def node_addresses(self) -> list[kube.NodeAddress]:
        """The node's addresses: its internal IP."""
        log.info("Received NodeAddresses request.")
        return [kube.NodeAddress(kube.NODE_INTERNAL_IP, self.internal_ip)]

    def node_daemon_endpoints(self) -> dict[str, dict[str, int]]:
        """The node's daemon endpoints: the kubelet port."""
        log.info("Received NodeDaemonEndpoints request.")
        return {"kubeletEndpoint": {"Port": self.daemon_endpoint_port}}

    def operating_system(self) -> str:
        """The operating system the provider is for."""
        log.info("Received OperatingSystem request.")
        return self._operating_system
# vkfargate

`vkfargate` runs Kubernetes pods as AWS Fargate tasks, in the manner of a
virtual-kubelet provider. It does the following:

- turns pod specs into Fargate task definitions
- picks the smallest Fargate task size that meets a pod's resource needs
- starts and stops tasks
- keeps a local cache of the pods on a cluster
- reports pod and node status the way a kubelet would

It needs only the Python standard library, version 3.11 or newer.

## Installation

```
pip install vkfargate
```

## What the package does not do

- **No AWS SDK.** The package makes no network calls of its own. You supply the
  calls to ECS and CloudWatch Logs by subclassing `vkfargate.client.EcsApi` and
  `vkfargate.client.LogsApi`. Both are abstract base classes. Each call raises
  `vkfargate.client.ServiceError` when it fails.
- **No connection to a Kubernetes API server.** The package does not register a node,
  watch pods or serve kubelet endpoints. It offers provider methods for such a host
  to call.
- **No command-line program.**

## Modules

| Module | Contents |
| --- | --- |
| `vkfargate.units` | `VCPU`, `MiB`, `GiB`; `Quantity` and `parse_quantity`; `MemorySizeRange`, `TaskSize` and `TASK_SIZE_TABLE` |
| `vkfargate.regions` | `Regions` and `FARGATE_REGIONS` |
| `vkfargate.kube` | Dataclasses for the Kubernetes objects used here, such as `Pod`, `Container`, `PodStatus` and `NodeCondition`, plus the enums `PodPhase` and `ConditionStatus` |
| `vkfargate.container` | `FargateContainer`, `ContainerDefinition` and `RuntimeContainer` |
| `vkfargate.client` | `EcsApi`, `LogsApi`, `Client`, `Task`, `TaskDefinition`, `Attachment` and `ServiceError` |
| `vkfargate.pod` | `Pod` (a pod as a Fargate task) and `build_task_definition_tag` |
| `vkfargate.cluster` | `Cluster`, `ClusterConfig` and `PodNotFoundError` |
| `vkfargate.config` | `ProviderConfig`, `load_config`, `load_config_file` and `ConfigError` |
| `vkfargate.provider` | `FargateProvider`, `ContainerLogOpts` and `NotImplementedByProviderError` |

## Configuration

The provider reads a TOML file. Keys are matched without regard to case, and unknown
keys are ignored.

```toml
Region = "us-east-1"
ClusterName = "default"
Subnets = ["subnet-00000000"]
SecurityGroups = []
AssignPublicIPv4Address = false
ExecutionRoleArn = ""
CloudWatchLogGroupName = ""
PlatformVersion = "LATEST"
OperatingSystem = "Linux"
CPU = "20"
Memory = "40Gi"
Storage = "40Gi"
Pods = "20"
```

The values shown are the defaults, apart from `Region` and `Subnets`. Those two are
required. The rules are:

- `Region` must be one of the regions in `FARGATE_REGIONS`.
- `OperatingSystem` must be `Linux`.
- If you set `CloudWatchLogGroupName`, you must also set `ExecutionRoleArn`.
- `CPU`, `Memory`, `Storage` and `Pods` are quantities such as `250m` or `512Mi`.
- The capacity cannot go below 250m CPU, 512Mi memory or 1 pod.

`load_config` (from a text or binary stream) and `load_config_file` raise
`ConfigError` for malformed TOML, a value of the wrong type, or a configuration that
breaks these rules. `load_config_file` raises `OSError` if the file cannot be opened.

```python
from vkfargate.config import load_config_file, ConfigError

try:
    config = load_config_file("fargate.toml")
except ConfigError as err:
    print(err)
```

## Using the provider

```python
from vkfargate.client import Client
from vkfargate.provider import FargateProvider, ContainerLogOpts

def client_factory(region):
    return Client(region, MyEcsApi(), MyLogsApi())  # your EcsApi / LogsApi subclasses

provider = FargateProvider(
    "fargate.toml",
    None,            # resource manager, kept as provider.resource_manager
    "vk-fargate",    # node name
    "Linux",
    "10.0.0.1",      # internal IP
    10250,           # daemon endpoint port
    client_factory,
)

provider.create_pod(pod)           # pod: vkfargate.kube.Pod
status = provider.get_pod_status("default", "my-pod")
print(status.phase)
logs = provider.get_container_logs("default", "my-pod", "app", ContainerLogOpts(tail=100))
provider.delete_pod(pod)
```

### Setting up the provider

Creating the provider does the following:

1. It loads the configuration file. Any failure is raised as `ConfigError`.
2. It looks for the configured cluster. If the cluster is missing, it creates it.
3. It rebuilds its pod cache from the tasks running on the cluster.

The cluster name must not contain `_`.

### Provider methods

| Method | What it does |
| --- | --- |
| `create_pod` | Registers a task definition for the pod and runs the task. |
| `delete_pod` | Stops the pod's task and deregisters its definition. It raises `PodNotFoundError` for an unknown pod. |
| `get_pod` | Returns the pod as a `vkfargate.kube.Pod`. |
| `get_pod_status` | Returns the pod's `PodStatus`. The phase is `Unknown` when the task cannot be described. |
| `get_pods` | Returns every cached pod whose task can be described. |
| `get_container_logs` | Returns an `io.StringIO` with one message per line, or `None` when nothing has been logged yet. It raises `ValueError` when no log group is configured. |
| `capacity` | Returns the configured capacity as `Quantity` values. |
| `node_conditions` | Returns fixed healthy node conditions. |
| `node_addresses` | Returns the internal IP. |
| `node_daemon_endpoints` | Returns the kubelet port. |
| `operating_system` | Returns the operating system passed in. |
| `get_pod_full_name` | Returns `""`. |
| `update_pod` | Raises `NotImplementedByProviderError`. |
| `run_in_container` | Raises `NotImplementedByProviderError`. |

A pod's containers are translated as follows:

- **CPU.** Limits are preferred over requests. The value is converted to 1/1024 vCPU
  units. The default is 256.
- **Memory.** A missing request or limit takes the other one's value. Memory is
  rounded up to the next MiB. The default is 512 MiB.
- **Task role.** It is taken from the `iam.amazonaws.com/role` annotation.
- **Logs.** When a log group is configured, container logs go to that CloudWatch Logs
  group.

## Task sizing

`vkfargate.pod.Pod.map_task_size` picks the smallest Fargate size whose CPU and memory
cover the sum of the pod's containers. CPU is counted in 1/1024 vCPU units and memory
in MiB.

The sizes are listed in `vkfargate.units.TASK_SIZE_TABLE`. They run from 256 CPU with
512 MiB up to 4096 CPU with 30 GiB. A pod that needs more raises `ValueError`.

## Running the tests

```
pip install "vkfargate[test]"
pytest
```
from datetime import datetime, timezone

import pytest

from vkfargate.client import Client, EcsApi, LogsApi, ServiceError, Task, TaskDefinition
from vkfargate.cluster import Cluster, ClusterConfig, PodNotFoundError
from vkfargate.container import ContainerDefinition
from vkfargate.pod import Pod, build_task_definition_tag


class FakeEcs(EcsApi):
    def __init__(self, clusters=None, describe_error=None, list_error=None):
        self.clusters = dict(clusters or {})
        self.describe_error = describe_error
        self.list_error = list_error
        self.created = []
        self.tasks = {}
        self.definitions = {}

    def create_cluster(self, name):
        arn = f"arn:cluster/{name}"
        self.clusters[name] = arn
        self.created.append(name)
        return arn

    def describe_clusters(self, names):
        if self.describe_error is not None:
            raise self.describe_error
        return [self.clusters[name] for name in names if name in self.clusters]

    def list_tasks(self, cluster, desired_status, launch_type):
        if self.list_error is not None:
            raise self.list_error
        return list(self.tasks)

    def describe_tasks(self, cluster, task_arns):
        return [self.tasks[arn] for arn in task_arns if arn in self.tasks]

    def describe_task_definition(self, task_definition_arn):
        try:
            return self.definitions[task_definition_arn]
        except KeyError:
            raise ServiceError("unknown task definition") from None

    def register_task_definition(self, definition):
        definition.task_definition_arn = f"arn:def/{definition.family}"
        return definition

    def deregister_task_definition(self, task_definition_arn):
        self.definitions.pop(task_definition_arn, None)

    def run_task(self, **kwargs):
        return [Task(task_arn="arn:task/new")]

    def stop_task(self, cluster, task_arn, reason):
        self.tasks.pop(task_arn, None)


class FakeLogs(LogsApi):
    def __init__(self, streams=None):
        self.streams = streams or {}
        self.prefixes = []
        self.limits = []

    def describe_log_streams(self, log_group_name, prefix):
        self.prefixes.append(prefix)
        return [name for name in self.streams if name.startswith(prefix)]

    def get_log_events(self, log_group_name, log_stream_name, limit):
        self.limits.append(limit)
        yield from self.streams[log_stream_name]


def make_client(ecs=None, logs=None):
    return Client(region="us-east-1", api=ecs or FakeEcs(), logs_api=logs or FakeLogs())


def make_config(**overrides):
    values = dict(region="us-east-1", name="vk", subnets=["subnet-1"])
    values.update(overrides)
    return ClusterConfig(**values)


def test_name_with_underscore_is_rejected():
    with pytest.raises(ValueError, match="should not contain the '_' character"):
        Cluster.create(make_config(name="my_cluster"), make_client())


def test_unsupported_region_is_rejected():
    with pytest.raises(ValueError, match="Fargate is not available in region mars-1"):
        Cluster.create(make_config(region="mars-1"), make_client())


def test_existing_cluster_is_used():
    ecs = FakeEcs(clusters={"vk": "arn:existing"})
    cluster = Cluster.create(make_config(), make_client(ecs))
    assert cluster.arn == "arn:existing"
    assert ecs.created == []


def test_missing_cluster_reported_as_failure_is_created():
    ecs = FakeEcs(describe_error=ServiceError("reason: MISSING"))
    cluster = Cluster.create(make_config(), make_client(ecs))
    assert ecs.created == ["vk"]
    assert cluster.arn == ecs.clusters["vk"]


def test_absent_cluster_is_created():
    ecs = FakeEcs()
    cluster = Cluster.create(make_config(), make_client(ecs))
    assert ecs.created == ["vk"]
    assert cluster.arn == ecs.clusters["vk"]


def test_other_describe_failure_is_raised():
    ecs = FakeEcs(describe_error=ServiceError("access denied"))
    with pytest.raises(ServiceError, match="failed to describe cluster: access denied"):
        Cluster.create(make_config(), make_client(ecs))


def test_list_failure_is_raised():
    ecs = FakeEcs(clusters={"vk": "arn:existing"}, list_error=ServiceError("throttled"))
    with pytest.raises(ServiceError, match="failed to load pod state: throttled"):
        Cluster.create(make_config(), make_client(ecs))


def test_node_name_defaults_to_cluster_name():
    cluster = Cluster.create(make_config(), make_client())
    assert cluster.node_name == "vk"


def test_node_name_is_kept_when_given():
    cluster = Cluster.create(make_config(node_name="node-a"), make_client())
    assert cluster.node_name == "node-a"


def test_load_pod_state_rebuilds_pods():
    created = datetime(2020, 1, 2, tzinfo=timezone.utc)
    tag = build_task_definition_tag("vk", "default", "web")
    definition = ContainerDefinition(
        name="app", image="busybox", cpu=256, memory=512, memory_reservation=512
    )
    ecs = FakeEcs(clusters={"vk": "arn:existing"})
    ecs.definitions["arn:def/1"] = TaskDefinition(
        family=tag, container_definitions=[definition], task_role_arn="arn:role"
    )
    ecs.definitions["arn:def/2"] = TaskDefinition(family="other-family")
    ecs.tasks["arn:task/1"] = Task(
        task_arn="arn:task/1",
        task_definition_arn="arn:def/1",
        last_status="RUNNING",
        started_by="uid-1",
        created_at=created,
    )
    ecs.tasks["arn:task/2"] = Task(task_arn="arn:task/2", task_definition_arn="arn:def/2")
    ecs.tasks["arn:task/3"] = Task(task_arn="arn:task/3", task_definition_arn="arn:def/missing")

    cluster = Cluster.create(make_config(), make_client(ecs))

    pods = cluster.get_pods()
    assert len(pods) == 1
    pod = cluster.get_pod("default", "web")
    assert pod is pods[0]
    assert pod.uid == "uid-1"
    assert pod.task_arn == "arn:task/1"
    assert pod.task_def_arn == "arn:def/1"
    assert pod.task_role_arn == "arn:role"
    assert pod.task_status == "RUNNING"
    assert pod.task_cpu == 256
    assert pod.task_memory == 512
    assert pod.containers["app"].start_time == created
    assert pod.containers["app"].definition == definition
    assert pod.containers["app"].definition is not definition


def test_get_pod_unknown_raises():
    cluster = Cluster.create(make_config(), make_client())
    with pytest.raises(PodNotFoundError, match="pod default/web is not found"):
        cluster.get_pod("default", "web")


def test_insert_and_remove_pod():
    cluster = Cluster.create(make_config(), make_client())
    tag = build_task_definition_tag("vk", "ns", "db")
    pod = Pod.from_tag(cluster, tag)
    cluster.insert_pod(pod, tag)
    assert cluster.get_pod("ns", "db") is pod
    cluster.remove_pod(tag)
    assert cluster.get_pods() == []
    with pytest.raises(PodNotFoundError):
        cluster.get_pod("ns", "db")


def test_logs_require_log_group():
    cluster = Cluster.create(make_config(), make_client())
    with pytest.raises(ValueError, match="CloudWatchLogGroupName"):
        cluster.get_container_logs("default", "web", "app", 100)


def test_logs_none_when_no_stream():
    logs = FakeLogs()
    cluster = Cluster.create(
        make_config(cloud_watch_log_group_name="group"), make_client(logs=logs)
    )
    assert cluster.get_container_logs("default", "web", "app", 100) is None
    assert logs.prefixes == [build_task_definition_tag("vk", "default", "web") + "_app"]


def test_logs_join_pages_until_empty_page():
    stream = build_task_definition_tag("vk", "default", "web") + "_app/task-1"
    logs = FakeLogs({stream: [["Started", "TEST_ENV=AnyValue"], ["more"], [], ["ignored"]]})
    cluster = Cluster.create(
        make_config(cloud_watch_log_group_name="group"), make_client(logs=logs)
    )
    with cluster.get_container_logs("default", "web", "app", 100) as reader:
        text = reader.read()
    assert text.split("\n") == ["Started", "TEST_ENV=AnyValue", "more", ""]
    assert logs.limits == [100]
import io

import pytest

from vkfargate.config import ConfigError, ProviderConfig, load_config, load_config_file

MINIMAL = 'Region = "us-east-1"\nSubnets = ["subnet-1"]\n'


def load(text):
    return load_config(io.StringIO(text))


def test_minimal_config_takes_defaults():
    config = load(MINIMAL)
    assert config.region == "us-east-1"
    assert config.subnets == ["subnet-1"]
    assert config.security_groups == []
    assert config.cluster_name == "default"
    assert config.platform_version == "LATEST"
    assert config.operating_system == "Linux"
    assert config.assign_public_ipv4_address is False
    assert (config.cpu, config.memory, config.storage, config.pods) == ("20", "40Gi", "40Gi", "20")


def test_full_config_is_read():
    text = (
        'Region = "us-west-2"\n'
        'ClusterName = "vk"\n'
        'Subnets = ["subnet-1", "subnet-2"]\n'
        "SecurityGroups = [ ]\n"
        "AssignPublicIPv4Address = true\n"
        'ExecutionRoleArn = "arn:role"\n'
        'CloudWatchLogGroupName = "/ecs/test"\n'
        'CPU = "4"\n'
        'Memory = "8Gi"\n'
        'Pods = "5"\n'
    )
    config = load(text)
    assert config == ProviderConfig(
        region="us-west-2",
        cluster_name="vk",
        subnets=["subnet-1", "subnet-2"],
        security_groups=[],
        assign_public_ipv4_address=True,
        execution_role_arn="arn:role",
        cloud_watch_log_group_name="/ecs/test",
        cpu="4",
        memory="8Gi",
        pods="5",
    )


def test_keys_match_without_case():
    config = load('region = "eu-west-1"\nsubnets = ["subnet-9"]\nclustername = "c"\n')
    assert config.region == "eu-west-1"
    assert config.cluster_name == "c"


def test_bytes_stream_is_accepted():
    config = load_config(io.BytesIO(MINIMAL.encode()))
    assert config.subnets == ["subnet-1"]


def test_load_config_file(tmp_path):
    path = tmp_path / "provider.toml"
    path.write_text(MINIMAL)
    assert load_config_file(path) == load(MINIMAL)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config_file(tmp_path / "absent.toml")


def test_region_required():
    with pytest.raises(ConfigError, match="Region is a required field"):
        load('Subnets = ["subnet-1"]\n')


def test_unsupported_region():
    with pytest.raises(ConfigError, match="not available in mars-1"):
        load('Region = "mars-1"\nSubnets = ["subnet-1"]\n')


def test_subnets_required():
    with pytest.raises(ConfigError, match="Subnets is a required field"):
        load('Region = "us-east-1"\nSubnets = []\n')


def test_operating_system_must_be_linux():
    with pytest.raises(ConfigError, match="does not support operating system Windows"):
        load(MINIMAL + 'OperatingSystem = "Windows"\n')


def test_log_group_needs_execution_role():
    with pytest.raises(ConfigError, match="Execution role required"):
        load(MINIMAL + 'CloudWatchLogGroupName = "/ecs/test"\n')


@pytest.mark.parametrize(
    ("line", "message"),
    [
        ('CPU = "abc"', "Invalid CPU value abc"),
        ('CPU = "100m"', "CPU value 100m is less than the minimum 250m"),
        ('Memory = "lots"', "Invalid memory value lots"),
        ('Memory = "256Mi"', "Memory value 256Mi is less than the minimum 512Mi"),
        ('Storage = "big"', "Invalid storage value big"),
        ('Pods = "many"', "Invalid pods value many"),
        ('Pods = "0"', "Pod value 0 is less than the minimum 1"),
    ],
)
def test_capacity_validation(line, message):
    with pytest.raises(ConfigError) as info:
        load(MINIMAL + line + "\n")
    assert str(info.value) == message


def test_minimum_capacity_is_accepted():
    config = load(MINIMAL + 'CPU = "250m"\nMemory = "512Mi"\nPods = "1"\n')
    assert (config.cpu, config.memory, config.pods) == ("250m", "512Mi", "1")


def test_malformed_toml_raises():
    with pytest.raises(ConfigError):
        load('Region = "us-east-1\n')


def test_wrong_type_raises():
    with pytest.raises(ConfigError, match="CPU must be of type str"):
        load(MINIMAL + "CPU = 20\n")
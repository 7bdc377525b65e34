"""
Pytest configuration and shared fixtures for testing.
"""

import boto3
import pytest
from moto import mock_aws

from inventory_genie.core.config import ConnectionConfig
from inventory_genie.core.context import ConnectionContext
from inventory_genie.core.credentials import (
    ACCESS_KEY_ENV_VARS,
    PROFILE_ENV_VARS,
    SECRET_KEY_ENV_VARS,
    SESSION_TOKEN_ENV_VARS,
)
from inventory_genie.core.rate_limiter import RateLimiter
from inventory_genie.core.regions import REGION_ENV_VARS

FAKE_KEYS = {
    "AWS_ACCESS_KEY_ID": "testing",
    "AWS_SECRET_ACCESS_KEY": "testing",
}


@pytest.fixture(autouse=True)
def isolated_aws_env(monkeypatch, tmp_path):
    """Keep the host's AWS profiles, keys and regions out of every test."""
    for name in (
        PROFILE_ENV_VARS
        + ACCESS_KEY_ENV_VARS
        + SECRET_KEY_ENV_VARS
        + SESSION_TOKEN_ENV_VARS
        + REGION_ENV_VARS
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AWS_CONFIG_FILE", str(tmp_path / "aws-config"))
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(tmp_path / "aws-credentials"))


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def mock_aws_environment(aws_credentials):
    """Create a mocked AWS environment."""
    with mock_aws():
        yield


@pytest.fixture
def no_sleep():
    """A recording replacement for time.sleep."""
    delays = []
    return delays.append, delays


@pytest.fixture
def fast_limiter():
    """A rate limiter that never blocks."""
    return RateLimiter(rate_per_second=1000.0, burst=1000, sleep=lambda _: None)


@pytest.fixture
def offline_context(fast_limiter):
    """A context with static keys and no provider access."""
    return ConnectionContext(
        ConnectionConfig(regions=["us-east-1"]),
        environ=dict(FAKE_KEYS),
        rate_limiter=fast_limiter,
    )


@pytest.fixture
def context(mock_aws_environment, fast_limiter):
    """A context talking to moto in us-east-1."""
    with ConnectionContext(
        ConnectionConfig(regions=["us-east-1"]),
        rate_limiter=fast_limiter,
    ) as ctx:
        yield ctx


@pytest.fixture
def ec2_client(mock_aws_environment):
    """Create a boto3 EC2 client for setting up test resources."""
    return boto3.client("ec2", region_name="us-east-1")


@pytest.fixture
def iam_client(mock_aws_environment):
    """Create a boto3 IAM client for setting up test resources."""
    return boto3.client("iam", region_name="us-east-1")


@pytest.fixture
def secrets_client(mock_aws_environment):
    """Create a boto3 Secrets Manager client for setting up test resources."""
    return boto3.client("secretsmanager", region_name="us-east-1")


@pytest.fixture
def vpc(ec2_client):
    """Create a VPC for testing."""
    response = ec2_client.create_vpc(CidrBlock="10.0.0.0/16")
    vpc_id = response["Vpc"]["VpcId"]
    ec2_client.create_tags(
        Resources=[vpc_id], Tags=[{"Key": "Name", "Value": "core"}]
    )
    return vpc_id


@pytest.fixture
def subnet(ec2_client, vpc):
    """Create a subnet for testing."""
    response = ec2_client.create_subnet(
        VpcId=vpc,
        CidrBlock="10.0.1.0/24",
        AvailabilityZone="us-east-1a",
    )
    return response["Subnet"]["SubnetId"]

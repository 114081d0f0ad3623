"""Integration test fixtures and infrastructure detection.

Run with:  pytest tests/integration/ -m integration -v
Requires:  LocalStack on :4566 (EC2 and Route53 services).
Tests skip automatically if infrastructure is not available.
"""

from __future__ import annotations

import contextlib
import socket
from collections.abc import Generator
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Infrastructure detection (evaluated once at import time)
# ---------------------------------------------------------------------------

LOCALSTACK_ENDPOINT = "http://localhost:4566"
TEST_PREFIX = "acinttest"


def _is_port_open(host: str, port: int, timeout: float = 2.0) -> bool:
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


LOCALSTACK_AVAILABLE = _is_port_open("localhost", 4566)


def _boto3_client(service: str) -> Any:
    """Create a raw boto3 client for test setup/teardown."""
    import boto3
    return boto3.client(
        service,
        endpoint_url=LOCALSTACK_ENDPOINT,
        region_name="us-east-1",
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )


# ---------------------------------------------------------------------------
# LocalStack / AWS fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def localstack_endpoint() -> str:
    if not LOCALSTACK_AVAILABLE:
        pytest.skip("LocalStack not running on localhost:4566")
    pytest.importorskip("boto3")
    return LOCALSTACK_ENDPOINT


@pytest.fixture(scope="session")
def aws_env(monkeypatch_session) -> None:
    monkeypatch_session.setenv("AWS_ACCESS_KEY_ID", "test")
    monkeypatch_session.setenv("AWS_SECRET_ACCESS_KEY", "test")
    monkeypatch_session.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture(scope="session")
def monkeypatch_session() -> Generator[pytest.MonkeyPatch, None, None]:
    mp = pytest.MonkeyPatch()
    yield mp
    mp.undo()


@pytest.fixture(scope="module")
def ec2_cluster_instances(localstack_endpoint: str) -> Generator[list[str], None, None]:
    """Launch tagged instances for one fake cluster; terminate after."""
    ec2 = _boto3_client("ec2")
    image_id = ec2.describe_images()["Images"][0]["ImageId"]
    names = [f"{TEST_PREFIX}-ab12-x9k2j-master-{i}" for i in range(2)]
    ids: list[str] = []
    for name in names:
        resp = ec2.run_instances(
            ImageId=image_id,
            MinCount=1,
            MaxCount=1,
            InstanceType="t3.micro",
            TagSpecifications=[{
                "ResourceType": "instance",
                "Tags": [{"Key": "Name", "Value": name}],
            }],
        )
        ids.extend(i["InstanceId"] for i in resp["Instances"])
    yield names
    with contextlib.suppress(Exception):
        ec2.terminate_instances(InstanceIds=ids)


@pytest.fixture(scope="session")
def route53_client(localstack_endpoint: str) -> Any:
    return _boto3_client("route53")


@pytest.fixture(scope="module")
def route53_zone(route53_client: Any) -> Generator[str, None, None]:
    """Create a hosted zone in LocalStack; clean up after."""
    r53 = route53_client
    zone = r53.create_hosted_zone(
        Name="inttest.example.com", CallerReference="auto-cluster-inttest",
    )["HostedZone"]["Id"]
    yield zone
    try:
        records = r53.list_resource_record_sets(HostedZoneId=zone)["ResourceRecordSets"]
        changes = [
            {"Action": "DELETE", "ResourceRecordSet": r}
            for r in records if r["Type"] == "CNAME"
        ]
        if changes:
            r53.change_resource_record_sets(
                HostedZoneId=zone, ChangeBatch={"Changes": changes},
            )
        r53.delete_hosted_zone(Id=zone)
    except Exception:
        pass

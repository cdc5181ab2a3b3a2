"""Pytest configuration and fixtures."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from kubefleet.errors import ProviderError
from kubefleet.models.cluster import CloudAccount, Cluster
from kubefleet.models.inventory import InstanceRecord
from kubefleet.models.providers import ProviderName
from kubefleet.models.spot import (
    AWSProvisioningSettings,
    ProvisioningConfig,
    SpotFulfillment,
    SpotPricePoint,
    SpotSubmission,
)
from kubefleet.providers.base import CloudProvider, ProviderFactory

FIXED_NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeProvider(CloudProvider):
    """In-memory CloudProvider recording every call. 16 means running."""

    name = ProviderName.aws

    def __init__(self) -> None:
        self.instances: List[InstanceRecord] = []
        self.describe_error: Optional[ProviderError] = None
        self.describe_calls: List[str] = []

        self.submitted: List[SpotSubmission] = []
        self.submit_error: Optional[ProviderError] = None
        self.request_ids: List[str] = ["sir-1"]

        self.wait_calls: List[List[str]] = []
        self.wait_error: Optional[ProviderError] = None
        self.fulfillments: List[SpotFulfillment] = [
            SpotFulfillment(request_id="sir-1", instance_id="i-1", state="active")
        ]
        self.describe_spot_error: Optional[ProviderError] = None

        self.tag_calls: List[Tuple[List[str], Dict[str, str]]] = []
        self.tag_errors: Dict[str, ProviderError] = {}

        self.price_history: List[SpotPricePoint] = []
        self.price_error: Optional[ProviderError] = None
        self.price_calls: List[Tuple[str, str, datetime, datetime]] = []

    def is_running(self, state_code: Optional[int]) -> bool:
        return state_code == 16

    async def describe_instances(self, cluster_id: str) -> List[InstanceRecord]:
        self.describe_calls.append(cluster_id)
        if self.describe_error is not None:
            raise self.describe_error
        return list(self.instances)

    async def submit_spot_request(self, submission: SpotSubmission) -> List[str]:
        self.submitted.append(submission)
        if self.submit_error is not None:
            raise self.submit_error
        return list(self.request_ids)

    async def wait_until_fulfilled(self, request_ids: List[str]) -> None:
        self.wait_calls.append(list(request_ids))
        if self.wait_error is not None:
            raise self.wait_error

    async def describe_spot_requests(
        self, request_ids: List[str]
    ) -> List[SpotFulfillment]:
        if self.describe_spot_error is not None:
            raise self.describe_spot_error
        return list(self.fulfillments)

    async def tag_resources(
        self, resource_ids: List[str], tags: Dict[str, str]
    ) -> None:
        self.tag_calls.append((list(resource_ids), dict(tags)))
        for resource_id in resource_ids:
            if resource_id in self.tag_errors:
                raise self.tag_errors[resource_id]

    async def describe_price_history(
        self,
        availability_zone: str,
        instance_type: str,
        start: datetime,
        end: datetime,
    ) -> List[SpotPricePoint]:
        self.price_calls.append((availability_zone, instance_type, start, end))
        if self.price_error is not None:
            raise self.price_error
        return list(self.price_history)


class FixedIds:
    """Deterministic IdSource."""

    def __init__(self) -> None:
        self.tokens = 0
        self.suffixes = 0

    def client_token(self) -> str:
        self.tokens += 1
        return f"token-{self.tokens}"

    def short_suffix(self) -> str:
        self.suffixes += 1
        return f"s{self.suffixes:03d}"


def instance(
    private_ip: Optional[str],
    name: Optional[str],
    state_code: Optional[int] = 16,
    instance_id: str = "i-0",
    instance_type: str = "m5.large",
    public_ip: Optional[str] = None,
) -> InstanceRecord:
    """Build an InstanceRecord the way the AWS adapter would."""
    tags = {"ClusterID": "c-123"}
    if name is not None:
        tags["Name"] = name
    return InstanceRecord(
        instance_id=instance_id,
        instance_type=instance_type,
        state_code=state_code,
        public_ip=public_ip,
        private_ip=private_ip,
        tags=tags,
    )


@pytest.fixture
def make_instance() -> Callable[..., InstanceRecord]:
    return instance


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def factory_calls() -> List[Tuple[str, str]]:
    """(account name, region) of every provider construction."""
    return []


@pytest.fixture
def providers(
    fake_provider: FakeProvider, factory_calls: List[Tuple[str, str]]
) -> Dict[ProviderName, ProviderFactory]:
    """Registry whose only entry (aws) hands out the fake provider."""

    def _factory(account: CloudAccount, region: str) -> CloudProvider:
        factory_calls.append((account.name, region))
        return fake_provider

    return {ProviderName.aws: _factory}


@pytest.fixture
def fixed_ids() -> FixedIds:
    return FixedIds()


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def account() -> CloudAccount:
    return CloudAccount(
        name="demo-aws",
        provider=ProviderName.aws,
        credentials={
            "access_key_id": "AKIAEXAMPLE",
            "secret_access_key": "example-secret",
        },
    )


@pytest.fixture
def cluster() -> Cluster:
    return Cluster(id="c-123", name="demo", region="us-west-2", account_name="demo-aws")


@pytest.fixture
def provisioning_config(cluster: Cluster, account: CloudAccount) -> ProvisioningConfig:
    return ProvisioningConfig(
        provider=ProviderName.aws,
        account=account,
        cluster=cluster,
        is_master=False,
        dry_run=False,
        user_data="echo hello",
        aws=AWSProvisioningSettings(
            region="us-west-2",
            availability_zone="us-west-2a",
            subnets={"us-west-2a": "subnet-a", "us-west-2b": "subnet-b"},
            nodes_security_group_id="sg-nodes",
            image_id="ami-123",
            nodes_instance_profile="demo-nodes",
            key_pair_name="demo-key",
            volume_size="80",
        ),
    )

"""
filename: kubefleet/providers/aws.py

EC2 implementation of CloudProvider on top of boto3.

boto3 is synchronous, so every remote call is pushed to a worker thread with
asyncio.to_thread; the event loop never blocks on EC2. botocore failures are
translated into ProviderError, keeping the provider's error code and message
for diagnostics. Building the client loads botocore service data from disk;
workflows call `from_account` through `kubefleet.providers.build_provider`,
which runs it in a worker thread as well.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from kubefleet.errors import (
    ClientConstructionFailed,
    FleetError,
    ProviderError,
)
from kubefleet.models.cluster import CloudAccount
from kubefleet.models.inventory import InstanceRecord
from kubefleet.models.providers import AWSApiKey, ProviderName, parse_account_credentials
from kubefleet.models.spot import SpotFulfillment, SpotPricePoint, SpotSubmission
from kubefleet.providers.base import TAG_CLUSTER_ID, CloudProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")

# EC2 instance state code for 'running'. Only the low byte is meaningful.
RUNNING_STATE_CODE = 16


def build_request_spot_instances_input(submission: SpotSubmission) -> Dict[str, Any]:
    """
    Translate a SpotSubmission into RequestSpotInstances keyword arguments.

    Args:
        submission: The provider-neutral spot request.

    Returns:
        A dict suitable for `ec2.request_spot_instances(**kwargs)`.
    """
    spec = submission.launch_spec
    return {
        "Type": submission.request_type,
        "LaunchSpecification": {
            "IamInstanceProfile": {"Name": spec.instance_profile},
            "SubnetId": spec.subnet_id,
            "SecurityGroupIds": [spec.security_group_id],
            "ImageId": spec.image_id,
            "InstanceType": spec.instance_type,
            "KeyName": spec.key_name,
            "BlockDeviceMappings": [
                {
                    "DeviceName": spec.root_device_name,
                    "Ebs": {
                        "DeleteOnTermination": spec.delete_on_termination,
                        "VolumeType": spec.root_volume_type,
                        "VolumeSize": spec.root_volume_size,
                    },
                }
            ],
            "UserData": spec.user_data,
        },
        "SpotPrice": submission.spot_price,
        "ClientToken": submission.client_token,
        "InstanceCount": submission.instance_count,
        "DryRun": submission.dry_run,
        "ValidFrom": submission.valid_from,
        "ValidUntil": submission.valid_until,
    }


def instance_record_from_ec2(raw: Dict[str, Any]) -> InstanceRecord:
    """Convert one entry of DescribeInstances' Reservations[].Instances[]."""
    state = raw.get("State") or {}
    return InstanceRecord(
        instance_id=raw.get("InstanceId", ""),
        instance_type=raw.get("InstanceType", ""),
        state_code=state.get("Code"),
        public_ip=raw.get("PublicIpAddress"),
        private_ip=raw.get("PrivateIpAddress"),
        tags={
            tag["Key"]: tag.get("Value", "")
            for tag in raw.get("Tags", [])
            if tag.get("Key") is not None
        },
    )


class AWSProvider(CloudProvider):
    """CloudProvider backed by a boto3 EC2 client."""

    name = ProviderName.aws

    def __init__(self, ec2_client: Any) -> None:
        self._ec2 = ec2_client

    @classmethod
    def from_account(cls, account: CloudAccount, region: str) -> AWSProvider:
        """
        Build an EC2 client from account credentials scoped to `region`.

        Raises:
            ClientConstructionFailed: If the credentials do not validate or
                botocore refuses to build a client (e.g. no region).
        """
        try:
            api_key = parse_account_credentials(account.provider, account.credentials)
        except FleetError as exc:
            raise ClientConstructionFailed(
                f"account {account.name!r}: {exc}"
            ) from exc
        assert isinstance(api_key, AWSApiKey)

        try:
            session = boto3.session.Session(
                region_name=region or None, **api_key.to_session_kwargs()
            )
            client = session.client("ec2")
        except (BotoCoreError, ValueError) as exc:
            raise ClientConstructionFailed(
                f"get EC2 client for account {account.name!r} in region {region!r}: {exc}"
            ) from exc
        return cls(client)

    def is_running(self, state_code: Optional[int]) -> bool:
        return state_code is not None and (state_code & 0xFF) == RUNNING_STATE_CODE

    async def _call(self, operation: str, func: Callable[[], T]) -> T:
        """Run a blocking boto3 call in a thread, translating botocore errors."""
        try:
            return await asyncio.to_thread(func)
        except ClientError as exc:
            error = exc.response.get("Error", {})
            raise ProviderError(
                f"{operation}: {error.get('Message', exc)}",
                code=error.get("Code"),
                detail=error.get("Message"),
            ) from exc
        except BotoCoreError as exc:
            raise ProviderError(f"{operation}: {exc}") from exc

    async def describe_instances(self, cluster_id: str) -> List[InstanceRecord]:
        def _describe() -> List[Dict[str, Any]]:
            paginator = self._ec2.get_paginator("describe_instances")
            pages = paginator.paginate(
                Filters=[{"Name": f"tag:{TAG_CLUSTER_ID}", "Values": [cluster_id]}]
            )
            return [
                instance
                for page in pages
                for reservation in page.get("Reservations", [])
                for instance in reservation.get("Instances", [])
            ]

        raw_instances = await self._call("describe instances", _describe)
        return [instance_record_from_ec2(raw) for raw in raw_instances]

    async def submit_spot_request(self, submission: SpotSubmission) -> List[str]:
        kwargs = build_request_spot_instances_input(submission)
        try:
            response = await self._call(
                "request spot instances",
                lambda: self._ec2.request_spot_instances(**kwargs),
            )
        except ProviderError as exc:
            # EC2 answers a successful dry run with this error code.
            if submission.dry_run and exc.code == "DryRunOperation":
                logger.info("Dry run spot request accepted: %s", exc.detail)
                return []
            raise
        return [
            request["SpotInstanceRequestId"]
            for request in response.get("SpotInstanceRequests", [])
        ]

    async def wait_until_fulfilled(self, request_ids: List[str]) -> None:
        waiter = self._ec2.get_waiter("spot_instance_request_fulfilled")
        await self._call(
            "wait until spot requests fulfilled",
            lambda: waiter.wait(SpotInstanceRequestIds=request_ids),
        )

    async def describe_spot_requests(
        self, request_ids: List[str]
    ) -> List[SpotFulfillment]:
        response = await self._call(
            "describe spot instance requests",
            lambda: self._ec2.describe_spot_instance_requests(
                SpotInstanceRequestIds=request_ids
            ),
        )
        return [
            SpotFulfillment(
                request_id=request["SpotInstanceRequestId"],
                instance_id=request.get("InstanceId"),
                state=request.get("State", ""),
            )
            for request in response.get("SpotInstanceRequests", [])
        ]

    async def tag_resources(
        self, resource_ids: List[str], tags: Dict[str, str]
    ) -> None:
        await self._call(
            "create tags",
            lambda: self._ec2.create_tags(
                Resources=resource_ids,
                Tags=[{"Key": key, "Value": value} for key, value in tags.items()],
            ),
        )

    async def describe_price_history(
        self,
        availability_zone: str,
        instance_type: str,
        start: datetime,
        end: datetime,
    ) -> List[SpotPricePoint]:
        def _describe() -> List[Dict[str, Any]]:
            paginator = self._ec2.get_paginator("describe_spot_price_history")
            pages = paginator.paginate(
                AvailabilityZone=availability_zone,
                InstanceTypes=[instance_type],
                StartTime=start,
                EndTime=end,
            )
            return [entry for page in pages for entry in page.get("SpotPriceHistory", [])]

        entries = await self._call("describe spot price history", _describe)
        return [
            SpotPricePoint(
                product_description=entry.get("ProductDescription", ""),
                price=entry.get("SpotPrice", ""),
                availability_zone=entry.get("AvailabilityZone", ""),
                timestamp=entry.get("Timestamp"),
            )
            for entry in entries
        ]


__all__ = [
    "AWSProvider",
    "RUNNING_STATE_CODE",
    "build_request_spot_instances_input",
    "instance_record_from_ec2",
]

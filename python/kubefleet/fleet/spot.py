"""
filename: kubefleet/fleet/spot.py

Spot capacity provisioning.

`request_spot_capacity` validates the configuration, submits a persistent spot
request and returns as soon as the provider accepted it. Fulfillment can take
seconds to hours, so the rest of the workflow runs in a detached task:

  1) wait until the provider reports the requests fulfilled,
  2) describe the requests to find the instances behind them,
  3) tag each request/instance pair with cluster and role identity.

The tags are what makes the instances discoverable by the reconciler on a
later pass. Failures of the detached task are only logged; the caller has
already returned. An optional callback receives a SpotCompletion summary.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from datetime import timedelta
from typing import Callable, List, Mapping, Optional, Set, Tuple

from kubefleet.errors import InvalidConfig, ProviderError, RequestSubmissionFailed
from kubefleet.ids import Clock, IdSource, UUIDSource, make_node_name, make_role, utc_now
from kubefleet.models.providers import ProviderName
from kubefleet.models.spot import (
    ProvisioningConfig,
    SpotCompletion,
    SpotFulfillment,
    SpotLaunchSpec,
    SpotRequest,
    SpotSubmission,
    TaggedNode,
)
from kubefleet.providers import (
    TAG_CLUSTER_ID,
    TAG_CLUSTER_NAME,
    TAG_NODE_NAME,
    TAG_ROLE,
    CloudProvider,
    ProviderFactory,
    build_provider,
)

logger = logging.getLogger(__name__)

VALID_FROM_DELAY = timedelta(seconds=10)
VALIDITY_PERIOD = timedelta(days=365)

CompletionCallback = Callable[[SpotCompletion], None]

# Strong references to detached completion tasks, dropped when they finish.
_PENDING: Set["asyncio.Task[SpotCompletion]"] = set()


def parse_volume_size(raw: str) -> int:
    """
    Parse the textual root volume size (GiB).

    Raises:
        InvalidConfig: If `raw` is not a positive base-10 integer.
    """
    text = raw.strip()
    if not text.isdecimal():
        raise InvalidConfig(f"parse volume size {raw!r}")
    size = int(text)
    if size <= 0:
        raise InvalidConfig(f"volume size must be positive, got {raw!r}")
    return size


def encode_user_data(payload: str) -> str:
    """Wrap the bootstrap payload in a shell script and base64 encode it."""
    script = f"#!/bin/sh\n{payload}"
    return base64.b64encode(script.encode("utf-8")).decode("ascii")


def build_spot_submission(
    intent: SpotRequest,
    config: ProvisioningConfig,
    volume_size: int,
    client_token: str,
    clock: Clock,
) -> SpotSubmission:
    """
    Build the persistent spot request for `intent`.

    The root volume outlives the instance (delete-on-termination disabled).
    The request is valid from ten seconds after `clock()` for one year.

    Raises:
        InvalidConfig: If no subnet is configured for the requested zone.
    """
    aws = config.aws
    subnet_id = aws.subnets.get(intent.availability_zone)
    if not subnet_id:
        raise InvalidConfig(
            f"no subnet configured for availability zone {intent.availability_zone!r}"
        )

    launch_spec = SpotLaunchSpec(
        instance_profile=aws.nodes_instance_profile,
        subnet_id=subnet_id,
        security_group_id=aws.nodes_security_group_id,
        image_id=aws.image_id,
        instance_type=intent.machine_type,
        key_name=aws.key_pair_name,
        root_device_name=aws.root_device_name,
        root_volume_size=volume_size,
        root_volume_type=aws.volume_type,
        delete_on_termination=False,
        user_data=encode_user_data(config.user_data),
    )
    now = clock()
    return SpotSubmission(
        request_type="persistent",
        launch_spec=launch_spec,
        spot_price=intent.spot_price,
        client_token=client_token,
        instance_count=intent.machine_count,
        dry_run=config.dry_run,
        valid_from=now + VALID_FROM_DELAY,
        valid_until=now + VALIDITY_PERIOD,
    )


async def request_spot_capacity(
    intent: SpotRequest,
    config: ProvisioningConfig,
    *,
    providers: Optional[Mapping[ProviderName, ProviderFactory]] = None,
    ids: Optional[IdSource] = None,
    clock: Optional[Clock] = None,
    timeout: Optional[float] = None,
    on_complete: Optional[CompletionCallback] = None,
) -> None:
    """Submit a persistent spot request and return once it is accepted.

    Success means "request accepted", not "capacity ready". Fulfillment and
    tagging continue in a detached task; see `wait_for_pending_completions`.

    Args:
        intent: Machine type, bid price, zone and count.
        config: Provisioning configuration for this operation.
        providers: Provider registry override.
        ids: Source of the client token and node name suffixes.
        clock: Source of the current time for the validity window.
        timeout: Seconds after which the call gives up, checked before submission.
        on_complete: Called with the completion summary of the detached task.

    Raises:
        UnsupportedProvider: If `config.provider` is not registered.
        ClientConstructionFailed: If the provider client cannot be built.
        InvalidConfig: If the volume size or subnet mapping is malformed.
        asyncio.TimeoutError: If `timeout` elapsed before submission.
        RequestSubmissionFailed: If the provider rejected the request.
    """
    loop = asyncio.get_running_loop()
    deadline = None if timeout is None else loop.time() + timeout
    ids = ids or UUIDSource()
    clock = clock or utc_now

    provider = await build_provider(
        config.provider, config.account, config.aws.region, providers
    )

    volume_size = parse_volume_size(config.aws.volume_size)
    submission = build_spot_submission(
        intent, config, volume_size, ids.client_token(), clock
    )

    if deadline is not None and loop.time() >= deadline:
        raise asyncio.TimeoutError(
            f"spot request for cluster {config.cluster.id} timed out before submission"
        )

    try:
        request_ids = await provider.submit_spot_request(submission)
    except ProviderError as exc:
        if exc.code or exc.detail:
            logger.error(
                "request spot instance caused %s: %s", exc.code, exc.detail
            )
        else:
            logger.error("Error %s", exc)
        raise RequestSubmissionFailed(f"request spot instance: {exc}") from exc

    logger.info(
        "Spot requests %s submitted for cluster %s",
        ", ".join(request_ids) or "(none)",
        config.cluster.id,
    )
    task = asyncio.create_task(
        complete_spot_requests(provider, request_ids, config, ids, on_complete)
    )
    _PENDING.add(task)
    task.add_done_callback(_forget_task)


def _forget_task(task: "asyncio.Task[SpotCompletion]") -> None:
    _PENDING.discard(task)
    if task.cancelled():
        logger.warning("Spot completion task cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Spot completion task failed", exc_info=exc)


async def wait_for_pending_completions() -> List[SpotCompletion]:
    """
    Wait for every detached completion task started so far.

    Used at shutdown (and by tests) so that in-flight tagging is not lost.
    Failed tasks are already logged and are left out of the result.
    """
    tasks = list(_PENDING)
    if not tasks:
        return []
    results = await asyncio.gather(*tasks, return_exceptions=True)
    return [result for result in results if isinstance(result, SpotCompletion)]


async def complete_spot_requests(
    provider: CloudProvider,
    request_ids: List[str],
    config: ProvisioningConfig,
    ids: IdSource,
    on_complete: Optional[CompletionCallback] = None,
) -> SpotCompletion:
    """
    Wait for fulfillment, then tag every fulfilled request and its instance.

    Never raises ProviderError: each failed step is logged. A failed wait still
    proceeds to describe, so requests that did get fulfilled are tagged.
    """
    completion = SpotCompletion(cluster_id=config.cluster.id, request_ids=list(request_ids))
    if not request_ids:
        logger.info("No spot requests to wait for (cluster %s)", config.cluster.id)
        return _notify(completion, on_complete)

    try:
        await provider.wait_until_fulfilled(request_ids)
        completion.fulfilled = True
    except ProviderError as exc:
        logger.error("wait until request fulfilled %s", exc)

    try:
        fulfillments = await provider.describe_spot_requests(request_ids)
    except ProviderError as exc:
        logger.error("describe spot instance requests %s", exc)
        completion.untagged_request_ids = list(request_ids)
        return _notify(completion, on_complete)

    logger.debug("Tag spot instance requests and spot instances")
    results = await asyncio.gather(
        *[_tag_fulfillment(provider, fulfillment, config, ids) for fulfillment in fulfillments]
    )
    completion.tagged = [tagged for _, tagged in results if tagged is not None]
    completion.untagged_request_ids = [
        request_id for request_id, tagged in results if tagged is None
    ]
    return _notify(completion, on_complete)


async def _tag_fulfillment(
    provider: CloudProvider,
    fulfillment: SpotFulfillment,
    config: ProvisioningConfig,
    ids: IdSource,
) -> Tuple[str, Optional[TaggedNode]]:
    if not fulfillment.instance_id:
        logger.warning(
            "Spot request %s has no instance (state %r), not tagged",
            fulfillment.request_id,
            fulfillment.state,
        )
        return fulfillment.request_id, None

    cluster = config.cluster
    node_name = make_node_name(cluster.name, ids.short_suffix(), config.is_master)
    tags = {
        TAG_CLUSTER_NAME: cluster.name,
        TAG_CLUSTER_ID: cluster.id,
        TAG_NODE_NAME: node_name,
        TAG_ROLE: make_role(config.is_master).value,
    }

    logger.info(
        "Tag instance %s and request id %s",
        fulfillment.instance_id,
        fulfillment.request_id,
    )
    try:
        await provider.tag_resources(
            [fulfillment.instance_id, fulfillment.request_id], tags
        )
    except ProviderError as exc:
        logger.error("tagging spot instance %s %s", fulfillment.instance_id, exc)
        return fulfillment.request_id, None

    return fulfillment.request_id, TaggedNode(
        request_id=fulfillment.request_id,
        instance_id=fulfillment.instance_id,
        node_name=node_name,
    )


def _notify(
    completion: SpotCompletion, on_complete: Optional[CompletionCallback]
) -> SpotCompletion:
    if on_complete is not None:
        try:
            on_complete(completion)
        except Exception:
            logger.exception("Spot completion callback failed")
    return completion

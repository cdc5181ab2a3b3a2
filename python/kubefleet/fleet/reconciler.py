"""
filename: kubefleet/fleet/reconciler.py

Keeps a cluster's recorded node maps in agreement with the provider's
instance inventory.

A pass is additive only: new, running, untagged-as-master instances are merged
into `cluster.nodes`; nothing is removed and known nodes are left untouched.
Re-running a pass against unchanged inventory is a no-op, because a merged
instance is afterwards known by its private IP.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Mapping, Optional, Set

from kubefleet.errors import (
    ClientConstructionFailed,
    InvalidCredentials,
    ProviderError,
    ProviderQueryFailed,
)
from kubefleet.models.cluster import CloudAccount, Cluster, Machine, MachineRole, MachineState
from kubefleet.models.inventory import InstanceRecord, ReconcileReport
from kubefleet.models.providers import ProviderName
from kubefleet.providers import TAG_NODE_NAME, ProviderFactory, build_provider
from kubefleet.store.cluster_store import ClusterStore

logger = logging.getLogger(__name__)


def machine_from_instance(instance: InstanceRecord, region: str) -> Machine:
    """Build the worker Machine an observed instance would be merged as."""
    return Machine(
        name=instance.tags.get(TAG_NODE_NAME, ""),
        role=MachineRole.worker,
        state=MachineState.active,
        size=instance.instance_type,
        region=region,
        private_ip=instance.private_ip or "",
        public_ip=instance.public_ip,
    )


def merge_instances(
    cluster: Cluster,
    instances: List[InstanceRecord],
    is_running: Callable[[Optional[int]], bool],
) -> List[str]:
    """
    Merge newly observed running instances into `cluster.nodes`, in place.

    An instance is merged only if all of these hold:
      - its private IP is not the private IP of a known worker,
      - it is not a master (by name, or by private IP),
      - `is_running(state_code)` is true.

    Instances without a private IP or without a node-name tag are skipped.

    Args:
        cluster: The cluster aggregate to mutate.
        instances: Inventory returned by the provider.
        is_running: The provider's 'running' predicate.

    Returns:
        Names of the nodes that were added, in inventory order.
    """
    worker_ips: Set[str] = {m.private_ip for m in cluster.nodes.values() if m.private_ip}
    master_ips: Set[str] = {m.private_ip for m in cluster.masters.values() if m.private_ip}
    added: List[str] = []

    for instance in instances:
        node = machine_from_instance(instance, cluster.region)

        if not node.private_ip or not node.name:
            logger.debug(
                "Skip instance %s without private ip or name tag", instance.instance_id
            )
            continue
        if node.private_ip in worker_ips:
            continue
        if node.name in cluster.masters or node.private_ip in master_ips:
            continue
        if not is_running(instance.state_code):
            continue
        if node.name in cluster.nodes:
            logger.warning(
                "Instance %s (%s) reuses node name %s of a known worker, skipping",
                instance.instance_id,
                node.private_ip,
                node.name,
            )
            continue

        logger.debug("Add new node %s", node)
        cluster.nodes[node.name] = node
        worker_ips.add(node.private_ip)
        added.append(node.name)

    return added


async def sync_machines(
    cluster: Cluster,
    account: CloudAccount,
    *,
    providers: Optional[Mapping[ProviderName, ProviderFactory]] = None,
) -> ReconcileReport:
    """Reconcile `cluster.nodes` with the provider's live inventory.

    The caller must hold whatever lock serialises writers of this cluster
    (see `reconcile_cluster`).

    Args:
        cluster: The cluster aggregate; its node map is mutated in place.
        account: Cloud account used to build the provider client.
        providers: Provider registry override.

    Returns:
        A ReconcileReport listing the merged node names.

    Raises:
        UnsupportedProvider: If the account's provider is not registered.
        InvalidCredentials: If no client can be built from the account.
        ProviderQueryFailed: If the inventory query fails. The cluster is untouched.
    """
    try:
        provider = await build_provider(
            account.provider, account, cluster.region, providers
        )
    except ClientConstructionFailed as exc:
        raise InvalidCredentials(
            f"error fill cloud account credentials for {account.name!r}: {exc}"
        ) from exc

    try:
        instances = await provider.describe_instances(cluster.id)
    except ProviderError as exc:
        raise ProviderQueryFailed(
            f"describe instances of cluster {cluster.id}: {exc}"
        ) from exc

    added = merge_instances(cluster, instances, provider.is_running)
    if added:
        logger.info("Cluster %s: merged nodes %s", cluster.id, ", ".join(added))
    return ReconcileReport(cluster_id=cluster.id, observed=len(instances), added=added)


async def reconcile_cluster(
    cluster_id: str,
    store: ClusterStore,
    *,
    providers: Optional[Mapping[ProviderName, ProviderFactory]] = None,
) -> ReconcileReport:
    """Load, reconcile and save one cluster while holding its store lock.

    Steps:
      1) Acquire the per-cluster lock (one writer per cluster id).
      2) Load the cluster and the cloud account it references.
      3) Run sync_machines.
      4) Persist the cluster if anything was merged.

    Raises:
        ClusterNotFound: If the cluster or its account is unknown to the store.
        Any error raised by sync_machines.
    """
    async with store.lock(cluster_id):
        cluster = await store.get(cluster_id)
        account = await store.get_account(cluster.account_name)
        report = await sync_machines(cluster, account, providers=providers)
        if report.added:
            await store.put(cluster)
        return report

"""
kubefleet/utils/kube.py

Kubernetes-side helpers around the cluster model:
 - metric key rewriting from EC2 host names to node names,
 - building a Cluster record from a kubeconfig,
 - Kubernetes/Helm version discovery through 'kubectl'.
"""

from __future__ import annotations

import base64
import json
from typing import Any, Dict, List, Optional

import yaml

from kubefleet.errors import InvalidConfig
from kubefleet.models.cluster import Cluster, ClusterAuth, Machine
from kubefleet.utils.async_command_runner import CommandError, run_command


def ip_to_host(ip: str) -> str:
    """EC2 private host name for an IPv4 address: '10.0.1.5' -> 'ip-10-0-1-5'."""
    return "ip-" + "-".join(ip.split("."))


def process_aws_metrics(cluster: Cluster, metrics: Dict[str, Any]) -> None:
    """
    Rename metric keys that mention a node's EC2 host name to the node's name.

    Prometheus labels node metrics with the EC2 host name (sometimes with the
    region appended). Any key containing 'ip-a-b-c-d' of a master, then of a
    worker, is re-keyed to the lower-cased node name. `metrics` is modified
    in place.
    """
    machines: List[Machine] = list(cluster.masters.values()) + list(cluster.nodes.values())
    for machine in machines:
        if not machine.private_ip:
            continue
        prefix = ip_to_host(machine.private_ip)
        for key in [key for key in metrics if prefix in key]:
            metrics[machine.name.lower()] = metrics.pop(key)


def load_kubeconfig(text: str) -> Dict[str, Any]:
    """Parse kubeconfig YAML. Raises InvalidConfig if it is not a mapping."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise InvalidConfig(f"kubeconfig is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise InvalidConfig("kubeconfig must be a YAML mapping")
    return data


def _named(entries: Optional[List[Dict[str, Any]]], name: str, field: str) -> Optional[Dict[str, Any]]:
    """Find `field` of the entry called `name` in a kubeconfig named list."""
    for entry in entries or []:
        if entry.get("name") == name:
            value = entry.get(field)
            return value if isinstance(value, dict) else {}
    return None


def _pem(section: Dict[str, Any], key: str) -> str:
    """Decode a '<key>-data' field (base64) of a kubeconfig section."""
    raw = section.get(f"{key}-data")
    if not raw:
        return ""
    try:
        return base64.b64decode(raw).decode("utf-8")
    except (ValueError, UnicodeDecodeError) as exc:
        raise InvalidConfig(f"kubeconfig field {key}-data is not base64 PEM") from exc


def cluster_from_kubeconfig(
    kubeconfig: Dict[str, Any],
    *,
    cluster_id: str,
    region: str = "",
    account_name: str = "",
) -> Cluster:
    """
    Build a Cluster record from the current context of a parsed kubeconfig.

    The cluster name is the context's cluster name, the external DNS name is
    the API server URL, and the auth bundle comes from the context's user.

    Raises:
        InvalidConfig: If the current context, its user or its cluster is missing.
    """
    current = kubeconfig.get("current-context", "")
    context = _named(kubeconfig.get("contexts"), current, "context")
    if context is None:
        raise InvalidConfig(f"current context {current!r} not found in kubeconfig")

    user_name = context.get("user", "")
    user = _named(kubeconfig.get("users"), user_name, "user")
    if user is None:
        raise InvalidConfig(f"user {user_name!r} not found in kubeconfig")

    cluster_name = context.get("cluster", "")
    cluster = _named(kubeconfig.get("clusters"), cluster_name, "cluster")
    if cluster is None:
        raise InvalidConfig(f"cluster {cluster_name!r} not found in kubeconfig")

    return Cluster(
        id=cluster_id,
        name=cluster_name,
        region=region,
        account_name=account_name,
        external_dns_name=cluster.get("server", ""),
        auth=ClusterAuth(
            ca_cert=_pem(cluster, "certificate-authority"),
            admin_cert=_pem(user, "client-certificate"),
            admin_key=_pem(user, "client-key"),
        ),
    )


def find_next_minor_version(current: str, versions: List[str]) -> str:
    """
    Return the version following the one sharing `current`'s 'X.YY' prefix.

    `versions` is expected in ascending order, e.g. ['1.11.5', '1.12.7',
    '1.13.0'] with current '1.12.1' gives '1.13.0'. Returns '' if there is
    no such version.
    """
    if len(current) < 4:
        return ""
    for index, version in enumerate(versions[:-1]):
        if len(version) > 3 and version[:4].lower() == current[:4].lower():
            return versions[index + 1]
    return ""


async def discover_k8s_version(kubeconfig_path: str) -> str:
    """
    Ask the API server for its version via 'kubectl version -o json'.

    Returns:
        The server git version without the leading 'v', e.g. '1.28.3'.

    Raises:
        CommandError: If kubectl fails or reports no server version.
    """
    raw = await run_command(
        ["kubectl", "--kubeconfig", kubeconfig_path, "version", "-o", "json"],
        sensitive=False,
    )
    try:
        git_version = json.loads(raw)["serverVersion"]["gitVersion"]
    except (ValueError, KeyError, TypeError) as exc:
        raise CommandError("kubectl version reported no server version") from exc
    return str(git_version).removeprefix("v")


async def discover_helm_version(kubeconfig_path: str) -> str:
    """
    Find the Helm (tiller) version from the tiller deployment image tag in
    'kube-system'. Returns '' if tiller is not deployed.

    Raises:
        CommandError: If kubectl fails.
    """
    raw = await run_command(
        [
            "kubectl",
            "--kubeconfig",
            kubeconfig_path,
            "-n",
            "kube-system",
            "get",
            "deployments",
            "-o",
            "json",
        ],
        sensitive=False,
    )
    deployments = json.loads(raw).get("items", [])
    for deployment in deployments:
        if "tiller" not in deployment.get("metadata", {}).get("name", ""):
            continue
        containers = (
            deployment.get("spec", {})
            .get("template", {})
            .get("spec", {})
            .get("containers", [])
        )
        for container in containers:
            parts = container.get("image", "").split(":")
            if len(parts) > 1:
                return parts[1].strip("v")
    return ""

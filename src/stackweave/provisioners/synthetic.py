"""
Deterministic synthetic outputs for the bundled resource kinds.

Outputs are derived from a hash of (kind, name, properties), so the same
declaration always yields the same ids, addresses and certificates. Both the
local-state and preview provisioners build on this.
"""

import base64
import hashlib
import ipaddress
import json
from typing import Any

from stackweave.exceptions import ProvisioningError
from stackweave.resources.gcp import ClusterArgs, NetworkArgs, NodePoolArgs, ServiceAccountArgs, SubnetworkArgs
from stackweave.resources.kubernetes import DeploymentArgs, ProviderArgs, ServiceArgs

COMPUTE_API = "https://www.googleapis.com/compute/v1"
ZONE_SUFFIXES = ("a", "b", "c")


def fingerprint(kind: str, name: str, properties: dict[str, Any]) -> str:
    """Stable sha256 hex digest of a resource declaration."""
    payload = json.dumps({"kind": kind, "name": name, "properties": properties}, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def synthesize_outputs(
    kind: str,
    name: str,
    properties: dict[str, Any],
    *,
    project: str,
    region: str,
    strict: bool = True,
) -> dict[str, Any]:
    """
    Build the outputs a real provider would report for this resource.

    Unknown kinds get an ``id`` plus their properties echoed back. With
    ``strict=False`` values that would be rejected by the provider (for
    example placeholders in a dry run) are accepted.

    Raises:
        ProvisioningError: If a property only known at run time is invalid
    """
    digest = fingerprint(kind, name, properties)
    physical = f"{name}-{digest[:7]}"

    builder = _BUILDERS.get(kind)
    if builder is None:
        return {"id": physical, **properties}
    return builder(name, physical, digest, properties, project, region, strict)


def _network(name, physical, digest, properties, project, region, strict):
    resource_id = f"projects/{project}/global/networks/{physical}"
    return {"id": resource_id, "name": physical, "self_link": f"{COMPUTE_API}/{resource_id}"}


def _subnetwork(name, physical, digest, properties, project, region, strict):
    subnet_region = properties.get("region") or region
    resource_id = f"projects/{project}/regions/{subnet_region}/subnetworks/{physical}"
    try:
        gateway = str(next(ipaddress.IPv4Network(properties["ip_cidr_range"]).hosts()))
    except (KeyError, ValueError, StopIteration) as e:
        if strict:
            raise ProvisioningError(name, f"invalid ip_cidr_range: {properties.get('ip_cidr_range')!r}", cause=e) from e
        gateway = ""
    return {
        "id": resource_id,
        "name": physical,
        "self_link": f"{COMPUTE_API}/{resource_id}",
        "gateway_address": gateway,
    }


def _cluster(name, physical, digest, properties, project, region, strict):
    location = properties.get("location") or region
    octets = bytes.fromhex(digest[:6])
    ca_certificate = base64.b64encode(
        f"-----BEGIN CERTIFICATE-----\n{digest}\n-----END CERTIFICATE-----\n".encode()
    ).decode("ascii")
    return {
        "id": f"projects/{project}/locations/{location}/clusters/{physical}",
        "name": physical,
        "endpoint": f"34.{octets[0]}.{octets[1]}.{octets[2]}",
        "master_auth": {"cluster_ca_certificate": ca_certificate},
        "location": location,
    }


def _service_account(name, physical, digest, properties, project, region, strict):
    account_id = properties.get("account_id", "")
    # Derived ids are only known now; the declaration check cannot see them
    if strict and not 6 <= len(account_id) <= 30:
        raise ProvisioningError(name, f"account_id must be 6-30 characters, got {account_id!r}")
    email = f"{account_id}@{project}.iam.gserviceaccount.com"
    resource_id = f"projects/{project}/serviceAccounts/{email}"
    return {
        "id": resource_id,
        "name": resource_id,
        "email": email,
        "unique_id": "1" + str(int(digest[:16], 16) % 10**20).zfill(20),
    }


def _node_pool(name, physical, digest, properties, project, region, strict):
    cluster = properties.get("cluster", "")
    return {
        "id": f"{cluster}/nodePools/{physical}",
        "name": physical,
        "instance_group_urls": [
            f"{COMPUTE_API}/projects/{project}/zones/{region}-{zone}/instanceGroupManagers/gke-{physical}-grp"
            for zone in ZONE_SUFFIXES
        ],
    }


def _provider(name, physical, digest, properties, project, region, strict):
    return {"id": f"{digest[:8]}-{digest[8:12]}-{digest[12:16]}-{digest[16:20]}-{digest[20:32]}"}


def _object_metadata(physical, properties):
    metadata = dict(properties.get("metadata") or {})
    metadata.setdefault("name", physical)
    metadata.setdefault("namespace", "default")
    return metadata


def _deployment(name, physical, digest, properties, project, region, strict):
    metadata = _object_metadata(physical, properties)
    replicas = (properties.get("spec") or {}).get("replicas", 1)
    return {
        "id": f"{metadata['namespace']}/{metadata['name']}",
        "metadata": metadata,
        "status": {"replicas": replicas, "ready_replicas": replicas, "available_replicas": replicas},
    }


def _service(name, physical, digest, properties, project, region, strict):
    metadata = _object_metadata(physical, properties)
    spec = dict(properties.get("spec") or {})
    octets = bytes.fromhex(digest[6:14])
    spec["cluster_ip"] = f"10.{octets[0]}.{octets[1]}.{octets[2] or 1}"
    load_balancer: dict[str, Any] = {}
    if spec.get("type") == "LoadBalancer":
        load_balancer["ingress"] = [{"ip": f"35.{octets[3]}.{octets[1]}.{octets[2] or 1}"}]
    return {
        "id": f"{metadata['namespace']}/{metadata['name']}",
        "metadata": metadata,
        "spec": spec,
        "status": {"load_balancer": load_balancer},
    }


_BUILDERS = {
    NetworkArgs.KIND: _network,
    SubnetworkArgs.KIND: _subnetwork,
    ClusterArgs.KIND: _cluster,
    ServiceAccountArgs.KIND: _service_account,
    NodePoolArgs.KIND: _node_pool,
    ProviderArgs.KIND: _provider,
    DeploymentArgs.KIND: _deployment,
    ServiceArgs.KIND: _service,
}

KNOWN_KINDS = frozenset(_BUILDERS)

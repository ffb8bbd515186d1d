"""
Google Cloud resource kinds: network, subnetwork, GKE cluster, service
account and node pool.

Field names follow the provider's snake_case property names. Nested blocks
are their own dataclasses so a typo in a block is caught at graph build
instead of by the provider.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from typing import ClassVar

from stackweave.core.node import (
    ArgsStruct,
    Input,
    ResourceArgs,
    check_choice,
    check_cidr,
    check_required,
    check_type,
    is_literal,
)

DATAPATH_PROVIDERS = ("DATAPATH_PROVIDER_UNSPECIFIED", "LEGACY_DATAPATH", "ADVANCED_DATAPATH")
NETWORKING_MODES = ("ROUTES", "VPC_NATIVE")
RELEASE_CHANNELS = ("UNSPECIFIED", "RAPID", "REGULAR", "STABLE", "EXTENDED")
EVALUATION_MODES = ("DISABLED", "PROJECT_SINGLETON_POLICY_ENFORCE")

_ACCOUNT_ID_RE = re.compile(r"^[a-z]([-a-z0-9]*[a-z0-9])$")


# --- Network -------------------------------------------------------------------


@dataclass(kw_only=True)
class NetworkArgs(ResourceArgs):
    """VPC network. Subnetworks are created explicitly unless auto mode is on."""

    KIND: ClassVar[str] = "gcp:compute/network:Network"
    OUTPUTS: ClassVar[tuple[str, ...]] = ("id", "name", "self_link")

    auto_create_subnetworks: Input[bool] = True
    description: Input[str] | None = None
    routing_mode: Input[str] | None = None
    mtu: Input[int] | None = None

    def check(self) -> list[str]:
        problems: list[str] = []
        check_type(problems, "auto_create_subnetworks", self.auto_create_subnetworks, bool)
        check_choice(problems, "routing_mode", self.routing_mode, ("REGIONAL", "GLOBAL"))
        check_type(problems, "mtu", self.mtu, int)
        if is_literal(self.mtu) and isinstance(self.mtu, int) and not 1300 <= self.mtu <= 8896:
            problems.append(f"mtu must be between 1300 and 8896, got {self.mtu}")
        return problems


@dataclass(kw_only=True)
class SubnetworkArgs(ResourceArgs):
    KIND: ClassVar[str] = "gcp:compute/subnetwork:Subnetwork"
    OUTPUTS: ClassVar[tuple[str, ...]] = ("id", "name", "self_link", "gateway_address")

    ip_cidr_range: Input[str]
    network: Input[str]
    private_ip_google_access: Input[bool] = False
    region: Input[str] | None = None
    description: Input[str] | None = None

    def check(self) -> list[str]:
        problems: list[str] = []
        check_required(problems, "ip_cidr_range", self.ip_cidr_range)
        check_cidr(problems, "ip_cidr_range", self.ip_cidr_range)
        check_required(problems, "network", self.network)
        check_type(problems, "private_ip_google_access", self.private_ip_google_access, bool)
        return problems


# --- Cluster -------------------------------------------------------------------


@dataclass(kw_only=True)
class DnsCacheConfig(ArgsStruct):
    enabled: Input[bool] = False

    def check(self) -> list[str]:
        problems: list[str] = []
        check_type(problems, "enabled", self.enabled, bool)
        return problems


@dataclass(kw_only=True)
class AddonsConfig(ArgsStruct):
    dns_cache_config: DnsCacheConfig | None = None


@dataclass(kw_only=True)
class BinaryAuthorization(ArgsStruct):
    evaluation_mode: Input[str] = "DISABLED"

    def check(self) -> list[str]:
        problems: list[str] = []
        check_choice(problems, "evaluation_mode", self.evaluation_mode, EVALUATION_MODES)
        return problems


@dataclass(kw_only=True)
class IpAllocationPolicy(ArgsStruct):
    """Secondary ranges for pods and services; either a full CIDR or a bare ``/N`` size."""

    cluster_ipv4_cidr_block: Input[str] | None = None
    services_ipv4_cidr_block: Input[str] | None = None

    def check(self) -> list[str]:
        problems: list[str] = []
        check_cidr(problems, "cluster_ipv4_cidr_block", self.cluster_ipv4_cidr_block, prefix_only=True)
        check_cidr(problems, "services_ipv4_cidr_block", self.services_ipv4_cidr_block, prefix_only=True)
        return problems


@dataclass(kw_only=True)
class CidrBlock(ArgsStruct):
    cidr_block: Input[str]
    display_name: Input[str] | None = None

    def check(self) -> list[str]:
        problems: list[str] = []
        check_required(problems, "cidr_block", self.cidr_block)
        check_cidr(problems, "cidr_block", self.cidr_block)
        return problems


@dataclass(kw_only=True)
class MasterAuthorizedNetworksConfig(ArgsStruct):
    cidr_blocks: list[CidrBlock] = field(default_factory=list)


@dataclass(kw_only=True)
class PrivateClusterConfig(ArgsStruct):
    enable_private_nodes: Input[bool] = False
    enable_private_endpoint: Input[bool] = False
    master_ipv4_cidr_block: Input[str] | None = None

    def check(self) -> list[str]:
        problems: list[str] = []
        check_type(problems, "enable_private_nodes", self.enable_private_nodes, bool)
        check_type(problems, "enable_private_endpoint", self.enable_private_endpoint, bool)
        block = self.master_ipv4_cidr_block
        check_cidr(problems, "master_ipv4_cidr_block", block)
        if is_literal(block) and isinstance(block, str) and not problems:
            if ipaddress.IPv4Network(block).prefixlen != 28:
                problems.append(f"master_ipv4_cidr_block must be a /28 range, got {block!r}")
        if self.enable_private_nodes is True and block is None:
            problems.append("master_ipv4_cidr_block is required when enable_private_nodes is set")
        return problems


@dataclass(kw_only=True)
class ReleaseChannel(ArgsStruct):
    channel: Input[str] = "UNSPECIFIED"

    def check(self) -> list[str]:
        problems: list[str] = []
        check_choice(problems, "channel", self.channel, RELEASE_CHANNELS)
        return problems


@dataclass(kw_only=True)
class WorkloadIdentityConfig(ArgsStruct):
    workload_pool: Input[str]

    def check(self) -> list[str]:
        problems: list[str] = []
        check_required(problems, "workload_pool", self.workload_pool)
        pool = self.workload_pool
        if is_literal(pool) and isinstance(pool, str) and pool and not pool.endswith(".svc.id.goog"):
            problems.append(f"workload_pool must look like '<project>.svc.id.goog', got {pool!r}")
        return problems


@dataclass(kw_only=True)
class ClusterArgs(ResourceArgs):
    """
    GKE cluster.

    ``network`` and ``subnetwork`` usually reference the network's and the
    subnetwork's ``name`` outputs. With ``networking_mode="VPC_NATIVE"`` an
    ``ip_allocation_policy`` is required.
    """

    KIND: ClassVar[str] = "gcp:container/cluster:Cluster"
    OUTPUTS: ClassVar[tuple[str, ...]] = ("id", "name", "endpoint", "master_auth", "location")

    location: Input[str]
    network: Input[str]
    subnetwork: Input[str] | None = None
    description: Input[str] | None = None
    initial_node_count: Input[int] = 1
    remove_default_node_pool: Input[bool] = False
    datapath_provider: Input[str] | None = None
    networking_mode: Input[str] | None = None
    addons_config: AddonsConfig | None = None
    binary_authorization: BinaryAuthorization | None = None
    ip_allocation_policy: IpAllocationPolicy | None = None
    master_authorized_networks_config: MasterAuthorizedNetworksConfig | None = None
    private_cluster_config: PrivateClusterConfig | None = None
    release_channel: ReleaseChannel | None = None
    workload_identity_config: WorkloadIdentityConfig | None = None

    def check(self) -> list[str]:
        problems: list[str] = []
        check_required(problems, "location", self.location)
        check_required(problems, "network", self.network)
        check_type(problems, "initial_node_count", self.initial_node_count, int)
        if is_literal(self.initial_node_count) and isinstance(self.initial_node_count, int):
            if self.initial_node_count < 1:
                problems.append(f"initial_node_count must be >= 1, got {self.initial_node_count}")
        check_type(problems, "remove_default_node_pool", self.remove_default_node_pool, bool)
        check_choice(problems, "datapath_provider", self.datapath_provider, DATAPATH_PROVIDERS)
        check_choice(problems, "networking_mode", self.networking_mode, NETWORKING_MODES)
        if self.networking_mode == "VPC_NATIVE" and self.ip_allocation_policy is None:
            problems.append("ip_allocation_policy is required when networking_mode is VPC_NATIVE")
        return problems


# --- Service account -------------------------------------------------------------


@dataclass(kw_only=True)
class ServiceAccountArgs(ResourceArgs):
    KIND: ClassVar[str] = "gcp:serviceaccount/account:Account"
    OUTPUTS: ClassVar[tuple[str, ...]] = ("id", "name", "email", "unique_id")

    account_id: Input[str]
    display_name: Input[str] | None = None
    description: Input[str] | None = None

    def check(self) -> list[str]:
        problems: list[str] = []
        check_required(problems, "account_id", self.account_id)
        account_id = self.account_id
        # Derived ids are checked by the provisioner once known
        if is_literal(account_id) and isinstance(account_id, str) and account_id:
            if not 6 <= len(account_id) <= 30:
                problems.append(f"account_id must be 6-30 characters, got {len(account_id)}")
            if not _ACCOUNT_ID_RE.match(account_id):
                problems.append(
                    f"account_id must start with a lowercase letter and contain only "
                    f"lowercase letters, digits and hyphens, got {account_id!r}"
                )
        return problems


# --- Node pool -------------------------------------------------------------------


@dataclass(kw_only=True)
class NodeConfig(ArgsStruct):
    machine_type: Input[str] | None = None
    oauth_scopes: list[Input[str]] = field(default_factory=list)
    service_account: Input[str] | None = None
    labels: dict[str, Input[str]] | None = None


@dataclass(kw_only=True)
class NodePoolArgs(ResourceArgs):
    """Node pool attached to ``cluster`` (usually the cluster's ``id`` output)."""

    KIND: ClassVar[str] = "gcp:container/nodePool:NodePool"
    OUTPUTS: ClassVar[tuple[str, ...]] = ("id", "name", "instance_group_urls")

    cluster: Input[str]
    node_count: Input[int] = 1
    location: Input[str] | None = None
    node_config: NodeConfig | None = None

    def check(self) -> list[str]:
        problems: list[str] = []
        check_required(problems, "cluster", self.cluster)
        check_type(problems, "node_count", self.node_count, int)
        if is_literal(self.node_count) and isinstance(self.node_count, int) and not isinstance(self.node_count, bool):
            if self.node_count < 0:
                problems.append(f"node_count must be >= 0, got {self.node_count}")
        return problems

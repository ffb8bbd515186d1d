"""
Typed argument structs for the resource kinds used by the bundled topologies.
"""

from stackweave.resources.gcp import (
    AddonsConfig,
    BinaryAuthorization,
    CidrBlock,
    ClusterArgs,
    DnsCacheConfig,
    IpAllocationPolicy,
    MasterAuthorizedNetworksConfig,
    NetworkArgs,
    NodeConfig,
    NodePoolArgs,
    PrivateClusterConfig,
    ReleaseChannel,
    ServiceAccountArgs,
    SubnetworkArgs,
    WorkloadIdentityConfig,
)
from stackweave.resources.kubernetes import (
    Container,
    ContainerPort,
    DeploymentArgs,
    DeploymentSpec,
    LabelSelector,
    ObjectMeta,
    PodSpec,
    PodTemplateSpec,
    ProviderArgs,
    ServiceArgs,
    ServicePort,
    ServiceSpec,
)

__all__ = [
    # GCP
    "NetworkArgs",
    "SubnetworkArgs",
    "ClusterArgs",
    "AddonsConfig",
    "DnsCacheConfig",
    "BinaryAuthorization",
    "IpAllocationPolicy",
    "CidrBlock",
    "MasterAuthorizedNetworksConfig",
    "PrivateClusterConfig",
    "ReleaseChannel",
    "WorkloadIdentityConfig",
    "ServiceAccountArgs",
    "NodePoolArgs",
    "NodeConfig",
    # Kubernetes
    "ProviderArgs",
    "ObjectMeta",
    "Container",
    "ContainerPort",
    "PodSpec",
    "PodTemplateSpec",
    "LabelSelector",
    "DeploymentSpec",
    "DeploymentArgs",
    "ServicePort",
    "ServiceSpec",
    "ServiceArgs",
]

"""
GKE topology: a private VPC-native cluster with a dedicated node pool and a
sample nginx app exposed through a LoadBalancer Service.

Provisioning order: network, subnet, cluster, then the node pool service
account and node pool. The Kubernetes provider is built from the cluster
outputs and the Deployment and Service are created through it, alongside the
node pool branch.
"""

from collections.abc import Mapping
from typing import Any

from stackweave.config.loader import Config
from stackweave.core.interpolation import interpolate
from stackweave.core.stack import Stack
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

SUBNET_CIDR = "10.128.0.0/12"
MASTER_CIDR = "10.100.0.0/28"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
APP_LABELS = {"app": "my-app"}

# Literal braces are doubled for str.format
KUBECONFIG_TEMPLATE = """\
apiVersion: v1
clusters:
- cluster:
    certificate-authority-data: {ca_certificate}
    server: https://{endpoint}
  name: {cluster_name}
contexts:
- context:
    cluster: {cluster_name}
    user: {cluster_name}
  name: {cluster_name}
current-context: {cluster_name}
kind: Config
preferences: {{}}
users:
- name: {cluster_name}
  user:
    exec:
      apiVersion: client.authentication.k8s.io/v1beta1
      command: gke-gcloud-auth-plugin
      installHint: Install gke-gcloud-auth-plugin for use with kubectl by following
        https://cloud.google.com/blog/products/containers-kubernetes/kubectl-auth-changes-in-gke
      provideClusterInfo: true
"""


def declare_gke_stack(config: Config | Mapping[str, Any]) -> Stack:
    """
    Declare the GKE stack from configuration.

    Reads ``gcp.project`` (required), ``gcp.region``, ``nodes_per_zone``,
    ``app.replicas`` and ``app.image``.

    Raises:
        ConfigurationError: If ``gcp.project`` is not set
    """
    if not isinstance(config, Config):
        config = Config(dict(config))

    project = config.require("gcp.project")
    region = config.get("gcp.region", "us-central1")
    nodes_per_zone = config.get("nodes_per_zone", 1)

    stack = Stack(config.get("name", "my-k8s-cluster"))

    network = stack.declare(
        "gke-network",
        NetworkArgs(
            auto_create_subnetworks=False,
            description="A virtual network for your GKE cluster(s)",
        ),
    )

    subnet = stack.declare(
        "gke-subnet",
        SubnetworkArgs(
            ip_cidr_range=SUBNET_CIDR,
            network=network.output("id"),
            private_ip_google_access=True,
        ),
    )

    cluster = stack.declare(
        "gke-cluster",
        ClusterArgs(
            addons_config=AddonsConfig(dns_cache_config=DnsCacheConfig(enabled=True)),
            binary_authorization=BinaryAuthorization(evaluation_mode="PROJECT_SINGLETON_POLICY_ENFORCE"),
            datapath_provider="ADVANCED_DATAPATH",
            description="A GKE cluster",
            initial_node_count=1,
            ip_allocation_policy=IpAllocationPolicy(
                cluster_ipv4_cidr_block="/14",
                services_ipv4_cidr_block="/20",
            ),
            location=region,
            master_authorized_networks_config=MasterAuthorizedNetworksConfig(
                cidr_blocks=[CidrBlock(cidr_block="0.0.0.0/0", display_name="All networks")],
            ),
            network=network.output("name"),
            networking_mode="VPC_NATIVE",
            private_cluster_config=PrivateClusterConfig(
                enable_private_nodes=True,
                enable_private_endpoint=False,
                master_ipv4_cidr_block=MASTER_CIDR,
            ),
            remove_default_node_pool=True,
            release_channel=ReleaseChannel(channel="STABLE"),
            subnetwork=subnet.output("name"),
            workload_identity_config=WorkloadIdentityConfig(workload_pool=f"{project}.svc.id.goog"),
        ),
    )

    nodepool_sa = stack.declare(
        "gke-nodepool-sa",
        ServiceAccountArgs(
            account_id=interpolate("{cluster_name}-np-1-sa", cluster_name=cluster.output("name")),
            display_name="Nodepool 1 Service Account",
        ),
    )

    stack.declare(
        "gke-nodepool",
        NodePoolArgs(
            cluster=cluster.output("id"),
            node_count=nodes_per_zone,
            node_config=NodeConfig(
                oauth_scopes=[CLOUD_PLATFORM_SCOPE],
                service_account=nodepool_sa.output("email"),
            ),
        ),
    )

    kubeconfig = interpolate(
        KUBECONFIG_TEMPLATE,
        ca_certificate=cluster.output("master_auth")["cluster_ca_certificate"],
        endpoint=cluster.output("endpoint"),
        cluster_name=cluster.output("name"),
    )

    k8s_provider = stack.declare("gke-k8s-provider", ProviderArgs(kubeconfig=kubeconfig))

    stack.declare(
        "app-deployment",
        DeploymentArgs(
            metadata=ObjectMeta(labels=dict(APP_LABELS)),
            spec=DeploymentSpec(
                replicas=config.get("app.replicas", 2),
                selector=LabelSelector(match_labels=dict(APP_LABELS)),
                template=PodTemplateSpec(
                    metadata=ObjectMeta(labels=dict(APP_LABELS)),
                    spec=PodSpec(
                        containers=[
                            Container(
                                name="nginx",
                                image=config.get("app.image", "nginx:latest"),
                                ports=[ContainerPort(container_port=80)],
                            )
                        ]
                    ),
                ),
            ),
        ),
        provider=k8s_provider,
    )

    app_service = stack.declare(
        "app-service",
        ServiceArgs(
            metadata=ObjectMeta(name="app-service"),
            spec=ServiceSpec(
                selector=dict(APP_LABELS),
                ports=[ServicePort(port=80, target_port=80)],
                type="LoadBalancer",
            ),
        ),
        provider=k8s_provider,
    )

    stack.export("network_name", network.output("name"))
    stack.export("network_id", network.output("id"))
    stack.export("cluster_name", cluster.output("name"))
    stack.export("cluster_id", cluster.output("id"))
    stack.export("kubeconfig", kubeconfig)
    # First ingress entry only; an empty ingress list fails this export
    stack.export("external_ip", app_service.output("status")["load_balancer"]["ingress"][0]["ip"])

    return stack

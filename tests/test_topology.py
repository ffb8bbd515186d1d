"""
Tests for the GKE topology, executed end to end against in-memory and
local-state provisioners.
"""

import pytest

from stackweave.config.loader import Config
from stackweave.core.executor import execute_stack
from stackweave.core.run import NodeStatus, RunStatus
from stackweave.exceptions import ConfigurationError
from stackweave.provisioners import LocalStateProvisioner, PreviewProvisioner
from stackweave.resources import ClusterArgs, ServiceAccountArgs
from stackweave.testing import FakeProvisioner
from stackweave.topology.gke import CLOUD_PLATFORM_SCOPE, SUBNET_CIDR, declare_gke_stack

CONFIG = {"gcp": {"project": "demo-project", "region": "us-central1"}}

EXPECTED_ORDER = [
    "gke-network",
    "gke-subnet",
    "gke-cluster",
    "gke-nodepool-sa",
    "gke-nodepool",
    "gke-k8s-provider",
    "app-deployment",
    "app-service",
]

DOWNSTREAM_OF_CLUSTER = ["gke-nodepool-sa", "gke-nodepool", "gke-k8s-provider", "app-deployment", "app-service"]


def _properties(provisioner: FakeProvisioner, name: str) -> dict:
    return next(call.properties for call in provisioner.calls if call.name == name)


class TestDeclaration:
    """Tests for the declared stack, before anything runs."""

    @pytest.mark.unit
    def test_resources_and_order(self):
        stack = declare_gke_stack(CONFIG)
        graph = stack.build_graph()
        assert graph.topological_sort() == EXPECTED_ORDER
        assert stack.name == "my-k8s-cluster"
        assert list(stack.exports) == [
            "network_name",
            "network_id",
            "cluster_name",
            "cluster_id",
            "kubeconfig",
            "external_ip",
        ]

    @pytest.mark.unit
    def test_edges(self):
        graph = declare_gke_stack(CONFIG).build_graph()
        assert graph.get_dependencies("gke-subnet") == ["gke-network"]
        assert graph.get_dependencies("gke-cluster") == ["gke-network", "gke-subnet"]
        assert graph.get_dependencies("gke-nodepool") == ["gke-cluster", "gke-nodepool-sa"]
        assert graph.get_explicit_dependencies("app-service") == ["gke-k8s-provider"]
        assert graph.get_layers()["app-service"] == 4

    @pytest.mark.unit
    def test_missing_project(self):
        with pytest.raises(ConfigurationError, match="Missing required configuration value 'gcp.project'"):
            declare_gke_stack({})

    @pytest.mark.unit
    def test_accepts_config_object(self):
        config = Config({"name": "edge", "gcp": {"project": "demo-project"}, "nodes_per_zone": 2})
        stack = declare_gke_stack(config)
        assert stack.name == "edge"
        assert stack["gke-nodepool"].args.node_count == 2
        assert isinstance(stack["gke-cluster"].args, ClusterArgs)
        assert isinstance(stack["gke-nodepool-sa"].args, ServiceAccountArgs)


class TestExecution:
    """Tests for provisioning the whole stack."""

    @pytest.mark.asyncio
    async def test_full_run(self):
        provisioner = FakeProvisioner()
        report = await execute_stack(declare_gke_stack(CONFIG), provisioner)

        assert report.status == RunStatus.COMPLETED
        assert report.succeeded
        assert [o.name for o in report.outcomes] == EXPECTED_ORDER
        assert sorted(provisioner.call_names) == sorted(EXPECTED_ORDER)

        order = report.dispatch_order
        assert order[:3] == ["gke-network", "gke-subnet", "gke-cluster"]
        assert order.index("gke-nodepool-sa") < order.index("gke-nodepool")
        assert order.index("gke-k8s-provider") < order.index("app-deployment")
        assert order.index("gke-k8s-provider") < order.index("app-service")

    @pytest.mark.asyncio
    async def test_outputs_flow_into_inputs(self):
        provisioner = FakeProvisioner()
        report = await execute_stack(declare_gke_stack(CONFIG), provisioner)

        network = report["gke-network"].outputs
        subnet_props = _properties(provisioner, "gke-subnet")
        assert subnet_props == {
            "ip_cidr_range": SUBNET_CIDR,
            "network": network["id"],
            "private_ip_google_access": True,
        }

        cluster = report["gke-cluster"].outputs
        assert _properties(provisioner, "gke-cluster")["subnetwork"] == report["gke-subnet"].outputs["name"]
        assert _properties(provisioner, "gke-nodepool-sa")["account_id"] == f"{cluster['name']}-np-1-sa"

        nodepool_props = _properties(provisioner, "gke-nodepool")
        assert nodepool_props["cluster"] == cluster["id"]
        assert nodepool_props["node_config"] == {
            "oauth_scopes": [CLOUD_PLATFORM_SCOPE],
            "service_account": report["gke-nodepool-sa"].outputs["email"],
        }

    @pytest.mark.asyncio
    async def test_exports(self):
        report = await execute_stack(declare_gke_stack(CONFIG), FakeProvisioner())
        cluster = report["gke-cluster"].outputs

        assert report.export_errors == {}
        assert report.exports["network_id"] == report["gke-network"].outputs["id"]
        assert report.exports["cluster_name"] == cluster["name"]

        kubeconfig = report.exports["kubeconfig"]
        assert f"server: https://{cluster['endpoint']}" in kubeconfig
        assert f"certificate-authority-data: {cluster['master_auth']['cluster_ca_certificate']}" in kubeconfig
        assert f"current-context: {cluster['name']}" in kubeconfig
        assert "preferences: {}" in kubeconfig

        ingress = report["app-service"].outputs["status"]["load_balancer"]["ingress"]
        assert report.exports["external_ip"] == ingress[0]["ip"]

    @pytest.mark.asyncio
    async def test_kubeconfig_reaches_provider(self):
        provisioner = FakeProvisioner()
        report = await execute_stack(declare_gke_stack(CONFIG), provisioner)
        assert _properties(provisioner, "gke-k8s-provider") == {"kubeconfig": report.exports["kubeconfig"]}

    @pytest.mark.asyncio
    async def test_cluster_failure_skips_downstream(self):
        provisioner = FakeProvisioner(fail={"gke-cluster": "quota exceeded"})
        report = await execute_stack(declare_gke_stack(CONFIG), provisioner)

        assert report.status == RunStatus.FAILED
        assert report.names_with_status(NodeStatus.SUCCESS) == ["gke-network", "gke-subnet"]
        assert report.names_with_status(NodeStatus.FAILED) == ["gke-cluster"]
        assert report.names_with_status(NodeStatus.SKIPPED) == DOWNSTREAM_OF_CLUSTER
        assert report["gke-cluster"].error == "Resource 'gke-cluster' failed: quota exceeded"
        for name in DOWNSTREAM_OF_CLUSTER:
            assert report[name].skipped_reason == "dependency 'gke-cluster' failed"
        assert sorted(provisioner.call_names) == ["gke-cluster", "gke-network", "gke-subnet"]

        assert set(report.exports) == {"network_name", "network_id"}
        assert set(report.export_errors) == {"cluster_name", "cluster_id", "kubeconfig", "external_ip"}

    @pytest.mark.asyncio
    async def test_service_without_ingress_fails_export_only(self):
        provisioner = FakeProvisioner(outputs={"app-service": {"status": {"load_balancer": {"ingress": []}}}})
        report = await execute_stack(declare_gke_stack(CONFIG), provisioner)
        assert report.succeeded
        assert "external_ip" in report.export_errors
        assert "kubeconfig" in report.exports

    @pytest.mark.asyncio
    async def test_targets_limit_the_run(self):
        provisioner = FakeProvisioner()
        report = await execute_stack(declare_gke_stack(CONFIG), provisioner, targets=["gke-cluster"])
        assert [o.name for o in report.outcomes] == ["gke-network", "gke-subnet", "gke-cluster"]
        assert report.exports["cluster_name"] == report["gke-cluster"].outputs["name"]
        assert "external_ip" in report.export_errors


class TestProvisioners:
    """Tests for the stack against the bundled provisioners."""

    @pytest.mark.asyncio
    async def test_local_state_is_idempotent(self, tmp_path):
        path = tmp_path / "state.yaml"
        first = await execute_stack(declare_gke_stack(CONFIG), LocalStateProvisioner(path, project="demo-project"))
        second = await execute_stack(declare_gke_stack(CONFIG), LocalStateProvisioner(path, project="demo-project"))

        assert first.succeeded and second.succeeded
        assert first.records() == second.records()
        assert first.exports == second.exports
        assert sorted(LocalStateProvisioner(path, project="demo-project").resources) == sorted(EXPECTED_ORDER)

    @pytest.mark.asyncio
    async def test_preview(self):
        provisioner = PreviewProvisioner(project="demo-project")
        report = await execute_stack(declare_gke_stack(CONFIG), provisioner, {"executor": {"max_concurrency": 2}})
        assert report.succeeded
        assert report.exports["cluster_name"] == "<computed:gke-cluster.name>"
        assert report.exports["external_ip"] == "<computed:app-service.status.load_balancer.ingress[0].ip>"
        assert [name for _kind, name in provisioner.planned][:3] == ["gke-network", "gke-subnet", "gke-cluster"]

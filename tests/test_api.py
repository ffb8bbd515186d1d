"""
Tests for the programmatic API and startup initialization.
"""

import asyncio

import pytest

from stackweave.core.api import make_provisioner, up
from stackweave.core.initialization import StackweaveInitializer, initialize
from stackweave.core.run import NodeStatus, RunStatus
from stackweave.exceptions import ConfigurationError, InitializationError
from stackweave.provisioners import LocalStateProvisioner, PreviewProvisioner
from stackweave.testing import FakeProvisioner

CONFIG_YAML = """\
name: api-test
gcp:
  project: demo-project
logging:
  console_enabled: false
"""


@pytest.fixture
def project(tmp_path):
    (tmp_path / "config.yaml").write_text(CONFIG_YAML)
    return tmp_path


class TestInitialize:
    """Tests for the startup sequence."""

    def test_initialize(self, project):
        config, stack, graph = initialize(project)
        assert config.get("gcp.project") == "demo-project"
        assert stack.name == "api-test"
        assert len(graph) == 8

    def test_env_from_environment(self, project, monkeypatch):
        monkeypatch.setenv("STACKWEAVE_ENV", "prod")
        (project / "config.prod.yaml").write_text("nodes_per_zone: 3\n")
        config, stack, _graph = initialize(project)
        assert config.get("nodes_per_zone") == 3
        assert stack["gke-nodepool"].args.node_count == 3

    def test_explicit_env_wins(self, project, monkeypatch):
        monkeypatch.setenv("STACKWEAVE_ENV", "prod")
        assert StackweaveInitializer(project, env="staging").env == "staging"

    def test_invalid_config_propagates(self, tmp_path):
        (tmp_path / "config.yaml").write_text("gcp: {}\n")
        with pytest.raises(ConfigurationError, match="'gcp.project' is required"):
            initialize(tmp_path)

    def test_config_path_must_be_a_file(self, tmp_path):
        (tmp_path / "config.yaml").mkdir()
        with pytest.raises(ConfigurationError, match="Configuration file not found"):
            initialize(tmp_path)

    def test_unexpected_error_is_initialization_error(self, project, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr("stackweave.core.initialization.load_config", explode)
        with pytest.raises(InitializationError, match="Unexpected error loading config: disk on fire"):
            initialize(project)

    def test_log_file(self, tmp_path):
        (tmp_path / "config.yaml").write_text(CONFIG_YAML + "  file: logs/stackweave.log\n")
        initialize(tmp_path, verbose=True)
        assert (tmp_path / "logs" / "stackweave.log").exists()


class TestMakeProvisioner:
    def test_local_state_relative_to_project(self, project):
        config, _stack, _graph = initialize(project)
        provisioner = make_provisioner(config, project)
        assert isinstance(provisioner, LocalStateProvisioner)
        assert provisioner.path == project / ".stackweave" / "state.yaml"
        assert provisioner.project == "demo-project"

    def test_preview(self, project):
        config, _stack, _graph = initialize(project)
        assert isinstance(make_provisioner(config, project, preview=True), PreviewProvisioner)


class TestUp:
    """Tests for the up() entry point."""

    def test_sync_call(self, project):
        report = up(project, provisioner=FakeProvisioner())
        assert report.status == RunStatus.COMPLETED
        assert report.stack == "api-test"
        assert "external_ip" in report.exports

    @pytest.mark.asyncio
    async def test_async_call(self, project):
        provisioner = FakeProvisioner(fail={"gke-nodepool": "zone exhausted"})
        report = await up(project, provisioner=provisioner)
        assert report.status == RunStatus.FAILED
        assert report.names_with_status(NodeStatus.FAILED) == ["gke-nodepool"]
        assert report.names_with_status(NodeStatus.SKIPPED) == []

    @pytest.mark.asyncio
    async def test_targets(self, project):
        report = await up(project, provisioner=FakeProvisioner(), targets=["gke-subnet"])
        assert [o.name for o in report.outcomes] == ["gke-network", "gke-subnet"]

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, project):
        cancel = asyncio.Event()
        cancel.set()
        provisioner = FakeProvisioner()
        report = await up(project, provisioner=provisioner, cancel_event=cancel)
        assert report.status == RunStatus.CANCELLED
        assert provisioner.calls == []
        assert {o.skipped_reason for o in report.outcomes} == {"cancelled"}

    def test_preview_run(self, project):
        report = up(project, preview=True)
        assert report.succeeded
        assert report.exports["network_name"] == "<computed:gke-network.name>"
        assert not (project / ".stackweave").exists()

    def test_local_state_run(self, project):
        report = up(project)
        assert report.succeeded
        assert (project / ".stackweave" / "state.yaml").exists()

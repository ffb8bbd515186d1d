"""
Tests for the exception hierarchy.
"""

import pytest

from stackweave.exceptions import (
    CellStateError,
    ConfigurationError,
    ExecutionError,
    InitializationError,
    InterpolationError,
    ProvisioningError,
    RetryError,
    StackweaveError,
    TransientProvisioningError,
)


class TestHierarchy:
    """Verify all exceptions inherit from StackweaveError."""

    @pytest.mark.parametrize(
        "exc_class",
        [
            ConfigurationError,
            ExecutionError,
            ProvisioningError,
            TransientProvisioningError,
            InterpolationError,
            CellStateError,
            RetryError,
            InitializationError,
        ],
    )
    def test_inherits_from_stackweave_error(self, exc_class):
        assert issubclass(exc_class, StackweaveError)

    def test_provisioning_inherits_execution(self):
        assert issubclass(ProvisioningError, ExecutionError)

    def test_transient_inherits_provisioning(self):
        assert issubclass(TransientProvisioningError, ProvisioningError)


class TestExceptionMessages:
    """Test exception constructors and details."""

    def test_stackweave_error(self):
        e = StackweaveError("boom", details={"key": "val"})
        assert str(e) == "boom"
        assert e.message == "boom"
        assert e.details == {"key": "val"}

    def test_default_details(self):
        assert StackweaveError("boom").details == {}

    def test_configuration_error_nodes(self):
        e = ConfigurationError("Circular dependencies detected", nodes=["a", "b"], details={"cycles": [["a", "b"]]})
        assert e.nodes == ["a", "b"]
        assert e.details == {"cycles": [["a", "b"]], "nodes": ["a", "b"]}

    def test_configuration_error_without_nodes(self):
        e = ConfigurationError("bad")
        assert e.nodes == []
        assert "nodes" not in e.details

    def test_provisioning_error(self):
        cause = TimeoutError("read timed out")
        e = ProvisioningError("gke-cluster", "quota exceeded", cause=cause)
        assert str(e) == "Resource 'gke-cluster' failed: quota exceeded"
        assert e.node_name == "gke-cluster"
        assert e.reason == "quota exceeded"
        assert e.transient is False
        assert e.__cause__ is cause
        assert e.details == {"node": "gke-cluster", "transient": False}

    def test_transient_provisioning_error(self):
        e = TransientProvisioningError("gke-network", "503 backend error")
        assert e.transient is True
        assert e.details["transient"] is True
        assert "gke-network" in str(e)

    def test_catch_all(self):
        with pytest.raises(StackweaveError):
            raise InterpolationError("Cannot render interpolation")

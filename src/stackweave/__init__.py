"""
Stackweave - declarative resource graphs, provisioned in dependency order.

Resources are declared with typed arguments that may reference each other's
outputs; the graph builder derives the dependency edges and the executor
provisions independent branches concurrently.
"""

__version__ = "0.1.0"

# Core exports
from stackweave.core.cells import Ref, ValueCell
from stackweave.core.executor import Executor, execute_stack, run_sync
from stackweave.core.graph import ResourceGraph, build_graph, derive_edges
from stackweave.core.interpolation import Interpolation, interpolate
from stackweave.core.node import GenericArgs, ResourceArgs, ResourceNode
from stackweave.core.provisioner import Provisioner
from stackweave.core.run import NodeStatus, RunReport, RunStatus
from stackweave.core.stack import Stack

# Programmatic API
from stackweave.core.api import up

# Exceptions
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

# Logging utilities
from stackweave.utils.logging import get_logger, setup_logging, setup_logging_from_config

__all__ = [
    # Declaration
    "Stack",
    "ResourceNode",
    "ResourceArgs",
    "GenericArgs",
    "Ref",
    "ValueCell",
    "Interpolation",
    "interpolate",
    # Graph and execution
    "ResourceGraph",
    "build_graph",
    "derive_edges",
    "Executor",
    "Provisioner",
    "execute_stack",
    "run_sync",
    "up",
    "NodeStatus",
    "RunStatus",
    "RunReport",
    # Logging
    "setup_logging",
    "setup_logging_from_config",
    "get_logger",
    # Exceptions
    "StackweaveError",
    "ConfigurationError",
    "ExecutionError",
    "ProvisioningError",
    "TransientProvisioningError",
    "InterpolationError",
    "CellStateError",
    "RetryError",
    "InitializationError",
]

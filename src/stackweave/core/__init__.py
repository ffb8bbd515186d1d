"""
Core resource-graph evaluator: value cells, nodes, graph builder and executor.
"""

from stackweave.core.cells import CellState, Ref, ValueCell
from stackweave.core.executor import Executor, execute_stack, run_sync
from stackweave.core.graph import ResourceGraph, build_graph, derive_edges
from stackweave.core.interpolation import DerivedCell, Interpolation, interpolate
from stackweave.core.node import GenericArgs, ResourceArgs, ResourceNode
from stackweave.core.provisioner import Provisioner
from stackweave.core.run import NodeOutcome, NodeStatus, RunReport, RunStatus
from stackweave.core.stack import Stack

__all__ = [
    "CellState",
    "ValueCell",
    "Ref",
    "DerivedCell",
    "Interpolation",
    "interpolate",
    "ResourceArgs",
    "GenericArgs",
    "ResourceNode",
    "ResourceGraph",
    "build_graph",
    "derive_edges",
    "Stack",
    "Provisioner",
    "Executor",
    "execute_stack",
    "run_sync",
    "NodeStatus",
    "NodeOutcome",
    "RunStatus",
    "RunReport",
]

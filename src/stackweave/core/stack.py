"""
Stack: an explicit collection of declared resources and named exports.
"""

from __future__ import annotations

from typing import Any

from stackweave.core.cells import iter_references, resolve_value
from stackweave.core.graph import ResourceGraph, build_graph, check_value_references
from stackweave.core.node import ResourceArgs, ResourceNode
from stackweave.exceptions import ConfigurationError, InterpolationError


class Stack:
    """
    Declared resources of one deployment plus the values it exports.

    A Stack is an ordinary value: build one per run and pass it to the graph
    builder or the executor.

    Example:
        >>> stack = Stack("demo")
        >>> network = stack.declare("net", NetworkArgs(auto_create_subnetworks=False))
        >>> stack.export("network_id", network.output("id"))
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._nodes: dict[str, ResourceNode] = {}
        self.exports: dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"Stack({self.name!r}, resources={len(self._nodes)})"

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, name: str) -> bool:
        return name in self._nodes

    def __getitem__(self, name: str) -> ResourceNode:
        return self._nodes[name]

    @property
    def nodes(self) -> list[ResourceNode]:
        return list(self._nodes.values())

    def add(self, node: ResourceNode) -> ResourceNode:
        """Add an already constructed node."""
        existing = self._nodes.get(node.name)
        if existing is not None and existing is not node:
            raise ConfigurationError(f"Resource '{node.name}' is already declared in stack '{self.name}'", nodes=[node.name])
        self._nodes[node.name] = node
        return node

    def declare(
        self,
        name: str,
        args: ResourceArgs,
        *,
        depends_on: list[ResourceNode | str] | None = None,
        provider: ResourceNode | None = None,
    ) -> ResourceNode:
        """Create a node and add it to the stack."""
        return self.add(ResourceNode(name, args, depends_on=depends_on, provider=provider))

    def export(self, name: str, value: Any) -> None:
        """Publish a value (literal, Ref or Interpolation) under ``name``."""
        if name in self.exports:
            raise ConfigurationError(f"Export '{name}' is already defined in stack '{self.name}'")
        self.exports[name] = value

    def build_graph(self) -> ResourceGraph:
        """
        Build the validated dependency graph and check export references.

        Raises:
            ConfigurationError: If the declarations are invalid
        """
        graph = build_graph(self.nodes)
        for export_name, value in self.exports.items():
            check_value_references(f"export:{export_name}", iter_references(value), self._nodes)
        return graph

    def resolve_exports(self) -> tuple[dict[str, Any], dict[str, str]]:
        """
        Resolve exports after a run.

        Returns:
            Tuple of (values, errors); an export whose sources failed or never
            ran appears in ``errors`` with the reason instead of in ``values``
        """
        values: dict[str, Any] = {}
        errors: dict[str, str] = {}
        for export_name, value in self.exports.items():
            try:
                values[export_name] = resolve_value(value)
            except InterpolationError as e:
                errors[export_name] = e.message
        return values, errors

"""
Dependency graph building and management.

Edges come from two places: references inside a node's arguments (data
edges) and ``depends_on`` / ``provider`` declarations (explicit edges). Both
constrain execution order the same way.
"""

from __future__ import annotations

import heapq
from collections import defaultdict
from collections.abc import Iterable

from stackweave.core.cells import Ref
from stackweave.core.node import ResourceNode
from stackweave.exceptions import ConfigurationError


def derive_edges(nodes: Iterable[ResourceNode]) -> dict[str, list[str]]:
    """
    Derive data edges from argument references.

    Pure function over the declared nodes: maps each node name to the names of
    the nodes whose outputs it references, in first-reference order.
    """
    edges: dict[str, list[str]] = {}
    for node in nodes:
        deps: list[str] = []
        for ref in node.references():
            if ref.node not in deps:
                deps.append(ref.node)
        edges[node.name] = deps
    return edges


class ResourceGraph:
    """Directed acyclic graph of resource dependencies, in declaration order."""

    def __init__(self) -> None:
        self.nodes: dict[str, ResourceNode] = {}
        self._graph: dict[str, list[str]] = {}  # node -> dependencies
        self._reverse: dict[str, list[str]] = defaultdict(list)  # node -> dependents
        self._data_edges: dict[str, list[str]] = {}
        self._explicit_edges: dict[str, list[str]] = {}

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, name: str) -> bool:
        return name in self.nodes

    @property
    def node_names(self) -> list[str]:
        return list(self.nodes)

    def add_node(
        self,
        node: ResourceNode,
        data_dependencies: list[str] | None = None,
        explicit_dependencies: list[str] | None = None,
    ) -> None:
        """Add a node and its dependencies to the graph."""
        data_dependencies = list(data_dependencies or [])
        explicit_dependencies = list(explicit_dependencies or [])

        # Remove stale reverse edges from previous dependencies
        for old_dep in self._graph.get(node.name, []):
            if node.name in self._reverse[old_dep]:
                self._reverse[old_dep].remove(node.name)

        merged = list(data_dependencies)
        merged.extend(dep for dep in explicit_dependencies if dep not in merged)

        self.nodes[node.name] = node
        self._graph[node.name] = merged
        self._data_edges[node.name] = data_dependencies
        self._explicit_edges[node.name] = explicit_dependencies

        for dep in merged:
            if node.name not in self._reverse[dep]:
                self._reverse[dep].append(node.name)

    def get_dependencies(self, name: str) -> list[str]:
        """Get direct dependencies of a node (data and explicit)."""
        return list(self._graph.get(name, []))

    def get_data_dependencies(self, name: str) -> list[str]:
        return list(self._data_edges.get(name, []))

    def get_explicit_dependencies(self, name: str) -> list[str]:
        return list(self._explicit_edges.get(name, []))

    def get_dependents(self, name: str) -> list[str]:
        """Get dependents (nodes that depend on this one)."""
        return list(self._reverse.get(name, []))

    def transitive_dependents(self, name: str) -> list[str]:
        """Every node reachable from ``name`` through dependent edges, in declaration order."""
        seen: set[str] = set()
        stack = list(self._reverse.get(name, []))
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._reverse.get(current, []))
        return [n for n in self.nodes if n in seen]

    def transitive_dependencies(self, name: str) -> list[str]:
        """Every node ``name`` needs, directly or indirectly, in declaration order."""
        seen: set[str] = set()
        stack = list(self._graph.get(name, []))
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._graph.get(current, []))
        return [n for n in self.nodes if n in seen]

    def topological_sort(self) -> list[str]:
        """
        Topological sort of nodes by dependencies.

        Kahn's algorithm; among nodes that are ready at the same time, the one
        declared first comes first, so the order is deterministic.
        """
        index = {name: i for i, name in enumerate(self.nodes)}
        in_degree = {name: sum(1 for dep in self._graph[name] if dep in self.nodes) for name in self.nodes}

        ready = [(index[name], name) for name, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        result = []

        while ready:
            _, name = heapq.heappop(ready)
            result.append(name)
            for dependent in self._reverse.get(name, []):
                if dependent in in_degree:
                    in_degree[dependent] -= 1
                    if in_degree[dependent] == 0:
                        heapq.heappush(ready, (index[dependent], dependent))

        return result

    def detect_cycles(self) -> list[list[str]]:
        """
        Detect cycles in the dependency graph.

        Uses DFS with a recursion-stack marker. Each cycle is reported as a
        path that starts and ends with the same node.
        """
        visited: set[str] = set()
        rec_stack: set[str] = set()
        cycles: list[list[str]] = []
        path: list[str] = []

        def dfs(node: str) -> None:
            visited.add(node)
            rec_stack.add(node)
            path.append(node)

            for neighbor in self._graph.get(node, []):
                if neighbor not in visited:
                    dfs(neighbor)
                elif neighbor in rec_stack:
                    cycle_start = path.index(neighbor)
                    cycles.append(path[cycle_start:] + [neighbor])

            rec_stack.remove(node)
            path.pop()

        for node in self._graph:
            if node not in visited:
                dfs(node)

        return cycles

    def get_layers(self) -> dict[str, int]:
        """
        Get layer (execution level) for each node.

        Returns a dictionary mapping node name -> layer number (0-based).
        Nodes in the same layer have no dependencies on each other.
        """
        layers: dict[str, int] = {}
        for name in self.topological_sort():
            deps = [d for d in self._graph[name] if d in layers]
            layers[name] = 1 + max(layers[d] for d in deps) if deps else 0
        return layers

    def visualize_layers(self) -> str:
        """
        Visualize dependency graph as layers (execution levels).

        Nodes in the same layer are joined with ``──``.
        """
        grouped: dict[int, list[str]] = defaultdict(list)
        for name, layer in self.get_layers().items():
            grouped[layer].append(name)

        lines = []
        for layer_num in sorted(grouped):
            lines.append(f"Layer {layer_num}: {' ── '.join(grouped[layer_num])}")
        return "\n".join(lines)

    def visualize_tree(self, root: str | None = None) -> str:
        """
        Visualize dependency graph as a tree starting from root nodes (no dependencies).

        Shows dependents with tree branches (│, ├─, └─).
        """
        if root:
            roots = [root] if root in self.nodes else []
        else:
            roots = [n for n, deps in self._graph.items() if not deps]

        if not roots:
            return "No root resources found"

        lines: list[str] = []

        def build_tree(name: str, prefix: str = "", is_last: bool = True, visited: frozenset[str] = frozenset()) -> None:
            branch = "└─ " if is_last else "├─ "
            if name in visited:
                lines.append(f"{prefix}{branch}{name} (cyclic reference)")
                return
            kind = self.nodes[name].kind if name in self.nodes else "?"
            lines.append(f"{prefix}{branch}{name} [{kind}]")

            dependents = self.get_dependents(name)
            extension = "   " if is_last else "│  "
            for i, dep in enumerate(dependents):
                build_tree(dep, prefix + extension, i == len(dependents) - 1, visited | {name})

        for i, root_name in enumerate(roots):
            if i > 0:
                lines.append("")
            build_tree(root_name)

        return "\n".join(lines)

    def subgraph(self, targets: Iterable[str]) -> ResourceGraph:
        """
        Graph restricted to ``targets`` and everything they depend on.

        Raises:
            ConfigurationError: If a target is not in the graph
        """
        targets = list(targets)
        unknown = [t for t in targets if t not in self.nodes]
        if unknown:
            raise ConfigurationError(f"Unknown target resources: {', '.join(unknown)}", nodes=unknown)

        keep: set[str] = set(targets)
        for target in targets:
            keep.update(self.transitive_dependencies(target))

        sub = ResourceGraph()
        for name, node in self.nodes.items():
            if name in keep:
                sub.add_node(node, self._data_edges[name], self._explicit_edges[name])
        return sub


def build_graph(nodes: Iterable[ResourceNode]) -> ResourceGraph:
    """
    Build and validate the dependency graph for a set of declared nodes.

    Raises:
        ConfigurationError: On duplicate names, invalid arguments, references
            to undeclared resources, or dependency cycles
    """
    nodes = list(nodes)

    by_name: dict[str, ResourceNode] = {}
    duplicates = []
    for node in nodes:
        if node.name in by_name and by_name[node.name] is not node:
            duplicates.append(node.name)
        by_name[node.name] = node
    if duplicates:
        raise ConfigurationError(f"Duplicate resource names: {', '.join(duplicates)}", nodes=duplicates)
    nodes = list(by_name.values())

    problems = []
    invalid = []
    for node in nodes:
        node_problems = node.validate()
        if node_problems:
            invalid.append(node.name)
            problems.extend(f"{node.name}: {p}" for p in node_problems)
    if problems:
        raise ConfigurationError(
            "Invalid resource arguments:\n  " + "\n  ".join(problems), nodes=invalid, details={"problems": problems}
        )

    data_edges = derive_edges(nodes)
    check_references(nodes, by_name)

    graph = ResourceGraph()
    for node in nodes:
        explicit = node.explicit_dependencies()
        dangling = [dep for dep in explicit if dep not in by_name]
        if dangling:
            raise ConfigurationError(
                f"Resource '{node.name}' depends on undeclared resources: {', '.join(dangling)}",
                nodes=[node.name, *dangling],
            )
        graph.add_node(node, data_edges[node.name], explicit)

    cycles = graph.detect_cycles()
    if cycles:
        involved: list[str] = []
        for cycle in cycles:
            involved.extend(n for n in cycle if n not in involved)
        rendered = "; ".join(" -> ".join(cycle) for cycle in cycles)
        raise ConfigurationError(
            f"Circular dependencies detected: {rendered}",
            nodes=involved,
            details={"cycles": cycles},
        )

    return graph


def check_references(nodes: Iterable[ResourceNode], by_name: dict[str, ResourceNode]) -> None:
    """
    Ensure every reference points at an output of a node in ``by_name``.

    A reference whose node shares a name with a declared node but belongs to a
    different node object is rejected too.
    """
    for node in nodes:
        for ref in node.references():
            _check_ref(ref, by_name, node.name)


def check_value_references(owner: str, refs: Iterable[Ref], by_name: dict[str, ResourceNode]) -> None:
    """Same as ``check_references`` for values that are not resource arguments (exports)."""
    for ref in refs:
        _check_ref(ref, by_name, owner)


def _check_ref(ref: Ref, by_name: dict[str, ResourceNode], owner: str) -> None:
    target = by_name.get(ref.node)
    if target is None:
        raise ConfigurationError(
            f"'{owner}' references undeclared resource '{ref.node}'",
            nodes=[owner, ref.node],
        )
    if target.outputs.get(ref.key) is not ref.cell:
        raise ConfigurationError(
            f"'{owner}' references '{ref.describe()}', which is not an output of the declared resource '{ref.node}'",
            nodes=[owner, ref.node],
        )

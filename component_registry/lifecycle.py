"""
Dependency graph analysis for the component registry.

This module determines initialization and shutdown order from the declared
dependencies of registered components, and answers graph queries (cycles,
dependents, transitive dependencies) through networkx.
"""

from typing import Dict, Iterator, List, Mapping, Sequence, Set, Tuple

import networkx as nx

from custom_logging import get_logger
from component_registry.exceptions import CircularDependencyError


class DependencyGraph:
    """
    Declared-dependency graph of registered components.

    Nodes keep registration order; edges point from a component to each
    component it depends on.
    """

    def __init__(self, dependencies: Mapping[str, Sequence[str]]):
        """
        Build the graph.

        Args:
            dependencies: Component id -> declared dependency ids, in registration order
        """
        self.logger = get_logger("dependency_graph")
        self.dependencies: Dict[str, Tuple[str, ...]] = {
            component_id: tuple(deps) for component_id, deps in dependencies.items()
        }
        self._graph = None

    @classmethod
    def from_descriptors(cls, descriptors: Mapping[str, object]) -> "DependencyGraph":
        return cls({component_id: d.dependencies for component_id, d in descriptors.items()})

    def initialization_order(self) -> List[str]:
        """
        Depth-first topological sort, dependencies first.

        Uses an explicit stack. Dependencies that are not registered are skipped.

        Returns:
            Component ids, each after all of its registered dependencies

        Raises:
            CircularDependencyError: If a node is reached while still being visited
        """
        order: List[str] = []
        visited: Set[str] = set()
        visiting: Set[str] = set()
        reported_missing: Set[Tuple[str, str]] = set()

        for root in self.dependencies:
            if root in visited:
                continue

            visiting.add(root)
            path = [root]
            stack: List[Tuple[str, Iterator[str]]] = [(root, iter(self.dependencies[root]))]

            while stack:
                node, pending = stack[-1]
                descended = False

                for dep in pending:
                    if dep not in self.dependencies:
                        if (node, dep) not in reported_missing:
                            reported_missing.add((node, dep))
                            self.logger.warning(
                                f"Component '{node}' depends on unregistered '{dep}', skipping"
                            )
                        continue
                    if dep in visiting:
                        chain = path[path.index(dep):] + [dep]
                        raise CircularDependencyError(chain, visiting)
                    if dep in visited:
                        continue

                    visiting.add(dep)
                    path.append(dep)
                    stack.append((dep, iter(self.dependencies[dep])))
                    descended = True
                    break

                if not descended:
                    stack.pop()
                    path.pop()
                    visiting.discard(node)
                    visited.add(node)
                    order.append(node)

        return order

    def shutdown_order(self) -> List[str]:
        """Reverse of the initialization order (dependents before their dependencies)."""
        return list(reversed(self.initialization_order()))

    def to_networkx(self) -> nx.DiGraph:
        """DiGraph with an edge ``component -> dependency`` for every registered dependency."""
        if self._graph is None:
            graph = nx.DiGraph()
            graph.add_nodes_from(self.dependencies)
            for component_id, deps in self.dependencies.items():
                for dep in deps:
                    if dep in self.dependencies:
                        graph.add_edge(component_id, dep)
            self._graph = graph
        return self._graph

    def find_cycles(self) -> List[List[str]]:
        """Every elementary cycle, self-dependencies included."""
        return [list(cycle) for cycle in nx.simple_cycles(self.to_networkx())]

    def is_acyclic(self) -> bool:
        return nx.is_directed_acyclic_graph(self.to_networkx())

    def direct_dependents(self, component_id: str) -> List[str]:
        """Components that declare ``component_id`` as a dependency."""
        graph = self.to_networkx()
        if component_id not in graph:
            return []
        return [node for node in graph.predecessors(component_id) if node != component_id]

    def dependents_of(self, component_id: str) -> Set[str]:
        """Components that depend on ``component_id``, directly or transitively."""
        graph = self.to_networkx()
        if component_id not in graph:
            return set()
        return nx.ancestors(graph, component_id)

    def dependencies_of(self, component_id: str) -> Set[str]:
        """Registered components ``component_id`` needs, directly or transitively."""
        graph = self.to_networkx()
        if component_id not in graph:
            return set()
        return nx.descendants(graph, component_id)

    def missing_dependencies(self) -> Dict[str, List[str]]:
        """Declared dependency ids that are not registered, per component."""
        missing = {}
        for component_id, deps in self.dependencies.items():
            absent = [dep for dep in deps if dep not in self.dependencies]
            if absent:
                missing[component_id] = absent
        return missing

"""
Flow Graph - Dependency structure of a flow.

Builds upstream/downstream maps from a Flow and computes the
deterministic topological order used for compilation.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Set

from autograph.errors import CyclicGraph, DanglingEdge, DuplicateNodeId

from .models import Flow


logger = logging.getLogger(__name__)


def check_unique_ids(flow: Flow) -> None:
    """
    Raises:
        DuplicateNodeId: For the first repeated node id
    """
    seen: Set[str] = set()
    for node in flow.nodes:
        if node.id in seen:
            raise DuplicateNodeId(node.id)
        seen.add(node.id)


class FlowGraph:
    """
    Validated dependency graph of a flow.

    Neighbour lists are de-duplicated and sorted by node id, so every
    traversal is independent of document order.

    Usage:
        graph = FlowGraph(flow)
        order = graph.topological_order()
    """

    def __init__(self, flow: Flow):
        """
        Build the graph.

        Raises:
            DuplicateNodeId: If two nodes share an id
            DanglingEdge: If an edge references a missing node
        """
        check_unique_ids(flow)
        self.node_ids: List[str] = sorted(n.id for n in flow.nodes)

        upstream: Dict[str, Set[str]] = {node_id: set() for node_id in self.node_ids}
        downstream: Dict[str, Set[str]] = {node_id: set() for node_id in self.node_ids}
        for edge in flow.edges:
            for endpoint in (edge.source, edge.target):
                if endpoint not in upstream:
                    raise DanglingEdge(endpoint, edge.source, edge.target)
            upstream[edge.target].add(edge.source)
            downstream[edge.source].add(edge.target)

        self.upstream: Dict[str, List[str]] = {k: sorted(v) for k, v in upstream.items()}
        self.downstream: Dict[str, List[str]] = {k: sorted(v) for k, v in downstream.items()}

    def topological_order(self) -> List[str]:
        """
        Kahn's algorithm with the ready set sorted by node id.

        Raises:
            CyclicGraph: Naming every node that could not be ordered
        """
        in_degree: Dict[str, int] = {
            node_id: len(self.upstream[node_id]) for node_id in self.node_ids
        }

        # Start with nodes that have no dependencies
        queue = [node_id for node_id, degree in in_degree.items() if degree == 0]
        order: List[str] = []

        while queue:
            # Sort for deterministic order
            queue.sort()
            node_id = queue.pop(0)
            order.append(node_id)

            for downstream_id in self.downstream[node_id]:
                in_degree[downstream_id] -= 1
                if in_degree[downstream_id] == 0:
                    queue.append(downstream_id)

        if len(order) != len(self.node_ids):
            remaining = set(self.node_ids) - set(order)
            logger.debug(f"Cycle detected, unordered nodes: {sorted(remaining)}")
            raise CyclicGraph(remaining)

        return order


__all__ = ["FlowGraph", "check_unique_ids"]

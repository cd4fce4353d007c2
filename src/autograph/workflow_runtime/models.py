"""
Flow Models - JSON structures for flow documents.

Flow document format:
    {"nodes": [{"id", "type_name", "config", "position"?, "breakpoint"?}],
     "edges": [{"source", "target", "source_handle"?, "target_handle"?}]}
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from autograph.node_registry import NodeRegistry


class Position(BaseModel):
    """Node position in the canvas."""
    x: float = 0
    y: float = 0


class Node(BaseModel):
    """
    A node in a flow.

    ``config`` is any JSON value; it is validated by the node kind at
    compile time, not here.
    """
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, description="Node id (unique within flow)")
    type_name: str = Field(..., description="Node kind name (e.g., 'http_get')")
    config: Any = Field(default_factory=dict)
    position: Optional[Position] = Field(None, description="Canvas position, cosmetic")
    breakpoint: bool = Field(False, description="Suspend the run before this node")


class Edge(BaseModel):
    """Directed data dependency: source's output feeds target."""
    model_config = ConfigDict(extra="ignore")

    source: str = Field(..., description="Source node id")
    target: str = Field(..., description="Target node id")
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None


class Flow(BaseModel):
    """
    Complete flow definition.

    Structural validity (acyclic, edges resolve, unique ids) is checked
    by the compiler, so invalid flows can still be loaded and edited.
    """
    model_config = ConfigDict(extra="ignore")

    nodes: List[Node] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)

    # Serialization

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Flow":
        return cls.model_validate(data)

    @classmethod
    def from_json(cls, text: str) -> "Flow":
        return cls.model_validate_json(text)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_json(self, indent: Optional[int] = 2) -> str:
        return self.model_dump_json(indent=indent)

    def semantic_view(self) -> Dict[str, Any]:
        """Ids, kinds, configs, breakpoints and edges; positions and handles dropped."""
        return {
            "nodes": [
                {
                    "id": n.id,
                    "type_name": n.type_name,
                    "config": json.loads(json.dumps(n.config)),
                    "breakpoint": n.breakpoint,
                }
                for n in self.nodes
            ],
            "edges": [(e.source, e.target) for e in self.edges],
        }

    # Queries

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get node by id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def edges_to(self, node_id: str) -> List[Edge]:
        """Inbound edges of a node."""
        return [e for e in self.edges if e.target == node_id]

    def edges_from(self, node_id: str) -> List[Edge]:
        """Outbound edges of a node."""
        return [e for e in self.edges if e.source == node_id]

    # Editing

    def add_node(
        self,
        type_name: str,
        registry: "NodeRegistry",
        position: Optional[Position] = None,
        node_id: Optional[str] = None,
    ) -> Node:
        """
        Add a node with the kind's default config.

        Generated ids are ``<kind>_<n>`` with the smallest free ``n``.

        Raises:
            UnknownKind: If the kind is not registered
            ValueError: If ``node_id`` is already taken
        """
        kind = registry.lookup(type_name)
        taken = {n.id for n in self.nodes}
        if node_id is None:
            n = 1
            while f"{type_name}_{n}" in taken:
                n += 1
            node_id = f"{type_name}_{n}"
        elif node_id in taken:
            raise ValueError(f"Node id already exists: {node_id}")

        node = Node(
            id=node_id,
            type_name=type_name,
            config=kind.default_config(),
            position=position,
        )
        self.nodes.append(node)
        return node

    def remove_node(self, node_id: str) -> bool:
        """Remove a node and every edge touching it."""
        before = len(self.nodes)
        self.nodes = [n for n in self.nodes if n.id != node_id]
        self.edges = [e for e in self.edges if e.source != node_id and e.target != node_id]
        return len(self.nodes) != before

    def add_edge(self, source: str, target: str) -> Optional[Edge]:
        """Connect two nodes; an identical existing edge is left as is."""
        for edge in self.edges:
            if edge.source == source and edge.target == target:
                return None
        edge = Edge(source=source, target=target)
        self.edges.append(edge)
        return edge

    def remove_edge(self, source: str, target: str) -> bool:
        before = len(self.edges)
        self.edges = [e for e in self.edges if not (e.source == source and e.target == target)]
        return len(self.edges) != before

    def set_breakpoint(self, node_id: str, enabled: bool = True) -> None:
        """
        Raises:
            KeyError: If the node does not exist
        """
        node = self.get_node(node_id)
        if node is None:
            raise KeyError(node_id)
        node.breakpoint = enabled


__all__ = ["Position", "Node", "Edge", "Flow"]

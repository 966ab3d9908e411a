"""Node registry: the set of node definitions owned by one engine."""

from __future__ import annotations

from typing import Iterator

from dagflow.core.models import DagError, NodeDefinition


class DuplicateNodeError(DagError):
    """A node with the same id is already registered."""

    def __init__(self, node_id: str):
        super().__init__(f"Duplicate node id: {node_id}")
        self.node_id = node_id


class NodeRegistry:
    """Insertion-ordered collection of node definitions.

    Dependency references are not checked here; the planner validates them
    so nodes can be registered in any order.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, NodeDefinition] = {}

    def add(self, node: NodeDefinition) -> None:
        if node.id in self._nodes:
            raise DuplicateNodeError(node.id)
        self._nodes[node.id] = node

    def get(self, node_id: str) -> NodeDefinition:
        return self._nodes[node_id]

    def definitions(self) -> dict[str, NodeDefinition]:
        """Return a copy of the id -> definition mapping in registration order."""
        return dict(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[NodeDefinition]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

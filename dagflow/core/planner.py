"""Dependency planner: turns a node set into a batched topological plan."""

from __future__ import annotations

import logging
from typing import Mapping

from dagflow.core.models import DagError, NodeDefinition, Plan

logger = logging.getLogger(__name__)


class PlanError(DagError):
    """Node set cannot be turned into an execution plan."""

    pass


class MissingDependencyError(PlanError):
    """A declared dependency does not exist."""

    def __init__(self, node_id: str, dependency_id: str, available: list[str]):
        super().__init__(
            f"Node '{node_id}' depends on '{dependency_id}' which doesn't exist. "
            f"Available nodes: {sorted(available)}"
        )
        self.node_id = node_id
        self.dependency_id = dependency_id


class SelfDependencyError(PlanError):
    """A node lists itself as a dependency."""

    def __init__(self, node_id: str):
        super().__init__(f"Node '{node_id}' cannot depend on itself")
        self.node_id = node_id


class CycleDetectedError(PlanError):
    """Circular dependency detected in the node graph."""

    def __init__(self, node_ids: list[str]):
        self.node_ids = sorted(node_ids)
        super().__init__(
            f"Circular dependency detected among nodes: {self.node_ids}. "
            f"Check depends_on configuration for these nodes."
        )


def build_dependents(nodes: Mapping[str, NodeDefinition]) -> dict[str, tuple[str, ...]]:
    """Adjacency map: node -> nodes that depend on it (registration order)."""
    dependents: dict[str, list[str]] = {node_id: [] for node_id in nodes}
    for node in nodes.values():
        for dep_id in node.depends_on:
            if dep_id in dependents:
                dependents[dep_id].append(node.id)
    return {node_id: tuple(ids) for node_id, ids in dependents.items()}


def validate_references(nodes: Mapping[str, NodeDefinition]) -> None:
    """Check every dependency exists and no node depends on itself.

    Raises:
        SelfDependencyError: If a node lists its own id
        MissingDependencyError: If a dependency is not in ``nodes``
    """
    for node in nodes.values():
        for dep_id in node.depends_on:
            if dep_id == node.id:
                raise SelfDependencyError(node.id)
            if dep_id not in nodes:
                raise MissingDependencyError(node.id, dep_id, list(nodes))


def build_plan(nodes: Mapping[str, NodeDefinition]) -> Plan:
    """Build a batched execution plan using Kahn's algorithm.

    ALGORITHM:
    1. Validate references (existence, no self-dependency)
    2. in-degree = number of dependencies of each node
    3. Every zero in-degree node forms the next batch; decrement the
       in-degree of its dependents and repeat
    4. Nodes left with positive in-degree sit on (or behind) a cycle

    Batches keep registration order so plans are repeatable.

    Raises:
        MissingDependencyError, SelfDependencyError, CycleDetectedError
    """
    validate_references(nodes)

    dependents = build_dependents(nodes)
    in_degree = {node_id: len(node.depends_on) for node_id, node in nodes.items()}

    order: list[str] = []
    batches: list[tuple[str, ...]] = []
    current = [node_id for node_id, degree in in_degree.items() if degree == 0]

    while current:
        batches.append(tuple(current))
        order.extend(current)
        released: set[str] = set()
        for node_id in current:
            for dependent in dependents[node_id]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    released.add(dependent)
        # Re-derive registration order for the next batch
        current = [node_id for node_id in nodes if node_id in released]

    if len(order) < len(nodes):
        unresolved = [node_id for node_id, degree in in_degree.items() if degree > 0]
        raise CycleDetectedError(unresolved)

    logger.debug(
        f"Built plan: {len(nodes)} nodes, {len(batches)} batches, "
        f"{sum(len(node.depends_on) for node in nodes.values())} edges"
    )
    return Plan(order=tuple(order), batches=tuple(batches), dependents=dependents)

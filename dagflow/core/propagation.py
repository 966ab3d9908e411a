"""Block propagation for gated and skip-dependents failures."""

from __future__ import annotations

from collections import deque
from typing import Mapping, Sequence

from dagflow.metrics.collector import MetricsCollector


def block_dependents(
    node_id: str,
    dependents: Mapping[str, Sequence[str]],
    blocked: set[str],
    metrics: MetricsCollector,
) -> list[str]:
    """Mark every transitive dependent of ``node_id`` as blocked.

    Breadth-first over a visited set instead of recursion so deep graphs
    cannot exhaust the call stack. Idempotent: nodes already in ``blocked``
    are neither re-recorded nor traversed again.

    Args:
        node_id: Node whose dependents must not run
        dependents: Adjacency map node -> direct dependents (Plan.dependents)
        blocked: Run-wide blocked set, updated in place
        metrics: Run collector; receives one "blocked" outcome per new node

    Returns:
        Newly blocked node ids in traversal order
    """
    newly_blocked: list[str] = []
    queue = deque(dependents.get(node_id, ()))

    while queue:
        current = queue.popleft()
        if current in blocked:
            continue
        blocked.add(current)
        metrics.record_blocked(current)
        newly_blocked.append(current)
        queue.extend(dep for dep in dependents.get(current, ()) if dep not in blocked)

    return newly_blocked

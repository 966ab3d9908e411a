"""Per-run metrics collector.

One collector owns one RunMetrics instance for the lifetime of one run.
Outcome records are write-once: recording the same node twice is a bug in
the engine and raises instead of silently overwriting.
"""

from __future__ import annotations

import time

from dagflow.core.models import DagError, NodeOutcome, NodeStatus, RunMetrics


class MetricsCollector:
    """Accumulates node outcomes and run-level counters."""

    _COUNTERS = {
        NodeStatus.SUCCESS: "successful_nodes",
        NodeStatus.FAILED: "failed_nodes",
        NodeStatus.SKIPPED: "skipped_nodes",
        NodeStatus.BLOCKED: "blocked_nodes",
    }

    def __init__(self, total_nodes: int):
        self.metrics = RunMetrics(total_nodes=total_nodes)

    def record(self, node_id: str, outcome: NodeOutcome) -> None:
        """Record a node's terminal outcome and bump the matching counter.

        Raises:
            DagError: If the node already has an outcome in this run
        """
        if node_id in self.metrics.nodes:
            existing = self.metrics.nodes[node_id].status.value
            raise DagError(
                f"Outcome for node '{node_id}' already recorded as '{existing}'"
            )
        self.metrics.nodes[node_id] = outcome
        counter = self._COUNTERS[outcome.status]
        setattr(self.metrics, counter, getattr(self.metrics, counter) + 1)

    def record_blocked(self, node_id: str) -> None:
        self.record(
            node_id,
            NodeOutcome(attempts=0, status=NodeStatus.BLOCKED, duration_ms=0.0),
        )

    def finish(self) -> RunMetrics:
        """Stamp the finish time and return the metrics."""
        if self.metrics.finished_at is None:
            self.metrics.finished_at = time.time()
        return self.metrics

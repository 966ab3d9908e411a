"""Terminal rendering of execution plans.

Provides a batch table and a dependency tree using Rich. NetworkX is used
for graph analysis only (critical path); the plan itself always comes from
the engine's planner.
"""

from __future__ import annotations

from typing import Mapping

import networkx as nx
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from dagflow.core.models import NodeConfig, NodeDefinition, NodeStatus, Plan


def to_networkx(nodes: Mapping[str, NodeDefinition]) -> nx.DiGraph:
    """Convert a node set to a DiGraph with edges dependency -> dependent."""
    graph = nx.DiGraph()
    for node_id in nodes:
        graph.add_node(node_id)
    for node in nodes.values():
        for dep_id in node.depends_on:
            graph.add_edge(dep_id, node.id)
    return graph


def critical_path(nodes: Mapping[str, NodeDefinition]) -> list[str]:
    """Longest dependency chain (by node count). Empty if the graph has cycles."""
    graph = to_networkx(nodes)
    try:
        return nx.dag_longest_path(graph)
    except nx.NetworkXUnfeasible:
        return []


class PlanRenderer:
    """Renders plans and run statuses in the terminal.

    Node ids are user-controlled, so every id is escaped before it is put
    into Rich markup.
    """

    STATUS_COLORS = {
        NodeStatus.SUCCESS: "green",
        NodeStatus.FAILED: "red bold",
        NodeStatus.SKIPPED: "yellow",
        NodeStatus.BLOCKED: "dim strikethrough",
    }

    STATUS_SYMBOLS = {
        NodeStatus.SUCCESS: "✓",
        NodeStatus.FAILED: "✗",
        NodeStatus.SKIPPED: "-",
        NodeStatus.BLOCKED: "⊘",
    }

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def render_batches(
        self,
        plan: Plan,
        nodes: Mapping[str, NodeDefinition],
        configs: Mapping[str, NodeConfig] | None = None,
    ) -> Table:
        """Table of batches with each node's dependencies and policy."""
        table = Table(title="Execution Plan")
        table.add_column("Batch", justify="right", style="dim")
        table.add_column("Node", style="cyan")
        table.add_column("Depends on")
        table.add_column("Retries", justify="right")
        table.add_column("Timeout", justify="right")
        table.add_column("On error")

        for index, batch in enumerate(plan.batches):
            for position, node_id in enumerate(batch):
                node = nodes[node_id]
                config = (configs or {}).get(node_id, node.config)
                node_label = escape(node_id)
                if not config.enabled:
                    node_label = f"[dim]{node_label} (disabled)[/]"
                table.add_row(
                    str(index) if position == 0 else "",
                    node_label,
                    escape(", ".join(node.depends_on)) or "[dim]-[/]",
                    str(config.max_retries),
                    f"{config.timeout_ms:g}ms" if config.timeout_ms else "[dim]none[/]",
                    config.on_error.value,
                )
        return table

    def render_tree(
        self,
        plan: Plan,
        nodes: Mapping[str, NodeDefinition],
        statuses: Mapping[str, NodeStatus] | None = None,
        max_depth: int = 50,
    ) -> Tree:
        """Dependency tree rooted at nodes without dependencies.

        Nodes with several dependencies appear under each of them; repeats
        below the first occurrence are collapsed.
        """
        tree = Tree("[bold]Plan[/]")
        shown: set[str] = set()
        for node_id in plan.order:
            if not nodes[node_id].depends_on:
                self._add_node(tree, node_id, plan, statuses, shown, depth=0, max_depth=max_depth)
        return tree

    def _add_node(
        self,
        parent: Tree,
        node_id: str,
        plan: Plan,
        statuses: Mapping[str, NodeStatus] | None,
        shown: set[str],
        depth: int,
        max_depth: int,
    ) -> None:
        if depth >= max_depth:
            parent.add("[dim]... (max depth reached)[/]")
            return

        label = escape(node_id)
        status = statuses.get(node_id) if statuses else None
        if status is not None:
            color = self.STATUS_COLORS.get(status, "white")
            label = f"[{color}]{self.STATUS_SYMBOLS[status]} {label}[/]"

        if node_id in shown:
            parent.add(f"[dim]↩ {escape(node_id)}[/]")
            return
        shown.add(node_id)

        branch = parent.add(label)
        for dependent in plan.dependents.get(node_id, ()):
            self._add_node(branch, dependent, plan, statuses, shown, depth + 1, max_depth)

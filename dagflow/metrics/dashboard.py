"""Rich-based run metrics display."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from dagflow.core.models import NodeStatus, RunMetrics, RunResult


class MetricsDashboard:
    """Terminal view of one run's result and metrics.

    USAGE:
        dashboard = MetricsDashboard()
        dashboard.show(result)
    """

    STATUS_STYLES = {
        NodeStatus.SUCCESS: "green",
        NodeStatus.FAILED: "red",
        NodeStatus.SKIPPED: "yellow",
        NodeStatus.BLOCKED: "dim",
    }

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def show(self, result: RunResult) -> None:
        """Display status, summary counters and per-node outcomes."""
        if result.success:
            self.console.print(Panel("[green]Run succeeded[/green]", title="Status"))
        else:
            message = escape(str(result.error)) if result.error else "unknown error"
            self.console.print(Panel(f"[red]Run failed:[/red] {message}", title="Status"))

        self.console.print(self.summary_table(result.metrics))
        self.console.print(self.nodes_table(result.metrics))

    def summary_table(self, metrics: RunMetrics) -> Table:
        table = Table(title="Summary", show_header=False, box=None)
        table.add_column("Metric", style="dim")
        table.add_column("Value", style="bold")

        table.add_row("Total Nodes", str(metrics.total_nodes))
        table.add_row("Successful", str(metrics.successful_nodes))
        table.add_row("Failed", str(metrics.failed_nodes))
        table.add_row("Skipped", str(metrics.skipped_nodes))
        table.add_row("Blocked", str(metrics.blocked_nodes))
        if metrics.duration_ms is not None:
            table.add_row("Duration", f"{metrics.duration_ms:.1f}ms")
        return table

    def nodes_table(self, metrics: RunMetrics) -> Table:
        table = Table(title="Nodes")
        table.add_column("Node", style="cyan")
        table.add_column("Status")
        table.add_column("Attempts", justify="right")
        table.add_column("Duration", justify="right")
        table.add_column("Detail")

        for node_id, outcome in metrics.nodes.items():
            style = self.STATUS_STYLES.get(outcome.status, "white")
            detail = outcome.error or (outcome.skip_reason.value if outcome.skip_reason else "")
            if outcome.cleanup_error:
                detail = f"{detail} (cleanup: {outcome.cleanup_error})".strip()
            table.add_row(
                escape(node_id),
                f"[{style}]{outcome.status.value}[/]",
                str(outcome.attempts),
                f"{outcome.duration_ms:.1f}ms",
                escape(detail),
            )
        return table

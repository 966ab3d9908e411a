"""Terminal rendering helpers for the dagflow CLI."""

from dagflow.cli_ui.graph_renderer import PlanRenderer, critical_path, to_networkx

__all__ = ["PlanRenderer", "critical_path", "to_networkx"]

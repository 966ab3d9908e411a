"""Tests for plan rendering and graph analysis."""

import io

from rich.console import Console

from dagflow.cli_ui.graph_renderer import PlanRenderer, critical_path, to_networkx
from dagflow.core.models import NodeDefinition, NodeStatus
from dagflow.core.planner import build_plan


def _nodes(spec):
    return {
        node_id: NodeDefinition(id=node_id, execute=lambda c, d, t: None, depends_on=deps)
        for node_id, deps in spec.items()
    }


DIAMOND = {"a": (), "b": ("a",), "c": ("a",), "d": ("b", "c")}


def _render(renderable) -> str:
    output = io.StringIO()
    Console(file=output, width=100, color_system=None).print(renderable)
    return output.getvalue()


class TestGraphAnalysis:
    """Tests for networkx helpers."""

    def test_to_networkx_edges(self):
        graph = to_networkx(_nodes(DIAMOND))

        assert set(graph.edges) == {("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")}

    def test_critical_path(self):
        nodes = _nodes({"a": (), "b": ("a",), "c": ("b",), "x": ()})

        assert critical_path(nodes) == ["a", "b", "c"]

    def test_critical_path_of_cycle_is_empty(self):
        assert critical_path(_nodes({"a": ("b",), "b": ("a",)})) == []


class TestPlanRenderer:
    """Tests for PlanRenderer."""

    def test_batches_table(self):
        nodes = _nodes(DIAMOND)
        plan = build_plan(nodes)

        text = _render(PlanRenderer().render_batches(plan, nodes))

        assert "Execution Plan" in text
        assert "b, c" in text
        assert "fail" in text

    def test_tree_collapses_repeats(self):
        nodes = _nodes(DIAMOND)
        plan = build_plan(nodes)

        text = _render(PlanRenderer().render_tree(plan, nodes))

        assert "↩ d" in text

    def test_tree_with_statuses(self):
        nodes = _nodes(DIAMOND)
        plan = build_plan(nodes)
        statuses = {
            "a": NodeStatus.SUCCESS,
            "b": NodeStatus.FAILED,
            "c": NodeStatus.SKIPPED,
            "d": NodeStatus.BLOCKED,
        }

        text = _render(PlanRenderer().render_tree(plan, nodes, statuses))

        assert "✓ a" in text
        assert "✗ b" in text
        assert "⊘ d" in text

"""CLI entry point for dagflow.

Commands:
- dagflow plan: Show the batched execution plan of an engine
- dagflow run: Execute an engine against an initial context

TARGET is ``package.module:attribute`` naming a DagEngine instance or a
zero-argument callable that returns one.
"""

from __future__ import annotations

import importlib
import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console
from rich.markup import escape

from dagflow import __version__
from dagflow.cli_ui.graph_renderer import PlanRenderer, critical_path
from dagflow.config import (
    CONFIG_RELATIVE_PATH,
    ConfigError,
    EngineSettings,
    find_settings,
    load_settings,
)
from dagflow.core.engine import DagEngine
from dagflow.core.models import DagError
from dagflow.core.planner import PlanError
from dagflow.metrics.dashboard import MetricsDashboard

console = Console()


def _load_settings(config_path: str | None) -> EngineSettings | None:
    """Explicit --config, else .dagflow/config.yaml in cwd, else None."""
    if config_path:
        return load_settings(config_path)
    if (Path.cwd() / CONFIG_RELATIVE_PATH).exists():
        return find_settings(Path.cwd())
    return None


def load_engine(target: str, app_dir: str = ".") -> DagEngine:
    """Import TARGET and return the engine it names.

    Raises:
        click.BadParameter: If TARGET is malformed or does not resolve to an engine
    """
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise click.BadParameter(
            f"'{target}' must look like 'package.module:attribute'", param_hint="TARGET"
        )

    resolved_dir = str(Path(app_dir).resolve())
    if resolved_dir not in sys.path:
        sys.path.insert(0, resolved_dir)

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"Cannot import '{module_name}': {e}", param_hint="TARGET")

    obj: Any = module
    for part in attribute.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError:
            raise click.BadParameter(
                f"'{module_name}' has no attribute '{attribute}'", param_hint="TARGET"
            )

    engine = obj if isinstance(obj, DagEngine) else obj() if callable(obj) else None
    if not isinstance(engine, DagEngine):
        raise click.BadParameter(
            f"'{target}' is not a DagEngine or a factory returning one", param_hint="TARGET"
        )
    return engine


def _load_context(context_file: str | None) -> Any:
    if not context_file:
        return {}
    try:
        with open(context_file, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise click.BadParameter(f"Invalid context file: {e}", param_hint="--context")
    return {} if data is None else data


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Log engine events to stderr")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """dagflow - run dependency graphs of work units in-process."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


def _configure_logging(verbose: bool, settings: EngineSettings) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@main.command()
@click.argument("target")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Settings YAML file")
@click.option("--app-dir", default=".", show_default=True, help="Directory added to sys.path")
def plan(target: str, config_path: str | None, app_dir: str) -> None:
    """Show the execution plan for TARGET.

    Example:
        dagflow plan pipelines.orders:build_engine
    """
    try:
        settings = _load_settings(config_path)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {escape(str(e))}")
        sys.exit(1)

    engine = load_engine(target, app_dir)
    if settings is not None:
        engine.settings = settings

    try:
        execution_plan = engine.plan()
    except DagError as e:
        console.print(f"[red]Invalid graph:[/red] {escape(str(e))}")
        sys.exit(1)

    nodes = engine.nodes
    configs = {node_id: engine.config_for(node_id) for node_id in nodes}
    renderer = PlanRenderer(console)

    console.print(renderer.render_batches(execution_plan, nodes, configs))
    console.print(renderer.render_tree(execution_plan, nodes))
    console.print()
    console.print(f"[bold]Nodes:[/] {len(nodes)}")
    console.print(f"[bold]Batches:[/] {len(execution_plan.batches)}")
    console.print(f"[bold]Order:[/] {escape(' -> '.join(execution_plan.order))}")
    path = critical_path(nodes)
    if path:
        console.print(f"[bold]Critical path:[/] {escape(' -> '.join(path))}")


@main.command()
@click.argument("target")
@click.option(
    "--context",
    "context_file",
    type=click.Path(exists=True),
    help="Initial context as a YAML or JSON file",
)
@click.option("--config", "config_path", type=click.Path(exists=True), help="Settings YAML file")
@click.option("--app-dir", default=".", show_default=True, help="Directory added to sys.path")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def run(
    ctx: click.Context,
    target: str,
    context_file: str | None,
    config_path: str | None,
    app_dir: str,
    as_json: bool,
) -> None:
    """Run TARGET against an initial context.

    Exits with status 1 when the run fails.

    Example:
        dagflow run pipelines.orders:build_engine --context order.yaml
    """
    try:
        settings = _load_settings(config_path)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {escape(str(e))}")
        sys.exit(1)

    engine = load_engine(target, app_dir)
    if settings is not None:
        engine.settings = settings
    _configure_logging(ctx.obj.get("verbose", False), engine.settings)
    initial_context = _load_context(context_file)

    result = engine.run(initial_context)

    if as_json:
        click.echo(
            json.dumps(
                {
                    "success": result.success,
                    "error": str(result.error) if result.error else None,
                    "context": result.context,
                    "metrics": result.metrics.to_dict(),
                },
                indent=2,
                default=str,
            )
        )
    else:
        MetricsDashboard(console).show(result)
        if not isinstance(result.error, PlanError):
            statuses = {node_id: outcome.status for node_id, outcome in result.metrics.nodes.items()}
            console.print(PlanRenderer(console).render_tree(engine.plan(), engine.nodes, statuses))
        console.print("\n[bold]Final context:[/bold]")
        console.print_json(json.dumps(result.context, default=str))

    if not result.success:
        sys.exit(1)


if __name__ == "__main__":
    main()

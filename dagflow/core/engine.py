"""DAG execution engine.

Coordinates:
- Node registration and plan caching
- Batch-by-batch execution with a barrier between batches
- Error strategy policy (fail / skip / skip-dependents)
- Context patch merging and run metrics
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable, Sequence

from dagflow.config import EngineSettings
from dagflow.core.context import clone_context, merge_patch, snapshot
from dagflow.core.log import Logger, StdlibLogger
from dagflow.core.models import (
    DagError,
    ErrorStrategy,
    NodeConfig,
    NodeDefinition,
    NodeStatus,
    Plan,
    RunResult,
)
from dagflow.core.planner import PlanError, build_plan
from dagflow.core.propagation import block_dependents
from dagflow.core.registry import NodeRegistry
from dagflow.core.runner import NodeError, NodeRunner, NodeRunResult
from dagflow.metrics.collector import MetricsCollector


class DagEngine:
    """Execute registered nodes against a shared context.

    EXECUTION SEMANTICS:
    - The plan partitions nodes into batches; batch k+1 starts only after
      every node of batch k reached a terminal outcome
    - Nodes within a batch run concurrently and all see the context as it
      stood at the start of the batch
    - Successful patches are merged in batch order after the batch settles;
      merging is shallow (nested values are replaced, not deep-merged)

    ERROR STRATEGIES (per node, after retries are exhausted):
    - fail: abort the run; the result carries the context as of the last
      fully merged batch and the node's error
    - skip: record the failure, dependents still run
    - skip-dependents: record the failure, block every transitive dependent

    Example:
        engine = DagEngine()
        engine.add_node(NodeDefinition(id="a", execute=load)).add_node(
            NodeDefinition(id="b", execute=transform, depends_on=("a",))
        )
        result = engine.run({"items": []})
    """

    def __init__(
        self,
        logger: Logger | None = None,
        settings: EngineSettings | None = None,
    ):
        self.logger: Logger = logger or StdlibLogger()
        self.settings = settings or EngineSettings()
        self._registry = NodeRegistry()
        self._plan: Plan | None = None
        self._active_runs = 0

    # ========== Registration ==========

    def add_node(self, node: NodeDefinition | None = None, /, **kwargs: Any) -> DagEngine:
        """Register a node; returns self for chaining.

        Accepts a NodeDefinition or its fields as keyword arguments.

        Raises:
            DuplicateNodeError: If the id is already registered
            DagError: If a run is in progress
        """
        if self._active_runs:
            raise DagError("Cannot register nodes while a run is in progress")
        if node is None:
            node = NodeDefinition(**kwargs)
        elif kwargs:
            raise TypeError("Pass either a NodeDefinition or keyword fields, not both")

        self._registry.add(node)
        self._plan = None
        return self

    def add_nodes(self, nodes: Iterable[NodeDefinition]) -> DagEngine:
        for node in nodes:
            self.add_node(node)
        return self

    def node(
        self,
        node_id: str,
        *,
        depends_on: Sequence[str] = (),
        config: NodeConfig | dict[str, Any] | None = None,
        gate_check: Callable[..., Any] | None = None,
        validate: Callable[..., Any] | None = None,
        cleanup: Callable[..., Any] | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of ``add_node`` using the function as ``execute``."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.add_node(
                NodeDefinition(
                    id=node_id,
                    execute=fn,
                    depends_on=tuple(depends_on),
                    config=config,
                    gate_check=gate_check,
                    validate=validate,
                    cleanup=cleanup,
                )
            )
            return fn

        return decorator

    @property
    def nodes(self) -> dict[str, NodeDefinition]:
        return self._registry.definitions()

    def __len__(self) -> int:
        return len(self._registry)

    # ========== Planning ==========

    def plan(self) -> Plan:
        """Return the cached plan, computing it on first use.

        Raises:
            MissingDependencyError, SelfDependencyError, CycleDetectedError
        """
        if self._plan is None:
            self._plan = build_plan(self._registry.definitions())
        return self._plan

    def config_for(self, node_id: str) -> NodeConfig:
        """Effective config of a node after settings defaults and overrides."""
        return self.settings.resolve(self._registry.get(node_id))

    # ========== Execution ==========

    def run(self, initial_context: Any) -> RunResult:
        """Synchronous wrapper around ``execute``."""
        return asyncio.run(self.execute(initial_context))

    async def execute(self, initial_context: Any) -> RunResult:
        """Run every node and return the final result.

        Never raises for node or plan failures; those are reported through
        ``RunResult.success`` and ``RunResult.error``.
        """
        collector = MetricsCollector(total_nodes=len(self._registry))
        context = clone_context(initial_context)

        self._active_runs += 1
        try:
            return await self._execute(context, collector)
        finally:
            self._active_runs -= 1

    async def _execute(self, context: Any, collector: MetricsCollector) -> RunResult:
        try:
            plan = self.plan()
        except PlanError as e:
            self.logger.error(f"Planning failed: {e}", {"error": type(e).__name__})
            return RunResult(success=False, context=context, metrics=collector.finish(), error=e)

        nodes = self._registry.definitions()
        runner = NodeRunner(self.logger, self.settings.resolve)
        semaphore = (
            asyncio.Semaphore(self.settings.max_parallel) if self.settings.max_parallel else None
        )
        completed: set[str] = set()
        blocked: set[str] = set()

        self.logger.info(
            "Run started",
            {"nodes": len(nodes), "batches": len(plan.batches)},
        )

        for index, batch in enumerate(plan.batches):
            runnable = [node_id for node_id in batch if node_id not in blocked]
            if not runnable:
                continue

            results = await self._run_batch(
                runner, [nodes[node_id] for node_id in runnable], snapshot(context), semaphore
            )

            batch_context = context
            abort_error: NodeError | None = None

            # Fixed iteration order (batch order) keeps merges reproducible
            for result in results:
                collector.record(result.node_id, result.outcome)

                if result.status == NodeStatus.SUCCESS:
                    batch_context = merge_patch(batch_context, result.patch)
                    completed.add(result.node_id)
                elif result.status == NodeStatus.SKIPPED:
                    completed.add(result.node_id)
                    if result.block_dependents:
                        self._block(result.node_id, plan, blocked, collector)
                else:
                    strategy = self.settings.resolve(nodes[result.node_id]).on_error
                    if strategy == ErrorStrategy.FAIL:
                        if abort_error is None:
                            abort_error = result.error
                    elif strategy == ErrorStrategy.SKIP_DEPENDENTS:
                        self._block(result.node_id, plan, blocked, collector)
                    else:
                        self.logger.warn(
                            f"Node '{result.node_id}' failed; continuing (on_error=skip)",
                            {"node": result.node_id},
                        )

            if abort_error is not None:
                metrics = collector.finish()
                self.logger.error(
                    f"Run aborted in batch {index}: {abort_error}",
                    {"node": abort_error.node_id, "batch": index},
                )
                return RunResult(success=False, context=context, metrics=metrics, error=abort_error)

            context = batch_context

        metrics = collector.finish()
        self.logger.info(
            "Run completed",
            {
                "successful": metrics.successful_nodes,
                "failed": metrics.failed_nodes,
                "skipped": metrics.skipped_nodes,
                "blocked": metrics.blocked_nodes,
            },
        )
        return RunResult(success=True, context=context, metrics=metrics)

    async def _run_batch(
        self,
        runner: NodeRunner,
        batch: list[NodeDefinition],
        view: Any,
        semaphore: asyncio.Semaphore | None,
    ) -> list[NodeRunResult]:
        """Run one batch concurrently and wait for every node to settle."""

        async def run_one(node: NodeDefinition) -> NodeRunResult:
            if semaphore is None:
                return await runner.run(node, view)
            async with semaphore:
                return await runner.run(node, view)

        settled = await asyncio.gather(*(run_one(node) for node in batch), return_exceptions=True)

        # Barrier reached; only now surface unexpected runner errors
        for outcome in settled:
            if isinstance(outcome, BaseException):
                raise outcome
        return list(settled)

    def _block(
        self,
        node_id: str,
        plan: Plan,
        blocked: set[str],
        collector: MetricsCollector,
    ) -> None:
        newly_blocked = block_dependents(node_id, plan.dependents, blocked, collector)
        if newly_blocked:
            self.logger.warn(
                f"Blocked {len(newly_blocked)} dependent(s) of '{node_id}'",
                {"node": node_id, "blocked": newly_blocked},
            )

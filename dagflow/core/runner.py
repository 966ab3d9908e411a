"""Node runner: the per-node execution state machine.

STATE MACHINE (one node, one run):
1. disabled  -> skipped, nothing invoked
2. gate      -> False: skipped, dependents must be blocked
3. validate  -> False: skipped, dependents unaffected
4. attempts  -> execute under a fresh CancellationToken and optional
                deadline, retrying with exponential backoff
5. cleanup   -> once after the attempt loop, best-effort

The runner is stateless across nodes. It reads a context snapshot and hands
back a patch or a typed failure; it never touches the engine's context or
metrics.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from dagflow.core.cancellation import CancellationToken
from dagflow.core.context import check_patch
from dagflow.core.log import Logger
from dagflow.core.models import (
    DagError,
    NodeConfig,
    NodeDefinition,
    NodeOutcome,
    NodeStatus,
    Patch,
    SkipReason,
)


class NodeError(DagError):
    """Terminal failure of a single node."""

    def __init__(self, node_id: str, message: str):
        super().__init__(message)
        self.node_id = node_id


class NodeTimeoutError(NodeError):
    """An attempt exceeded the node's configured timeout."""

    def __init__(self, node_id: str, timeout_ms: float):
        super().__init__(node_id, f"Node '{node_id}' timed out after {timeout_ms:g}ms")
        self.timeout_ms = timeout_ms


class NodeExecutionError(NodeError):
    """Wraps whatever a node capability raised.

    The message is the original message so callers see the same text the
    work item raised; the original exception is kept as ``__cause__``.
    """

    def __init__(self, node_id: str, cause: BaseException):
        super().__init__(node_id, str(cause) or type(cause).__name__)
        self.__cause__ = cause

    @property
    def original(self) -> BaseException | None:
        return self.__cause__


@dataclass
class RetryPolicy:
    """Configuration for retry behavior."""

    max_attempts: int = 1
    initial_delay: float = 0.5  # seconds

    @classmethod
    def from_config(cls, config: NodeConfig) -> RetryPolicy:
        return cls(
            max_attempts=config.max_retries + 1,
            initial_delay=config.retry_delay_ms / 1000,
        )

    def get_delay(self, attempt: int) -> float:
        """Calculate delay after a given failed attempt (0-indexed)."""
        return self.initial_delay * (2**attempt)


@dataclass(frozen=True)
class NodeDeps:
    """Collaborators handed to a node's work item."""

    logger: Logger
    node_id: str
    attempt: int = 0


@dataclass
class NodeRunResult:
    """What the runner reports back to the engine for one node."""

    node_id: str
    outcome: NodeOutcome
    patch: Patch | None = None
    error: NodeError | None = None
    block_dependents: bool = False

    @property
    def status(self) -> NodeStatus:
        return self.outcome.status


async def invoke(fn: Callable[..., Any], *args: Any) -> Any:
    """Call a node capability that may be sync or async.

    Coroutine functions are awaited on the loop. Plain callables run on a
    worker thread so blocking work cannot stall sibling nodes.
    """
    if inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(
        getattr(fn, "__call__", None)
    ):
        return await fn(*args)
    result = await asyncio.to_thread(fn, *args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000


def _cancelled_by_caller() -> bool:
    """True when the current task itself is being cancelled.

    A CancelledError seen while the task has no pending cancel request was
    raised by the capability (for example leaked from an inner await) and is
    treated as an ordinary node failure.
    """
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


class NodeRunner:
    """Runs one node's full lifecycle.

    USAGE:
        runner = NodeRunner(logger)
        result = await runner.run(node, snapshot)
        if result.status == NodeStatus.SUCCESS:
            context = merge_patch(context, result.patch)
    """

    def __init__(
        self,
        logger: Logger,
        config_resolver: Callable[[NodeDefinition], NodeConfig] | None = None,
    ):
        self.logger = logger
        self._resolve_config = config_resolver or (lambda node: node.config)

    async def run(self, node: NodeDefinition, context: Any) -> NodeRunResult:
        config = self._resolve_config(node)
        started = time.monotonic()

        if not config.enabled:
            self.logger.info(f"Node '{node.id}' is disabled, skipping", {"node": node.id})
            return self._skipped(node, SkipReason.DISABLED, started)

        try:
            if node.gate_check is not None and not await invoke(node.gate_check, context):
                self.logger.info(
                    f"Gate check for node '{node.id}' returned false; dependents will be blocked",
                    {"node": node.id},
                )
                return self._skipped(node, SkipReason.GATE, started, block_dependents=True)

            if node.validate is not None and not await invoke(node.validate, context):
                self.logger.info(
                    f"Validation for node '{node.id}' returned false, skipping",
                    {"node": node.id},
                )
                return self._skipped(node, SkipReason.VALIDATION, started)
        except (Exception, asyncio.CancelledError) as e:
            if isinstance(e, asyncio.CancelledError) and _cancelled_by_caller():
                raise
            # Gate/validation errors are terminal: no retry, no cleanup
            error = NodeExecutionError(node.id, e)
            self.logger.error(
                f"Pre-execution check for node '{node.id}' raised: {error}",
                {"node": node.id},
            )
            return self._failed(node, error, attempts=0, started=started)

        policy = RetryPolicy.from_config(config)
        attempts = 0
        patch: Patch | None = None
        last_error: NodeError | None = None

        for attempt in range(policy.max_attempts):
            attempts += 1
            try:
                patch = await self._attempt(node, context, config, attempt)
                last_error = None
                break
            except NodeTimeoutError as e:
                last_error = e
            except asyncio.CancelledError as e:
                if _cancelled_by_caller():
                    raise
                last_error = NodeExecutionError(node.id, e)
            except Exception as e:
                last_error = NodeExecutionError(node.id, e)

            if attempt < policy.max_attempts - 1:
                delay = policy.get_delay(attempt)
                self.logger.warn(
                    f"Node '{node.id}' attempt {attempts} failed: {last_error}; "
                    f"retrying in {delay * 1000:g}ms",
                    {"node": node.id, "attempt": attempts, "delay_ms": delay * 1000},
                )
                await asyncio.sleep(delay)

        cleanup_error = await self._cleanup(node, context)

        if last_error is None:
            return NodeRunResult(
                node_id=node.id,
                outcome=NodeOutcome(
                    attempts=attempts,
                    status=NodeStatus.SUCCESS,
                    duration_ms=_elapsed_ms(started),
                    cleanup_error=cleanup_error,
                ),
                patch=patch,
            )

        self.logger.error(
            f"Node '{node.id}' failed after {attempts} attempt(s): {last_error}",
            {"node": node.id, "attempts": attempts},
        )
        result = self._failed(node, last_error, attempts=attempts, started=started)
        result.outcome.cleanup_error = cleanup_error
        return result

    async def _attempt(
        self,
        node: NodeDefinition,
        context: Any,
        config: NodeConfig,
        attempt: int,
    ) -> Patch | None:
        """Run one attempt of the work item under a fresh token.

        Timeout Limitation:
            On timeout the token is cancelled and a coroutine work item is
            cancelled at its current await. A plain callable running on a
            worker thread cannot be stopped; it keeps running until it
            observes the token, and its result is discarded.
        """
        token = CancellationToken()
        deps = NodeDeps(logger=self.logger, node_id=node.id, attempt=attempt)

        if config.timeout_ms is None:
            patch = await invoke(node.execute, context, deps, token)
        else:
            try:
                async with asyncio.timeout(config.timeout_ms / 1000) as deadline:
                    patch = await invoke(node.execute, context, deps, token)
            except TimeoutError:
                if not deadline.expired():
                    raise  # Raised by the work item itself
                token.cancel("timeout")
                self.logger.warn(
                    f"Node '{node.id}' timed out after {config.timeout_ms:g}ms. "
                    f"The work item was signalled to stop but may still be running.",
                    {"node": node.id, "attempt": attempt + 1},
                )
                raise NodeTimeoutError(node.id, config.timeout_ms) from None

        if patch is not None and not isinstance(patch, Mapping):
            raise TypeError(
                f"Node '{node.id}' returned {type(patch).__name__}; expected a mapping patch or None"
            )
        check_patch(context, patch)
        return patch

    async def _cleanup(self, node: NodeDefinition, context: Any) -> str | None:
        if node.cleanup is None:
            return None
        try:
            await invoke(node.cleanup, context)
        except (Exception, asyncio.CancelledError) as e:
            if isinstance(e, asyncio.CancelledError) and _cancelled_by_caller():
                raise
            self.logger.warn(
                f"Cleanup for node '{node.id}' failed: {e}",
                {"node": node.id},
            )
            return str(e) or type(e).__name__
        return None

    def _skipped(
        self,
        node: NodeDefinition,
        reason: SkipReason,
        started: float,
        block_dependents: bool = False,
    ) -> NodeRunResult:
        return NodeRunResult(
            node_id=node.id,
            outcome=NodeOutcome(
                attempts=0,
                status=NodeStatus.SKIPPED,
                duration_ms=_elapsed_ms(started),
                skip_reason=reason,
            ),
            block_dependents=block_dependents,
        )

    def _failed(
        self,
        node: NodeDefinition,
        error: NodeError,
        attempts: int,
        started: float,
    ) -> NodeRunResult:
        return NodeRunResult(
            node_id=node.id,
            outcome=NodeOutcome(
                attempts=attempts,
                status=NodeStatus.FAILED,
                duration_ms=_elapsed_ms(started),
                error=str(error),
            ),
            error=error,
        )

"""Data models for the dagflow engine.

Node configuration uses Pydantic so it can be validated when it comes from
code or from YAML settings files. Run-time records are plain dataclasses.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field


class DagError(Exception):
    """Base class for every error raised by dagflow."""

    pass


class ErrorStrategy(str, Enum):
    """What the engine does when a node exhausts its retries."""

    FAIL = "fail"  # Abort the run
    SKIP = "skip"  # Absorb the failure, dependents still run
    SKIP_DEPENDENTS = "skip-dependents"  # Absorb the failure, block dependents


class NodeStatus(str, Enum):
    """Terminal status of a node within one run."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    BLOCKED = "blocked"


class SkipReason(str, Enum):
    """Why a node was skipped without running its work item."""

    GATE = "gate"
    VALIDATION = "validation"
    DISABLED = "disabled"


class NodeConfig(BaseModel):
    """Per-node execution policy.

    Accepts both snake_case names and the camelCase aliases
    (``timeoutMs``, ``maxRetries``, ``retryDelayMs``, ``onError``).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    timeout_ms: float | None = Field(default=None, gt=0, alias="timeoutMs")
    max_retries: int = Field(default=0, ge=0, alias="maxRetries")
    retry_delay_ms: float = Field(default=500, ge=0, alias="retryDelayMs")
    on_error: ErrorStrategy = Field(default=ErrorStrategy.FAIL, alias="onError")
    enabled: bool = True

    def overlay(self, other: NodeConfig | None) -> NodeConfig:
        """Return a copy with every field explicitly set on ``other`` applied."""
        if other is None:
            return self
        merged = self.model_dump(exclude_unset=True)
        merged.update(other.model_dump(exclude_unset=True))
        return NodeConfig.model_validate(merged)


# Context values are caller-defined; patches are top-level field updates.
Context = Any
Patch = Mapping[str, Any]

ExecuteFn = Callable[..., Union[Patch, None, Awaitable[Union[Patch, None]]]]
PredicateFn = Callable[[Any], Union[bool, Awaitable[bool]]]
CleanupFn = Callable[[Any], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class NodeDefinition:
    """A registered unit of work.

    Capabilities:
        execute: required. Called as ``execute(context, deps, token)`` and
            returns a patch (or None for an empty patch).
        gate_check: optional. False skips the node and blocks every
            transitive dependent.
        validate: optional. False skips only this node.
        cleanup: optional. Called once after the attempt loop.

    Any capability may be a coroutine function; plain functions run on a
    worker thread.
    """

    id: str
    execute: ExecuteFn
    depends_on: tuple[str, ...] = ()
    config: NodeConfig = field(default_factory=NodeConfig)
    gate_check: PredicateFn | None = None
    validate: PredicateFn | None = None
    cleanup: CleanupFn | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise ValueError("Node id must be a non-empty string")
        if not callable(self.execute):
            raise TypeError(f"Node '{self.id}' must define a callable execute")
        # Normalize lists/sets passed by callers; keeps declaration order.
        object.__setattr__(self, "depends_on", tuple(dict.fromkeys(self.depends_on or ())))
        if self.config is None:
            object.__setattr__(self, "config", NodeConfig())
        elif isinstance(self.config, Mapping):
            object.__setattr__(self, "config", NodeConfig.model_validate(self.config))


@dataclass(frozen=True)
class Plan:
    """Validated execution plan.

    ``order`` is a topological order of every node; ``batches`` partitions it
    so that each node's dependencies all live in earlier batches.
    """

    order: tuple[str, ...]
    batches: tuple[tuple[str, ...], ...]
    dependents: Mapping[str, tuple[str, ...]] = field(default_factory=dict)


@dataclass
class NodeOutcome:
    """Outcome record for one node in one run."""

    attempts: int
    status: NodeStatus
    duration_ms: float
    error: str | None = None
    skip_reason: SkipReason | None = None
    cleanup_error: str | None = None

    @property
    def success(self) -> bool:
        return self.status == NodeStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "attempts": self.attempts,
            "status": self.status.value,
            "duration_ms": round(self.duration_ms, 3),
        }
        if self.error is not None:
            data["error"] = self.error
        if self.skip_reason is not None:
            data["skip_reason"] = self.skip_reason.value
        if self.cleanup_error is not None:
            data["cleanup_error"] = self.cleanup_error
        return data


@dataclass
class RunMetrics:
    """Aggregate metrics for one run."""

    total_nodes: int
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None
    successful_nodes: int = 0
    failed_nodes: int = 0
    skipped_nodes: int = 0
    blocked_nodes: int = 0
    nodes: dict[str, NodeOutcome] = field(default_factory=dict)

    @property
    def duration_ms(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at) * 1000

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "total_nodes": self.total_nodes,
            "successful_nodes": self.successful_nodes,
            "failed_nodes": self.failed_nodes,
            "skipped_nodes": self.skipped_nodes,
            "blocked_nodes": self.blocked_nodes,
            "nodes": {node_id: outcome.to_dict() for node_id, outcome in self.nodes.items()},
        }


@dataclass
class RunResult:
    """Final result of ``DagEngine.execute``."""

    success: bool
    context: Any
    metrics: RunMetrics
    error: Exception | None = None

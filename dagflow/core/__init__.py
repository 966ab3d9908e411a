"""Core modules for the dagflow engine."""

from dagflow.core.cancellation import CancellationToken, NodeCancelledError
from dagflow.core.models import (
    DagError,
    ErrorStrategy,
    NodeConfig,
    NodeDefinition,
    NodeOutcome,
    NodeStatus,
    Plan,
    RunMetrics,
    RunResult,
    SkipReason,
)
from dagflow.core.planner import (
    CycleDetectedError,
    MissingDependencyError,
    PlanError,
    SelfDependencyError,
    build_plan,
)
from dagflow.core.registry import DuplicateNodeError, NodeRegistry
from dagflow.core.runner import (
    NodeDeps,
    NodeError,
    NodeExecutionError,
    NodeRunner,
    NodeTimeoutError,
)

__all__ = [
    "CancellationToken",
    "CycleDetectedError",
    "DagError",
    "DuplicateNodeError",
    "ErrorStrategy",
    "MissingDependencyError",
    "NodeCancelledError",
    "NodeConfig",
    "NodeDefinition",
    "NodeDeps",
    "NodeError",
    "NodeExecutionError",
    "NodeOutcome",
    "NodeRegistry",
    "NodeRunner",
    "NodeStatus",
    "NodeTimeoutError",
    "Plan",
    "PlanError",
    "RunMetrics",
    "RunResult",
    "SelfDependencyError",
    "SkipReason",
    "build_plan",
]

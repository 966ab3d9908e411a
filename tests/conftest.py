# conftest.py - Shared pytest fixtures for all tests
"""Shared pytest fixtures for the dagflow test suite.

This module provides:
- A mock logger implementing the info/warn/error capability
- Engine fixtures wired to that logger
- Small node factories for building graphs quickly

Async engine code is driven with ``asyncio.run`` so no asyncio pytest
plugin is needed.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable
from unittest.mock import Mock

import pytest
import yaml

from dagflow.core.engine import DagEngine
from dagflow.core.models import NodeDefinition, RunResult


# =============================================================================
# Logger and Engine Fixtures
# =============================================================================


@pytest.fixture
def mock_logger() -> Mock:
    """Create a mock logger with the info/warn/error capability shape.

    Example:
        def test_logs(mock_logger):
            engine = DagEngine(logger=mock_logger)
            ...
            mock_logger.error.assert_called()
    """
    logger = Mock()
    logger.info = Mock()
    logger.warn = Mock()
    logger.error = Mock()
    return logger


@pytest.fixture
def engine(mock_logger: Mock) -> DagEngine:
    """Create an empty engine using the mock logger."""
    return DagEngine(logger=mock_logger)


@pytest.fixture
def run_engine() -> Callable[[DagEngine, Any], RunResult]:
    """Run an engine to completion from synchronous test code.

    Example:
        def test_run(engine, run_engine):
            result = run_engine(engine, {"value": 0})
    """

    def _run(dag: DagEngine, initial: Any) -> RunResult:
        return asyncio.run(dag.execute(initial))

    return _run


# =============================================================================
# Node Factories
# =============================================================================


def patch_node(node_id: str, patch: dict[str, Any] | None = None, **kwargs: Any) -> NodeDefinition:
    """Node whose async work item returns a fixed patch."""

    async def execute(ctx, deps, token):
        return dict(patch or {})

    return NodeDefinition(id=node_id, execute=execute, **kwargs)


def failing_node(node_id: str, message: str = "boom", **kwargs: Any) -> NodeDefinition:
    """Node whose work item always raises RuntimeError(message)."""

    async def execute(ctx, deps, token):
        raise RuntimeError(message)

    return NodeDefinition(id=node_id, execute=execute, **kwargs)


def recording_node(
    node_id: str, log: list[str], patch: dict[str, Any] | None = None, **kwargs: Any
) -> NodeDefinition:
    """Node that appends its id to ``log`` when its work item runs."""

    async def execute(ctx, deps, token):
        log.append(node_id)
        return dict(patch or {})

    return NodeDefinition(id=node_id, execute=execute, **kwargs)


@pytest.fixture
def make_patch_node() -> Callable[..., NodeDefinition]:
    return patch_node


@pytest.fixture
def make_failing_node() -> Callable[..., NodeDefinition]:
    return failing_node


@pytest.fixture
def make_recording_node() -> Callable[..., NodeDefinition]:
    return recording_node


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def sample_settings_file(tmp_path: Path) -> Path:
    """Create a sample settings YAML file.

    Returns:
        Path to the settings file.
    """
    settings = {
        "max_parallel": 2,
        "log_level": "warning",
        "defaults": {"retry_delay_ms": 5},
        "nodes": {
            "charge": {"max_retries": 3, "timeout_ms": 1000},
            "notify": {"on_error": "skip"},
        },
    }
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(settings))
    return config_path


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )

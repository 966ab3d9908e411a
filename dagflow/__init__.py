"""dagflow - in-process DAG execution engine.

Runs named, interdependent nodes against a shared context with per-node
retry, timeout and failure-propagation policy.
"""

__version__ = "0.1.0"

from dagflow.core import *  # noqa: F401,F403
from dagflow.core import __all__ as _core_all
from dagflow.core.engine import DagEngine
from dagflow.config import ConfigError, EngineSettings, load_settings

__all__ = [*_core_all, "ConfigError", "DagEngine", "EngineSettings", "load_settings"]

"""Core workflow engine components.

The node registry and execution engine depend on the node behaviours, which
depend on this package; import them from their modules directly.
"""

from .exceptions import (
    WorkflowEngineError,
    GraphValidationError,
    CycleDetectedError,
    DanglingReferenceError,
    NodeExecutionError,
    NodeRegistryError,
    ExecutionEngineError,
    StorageError,
    ConfigurationError,
)
from .logging import setup_logging, get_logger
from .graph import WorkflowGraph
from .context import ExecutionContext, build_context, build_inputs, merge_outputs
from .run_history import RunHistoryStore, InMemoryRunHistory, SqlRunHistory

__all__ = [
    "WorkflowEngineError",
    "GraphValidationError",
    "CycleDetectedError",
    "DanglingReferenceError",
    "NodeExecutionError",
    "NodeRegistryError",
    "ExecutionEngineError",
    "StorageError",
    "ConfigurationError",
    "setup_logging",
    "get_logger",
    "WorkflowGraph",
    "ExecutionContext",
    "build_context",
    "build_inputs",
    "merge_outputs",
    "RunHistoryStore",
    "InMemoryRunHistory",
    "SqlRunHistory",
]

"""nodeflow: a workflow execution engine for node-graph automation pipelines."""

from .core.execution_engine import ExecutionEngine
from .core.graph import WorkflowGraph
from .core.node_registry import NodeTypeRegistry, create_default_registry
from .core.run_history import InMemoryRunHistory, SqlRunHistory
from .models.core import Connection, Node, NodeType, RunRecord, RunStatus, Workflow, WorkflowSnapshot

__version__ = "1.0.0"

__all__ = [
    "ExecutionEngine",
    "WorkflowGraph",
    "NodeTypeRegistry",
    "create_default_registry",
    "InMemoryRunHistory",
    "SqlRunHistory",
    "Connection",
    "Node",
    "NodeType",
    "RunRecord",
    "RunStatus",
    "Workflow",
    "WorkflowSnapshot",
]

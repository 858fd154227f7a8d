"""Data models for the workflow engine."""

from .core import (
    NodeType,
    NodeStatus,
    RunStatus,
    LogLevel,
    WorkflowStatus,
    Node,
    Connection,
    WorkflowSnapshot,
    WorkflowSummary,
    Workflow,
    LogEntry,
    NodeResult,
    RunRecord,
    NodeTypeInfo,
)

__all__ = [
    "NodeType",
    "NodeStatus",
    "RunStatus",
    "LogLevel",
    "WorkflowStatus",
    "Node",
    "Connection",
    "WorkflowSnapshot",
    "WorkflowSummary",
    "Workflow",
    "LogEntry",
    "NodeResult",
    "RunRecord",
    "NodeTypeInfo",
]

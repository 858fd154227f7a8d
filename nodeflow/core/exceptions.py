"""Exception hierarchy for graph building, node execution and run storage."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(Enum):
    """Where in the engine an error originated."""
    VALIDATION = "validation"
    EXECUTION = "execution"
    STORAGE = "storage"
    CONFIGURATION = "configuration"


class WorkflowEngineError(Exception):
    """
    Base exception for all engine errors.

    ``details`` carries structured data about the failure (offending ids,
    validation messages); ``context`` names the object the failure concerns.
    Context keywords whose value is None are dropped.
    """

    category = ErrorCategory.EXECUTION

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        **context: Any
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = dict(details or {})
        self.context = {key: value for key, value in context.items() if value is not None}
        self.timestamp = datetime.now(timezone.utc)

    def __str__(self) -> str:
        return self.message


class GraphValidationError(WorkflowEngineError):
    """Raised when a workflow graph is structurally invalid."""

    category = ErrorCategory.VALIDATION

    def __init__(self, message: str, validation_errors: Optional[List[str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.validation_errors = list(validation_errors or [])
        if self.validation_errors:
            self.details["validation_errors"] = self.validation_errors


class CycleDetectedError(GraphValidationError):
    """Raised when the connection set contains a directed cycle."""

    def __init__(self, message: str, node_ids: Optional[List[str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.node_ids = list(node_ids or [])
        if self.node_ids:
            self.details["node_ids"] = self.node_ids


class DanglingReferenceError(GraphValidationError):
    """Raised when a connection names a node id that is not in the graph."""

    def __init__(
        self,
        message: str,
        connection_id: Optional[str] = None,
        node_id: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, connection_id=connection_id, node_id=node_id, **kwargs)
        self.connection_id = connection_id
        self.node_id = node_id


class NodeExecutionError(WorkflowEngineError):
    """Raised by a node behaviour; the engine turns it into a node failure."""


class NodeRegistryError(WorkflowEngineError):
    category = ErrorCategory.CONFIGURATION


class ExecutionEngineError(WorkflowEngineError):
    """Raised when the engine refuses or cannot start a run."""


class StorageError(WorkflowEngineError):
    category = ErrorCategory.STORAGE


class ConfigurationError(WorkflowEngineError):
    """Raised when a configuration value is invalid or missing."""

    category = ErrorCategory.CONFIGURATION


def create_error_response(error: WorkflowEngineError) -> Dict[str, Any]:
    """Standard HTTP error body for an engine error."""
    return {
        "error": error.error_code,
        "message": error.message,
        "details": {
            **error.details,
            "category": error.category.value,
            "timestamp": error.timestamp.isoformat()
        },
        "context": error.context
    }

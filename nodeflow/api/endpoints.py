"""FastAPI REST endpoints for the workflow engine."""

from typing import Any, Dict, List, Optional
from fastapi import APIRouter, HTTPException, Depends, Query, status
from pydantic import BaseModel, Field

from ..core.execution_engine import ExecutionEngine
from ..core.node_registry import NodeTypeRegistry
from ..core.run_history import RunHistoryStore
from ..core.graph import WorkflowGraph
from ..core.exceptions import (
    GraphValidationError,
    ExecutionEngineError,
    StorageError,
    WorkflowEngineError,
    create_error_response
)
from ..models.core import NodeTypeInfo, WorkflowSnapshot
from ..core.logging import get_logger

logger = get_logger(__name__)

# Create router
router = APIRouter(prefix="/api/v1", tags=["workflow"])

# Global instances (initialized by the application factory)
_execution_engine: Optional[ExecutionEngine] = None
_node_registry: Optional[NodeTypeRegistry] = None
_run_history: Optional[RunHistoryStore] = None


def init_dependencies(
    execution_engine: ExecutionEngine,
    node_registry: NodeTypeRegistry,
    run_history: RunHistoryStore,
):
    """Initialize the global dependencies."""
    global _execution_engine, _node_registry, _run_history
    _execution_engine = execution_engine
    _node_registry = node_registry
    _run_history = run_history


def get_execution_engine() -> ExecutionEngine:
    """Dependency to get the execution engine."""
    if _execution_engine is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Execution engine not initialized"
        )
    return _execution_engine


def get_node_registry() -> NodeTypeRegistry:
    """Dependency to get the node type registry."""
    if _node_registry is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Node registry not initialized"
        )
    return _node_registry


def get_run_history() -> RunHistoryStore:
    """Dependency to get the run history store."""
    if _run_history is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Run history not initialized"
        )
    return _run_history


# Request/Response models
class WorkflowGraphRequest(WorkflowSnapshot):
    """Node and connection sets of a workflow."""

    def to_snapshot(self) -> WorkflowSnapshot:
        return WorkflowSnapshot(nodes=self.nodes, connections=self.connections)


class RunWorkflowRequest(WorkflowGraphRequest):
    """Request model for running a workflow snapshot."""
    workflow_id: Optional[str] = Field(None, description="Workflow the run belongs to")


class ValidationResult(BaseModel):
    """Result of validating a workflow graph."""
    is_valid: bool
    order: List[str] = Field(default_factory=list, description="Node ids in execution order")
    errors: List[str] = Field(default_factory=list)


@router.get(
    "/node-types",
    response_model=List[NodeTypeInfo],
    summary="List node types",
    description="List the node types the engine can execute"
)
async def list_node_types(
    node_registry: NodeTypeRegistry = Depends(get_node_registry)
) -> List[NodeTypeInfo]:
    return node_registry.list_types()


@router.post(
    "/workflows/validate",
    response_model=ValidationResult,
    summary="Validate a workflow graph",
    description="Check references and acyclicity and return the execution order"
)
async def validate_workflow(request: WorkflowGraphRequest) -> ValidationResult:
    """
    Validate a workflow graph without running it.

    Structural problems are reported in ``errors`` rather than as an HTTP error.
    """
    try:
        graph = WorkflowGraph.from_snapshot(request.to_snapshot())
        order = graph.topological_order()
    except GraphValidationError as e:
        logger.debug(f"Workflow validation failed: {e.message}")
        return ValidationResult(is_valid=False, errors=[e.message, *e.validation_errors])

    return ValidationResult(is_valid=True, order=[node.id for node in order])


@router.post(
    "/runs",
    summary="Execute a workflow",
    description="Run a workflow snapshot to completion and return its run record"
)
async def run_workflow(
    request: RunWorkflowRequest,
    execution_engine: ExecutionEngine = Depends(get_execution_engine)
) -> Dict[str, Any]:
    """
    Execute a workflow snapshot.

    Returns:
        The finalized run record in its camelCase form

    Raises:
        HTTPException: 422 if the graph is malformed, 503 if the engine is busy
    """
    try:
        logger.info(f"Starting run for workflow {request.workflow_id or '<unsaved>'} "
                    f"({len(request.nodes)} nodes, {len(request.connections)} connections)")

        record = await execution_engine.execute(request.to_snapshot(), workflow_id=request.workflow_id)
        return record.to_payload()

    except GraphValidationError as e:
        logger.warning(f"Rejected workflow run: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=create_error_response(e)
        )
    except ExecutionEngineError as e:
        logger.error(f"Execution engine error: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=create_error_response(e)
        )
    except WorkflowEngineError as e:
        logger.error(f"Workflow engine error during run: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=create_error_response(e)
        )


@router.post(
    "/runs/{run_id}/cancel",
    summary="Cancel a run",
    description="Stop dispatching further nodes of an active run"
)
async def cancel_run(
    run_id: str,
    execution_engine: ExecutionEngine = Depends(get_execution_engine)
) -> Dict[str, Any]:
    cancelled = execution_engine.cancel_run(run_id)
    if not cancelled:
        return {"message": f"Run {run_id} could not be cancelled (may not be active)", "cancelled": False}
    return {"message": f"Run {run_id} cancellation requested", "cancelled": True}


@router.get(
    "/runs",
    summary="List runs",
    description="List finalized runs, newest first"
)
async def list_runs(
    workflow_id: Optional[str] = Query(None, description="Only runs of this workflow"),
    limit: Optional[int] = Query(None, ge=0, description="Maximum number of runs to return"),
    run_history: RunHistoryStore = Depends(get_run_history)
) -> List[Dict[str, Any]]:
    try:
        return [record.to_payload() for record in run_history.list(workflow_id=workflow_id, limit=limit)]
    except StorageError as e:
        logger.error(f"Storage error listing runs: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=create_error_response(e)
        )


@router.get(
    "/runs/{run_id}",
    summary="Get a run",
    description="Get one finalized run record by its ID"
)
async def get_run(
    run_id: str,
    run_history: RunHistoryStore = Depends(get_run_history)
) -> Dict[str, Any]:
    try:
        return run_history.get(run_id).to_payload()
    except StorageError as e:
        if e.context.get("operation") == "get" and "not found" in e.message:
            logger.warning(f"Run not found: {run_id}")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={
                    "error": "RunNotFound",
                    "message": f"Run with ID '{run_id}' not found",
                    "details": {"run_id": run_id}
                }
            )
        logger.error(f"Storage error loading run {run_id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=create_error_response(e)
        )

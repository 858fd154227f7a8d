"""Execution Engine for workflow runs."""

import asyncio
import logging
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from ..models.core import (
    LogEntry, LogLevel, Node, NodeResult, NodeStatus, RunRecord, RunStatus,
    Workflow, WorkflowSnapshot
)
from .context import build_context
from .exceptions import CycleDetectedError, ExecutionEngineError
from .graph import WorkflowGraph
from .logging import get_logger, log_with_context
from .node_registry import NodeTypeRegistry, get_registry
from .run_history import InMemoryRunHistory, RunHistoryStore

logger = get_logger(__name__)

CANCELLED_MESSAGE = "Cancelled"

# Returned by _invoke when the node timeout expires
_TIMED_OUT = object()


class _RunState:
    """Mutable bookkeeping of one in-flight run."""

    def __init__(self, run_id: str, nodes: List[Node]):
        self.run_id = run_id
        self.logs: List[LogEntry] = []
        self.outputs: Dict[str, object] = {}
        self.statuses: Dict[str, NodeStatus] = {node.id: NodeStatus.IDLE for node in nodes}
        self.error_message: Optional[str] = None
        self.failed = False

    def log(self, message: str, level: LogLevel, node_id: Optional[str] = None) -> None:
        self.logs.append(LogEntry(node_id=node_id, level=level, message=message))

    def fail(self, message: str) -> None:
        self.failed = True
        if self.error_message is None:
            self.error_message = message


class ExecutionEngine:
    """Runs workflow snapshots node by node in topological order.

    Each run owns its outputs, node statuses and log buffer, so several runs
    may execute at the same time on one engine. Finalized records are
    appended to the run history store.
    """

    def __init__(
        self,
        registry: Optional[NodeTypeRegistry] = None,
        history: Optional[RunHistoryStore] = None,
        node_timeout: Optional[float] = None,
        max_concurrent_runs: int = 10,
    ):
        """Initialize the execution engine.

        Args:
            registry: Node behaviours, looked up by type tag
            history: Store receiving every finalized run record
            node_timeout: Seconds a single node may run; None disables it
            max_concurrent_runs: Maximum number of runs executing at once
        """
        self.registry = registry or get_registry()
        self.history = history if history is not None else InMemoryRunHistory()
        self.node_timeout = node_timeout
        self._max_concurrent_runs = max_concurrent_runs

        self._active_runs: Dict[str, asyncio.Event] = {}
        self._lock = threading.RLock()

        logger.info(f"ExecutionEngine initialized with max_concurrent_runs={max_concurrent_runs}")

    async def execute(
        self,
        workflow_or_snapshot: Union[Workflow, WorkflowSnapshot],
        run_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
        workflow_id: Optional[str] = None,
    ) -> RunRecord:
        """
        Execute one run of a workflow and return its finalized record.

        Args:
            workflow_or_snapshot: A stored workflow or a bare node/connection snapshot
            run_id: Identifier for the run; generated when omitted
            cancel_event: Event that stops dispatching further nodes once set
            workflow_id: Workflow the run belongs to; taken from a Workflow when omitted

        Returns:
            The finalized RunRecord, already appended to the history store

        Raises:
            DanglingReferenceError: If a connection names an unknown node
            ExecutionEngineError: If the run id is in use or too many runs are active
        """
        if isinstance(workflow_or_snapshot, Workflow):
            workflow_id = workflow_id or workflow_or_snapshot.id
            snapshot = workflow_or_snapshot.snapshot()
        else:
            snapshot = workflow_or_snapshot

        # Dangling references are rejected before a run exists
        graph = WorkflowGraph.from_snapshot(snapshot)

        run_id = run_id or str(uuid.uuid4())
        cancel_event = cancel_event or asyncio.Event()
        self._register_run(run_id, cancel_event, workflow_id)

        timestamp = datetime.now(timezone.utc)
        started = time.perf_counter()
        state = _RunState(run_id, graph.nodes)

        try:
            await self._run_graph(graph, state, cancel_event)
        finally:
            with self._lock:
                self._active_runs.pop(run_id, None)

        record = RunRecord(
            id=run_id,
            workflow_id=workflow_id,
            timestamp=timestamp,
            status=RunStatus.FAILED if state.failed else RunStatus.SUCCESS,
            duration_ms=(time.perf_counter() - started) * 1000,
            logs=state.logs,
            node_statuses=state.statuses,
            error_message=state.error_message,
        )

        await asyncio.to_thread(self.history.append, record)

        log_with_context(
            logger, logging.INFO,
            f"Run {run_id} finished with status {record.status.value}",
            run_id=run_id, workflow_id=workflow_id,
            duration_ms=round(record.duration_ms, 3), log_entries=len(record.logs),
        )
        return record

    def run_sync(
        self,
        workflow_or_snapshot: Union[Workflow, WorkflowSnapshot],
        run_id: Optional[str] = None,
        workflow_id: Optional[str] = None,
    ) -> RunRecord:
        """Blocking wrapper around ``execute`` for callers without an event loop."""
        return asyncio.run(self.execute(workflow_or_snapshot, run_id=run_id, workflow_id=workflow_id))

    def cancel_run(self, run_id: str) -> bool:
        """
        Request cancellation of an active run.

        The node in flight finishes; no further node is dispatched.

        Returns:
            True if the run was active, False otherwise
        """
        with self._lock:
            event = self._active_runs.get(run_id)
        if event is None:
            logger.warning(f"Cannot cancel run {run_id}: not active")
            return False
        event.set()
        logger.info(f"Cancellation requested for run {run_id}")
        return True

    def get_active_runs(self) -> List[str]:
        with self._lock:
            return list(self._active_runs)

    def is_run_active(self, run_id: str) -> bool:
        with self._lock:
            return run_id in self._active_runs

    def _register_run(self, run_id: str, cancel_event: asyncio.Event, workflow_id: Optional[str]) -> None:
        with self._lock:
            if run_id in self._active_runs:
                raise ExecutionEngineError(f"Run {run_id} is already active", run_id=run_id, workflow_id=workflow_id)
            if len(self._active_runs) >= self._max_concurrent_runs:
                raise ExecutionEngineError(
                    f"Too many active runs (limit {self._max_concurrent_runs}), please try again later",
                    run_id=run_id, workflow_id=workflow_id,
                )
            self._active_runs[run_id] = cancel_event

        log_with_context(logger, logging.INFO, f"Run {run_id} started", run_id=run_id, workflow_id=workflow_id)

    async def _run_graph(self, graph: WorkflowGraph, state: _RunState, cancel_event: asyncio.Event) -> None:
        try:
            order = graph.topological_order()
        except CycleDetectedError as e:
            logger.error(f"Run {state.run_id} rejected: {e.message}")
            state.log(e.message, LogLevel.ERROR)
            state.fail(e.message)
            return

        for index, node in enumerate(order):
            if cancel_event.is_set():
                self._mark_cancelled(state, len(order) - index)
                return

            blocked = [
                pred_id for pred_id in graph.predecessors(node.id)
                if state.statuses.get(pred_id) != NodeStatus.SUCCESS
            ]
            if blocked:
                state.log(
                    f"Skipping {self._label(node)}: upstream node did not succeed.",
                    LogLevel.WARN, node_id=node.id,
                )
                continue

            await self._run_node(node, graph, order, state)

        # Cancelled while the last node was in flight
        if cancel_event.is_set():
            self._mark_cancelled(state, 0)

    @staticmethod
    def _mark_cancelled(state: _RunState, remaining: int) -> None:
        state.log(f"Run cancelled; {remaining} node(s) not executed.", LogLevel.WARN)
        state.fail(CANCELLED_MESSAGE)
        logger.info(f"Run {state.run_id} cancelled with {remaining} node(s) pending")

    async def _invoke(self, behavior, ctx):
        """Run ``behavior`` under the node timeout; ``_TIMED_OUT`` if it expired first."""
        task = asyncio.ensure_future(behavior.execute(ctx))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.node_timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        return _TIMED_OUT

    async def _run_node(self, node: Node, graph: WorkflowGraph, order: List[Node], state: _RunState) -> None:
        behavior = self.registry.resolve(node.type)
        label = self._label(node, behavior.label)
        ctx = build_context(node, graph, state.outputs, order, run_id=state.run_id)
        state.statuses[node.id] = NodeStatus.RUNNING

        try:
            result = await self._invoke(behavior, ctx)
        except Exception as e:
            logger.exception(f"Node {node.id} raised during run {state.run_id}")
            result = NodeResult.failure(getattr(e, "message", None) or str(e) or e.__class__.__name__)

        if result is _TIMED_OUT:
            result = NodeResult.failure(f"timed out after {self.node_timeout}s")

        state.logs.extend(ctx.logs)

        if result.ok:
            state.outputs[node.id] = result.output
            state.statuses[node.id] = NodeStatus.SUCCESS
            return

        message = f"Node {label} failed: {result.error}"
        state.log(message, LogLevel.ERROR, node_id=node.id)
        state.statuses[node.id] = NodeStatus.ERROR
        state.fail(message)
        log_with_context(logger, logging.WARNING, message, run_id=state.run_id, node_id=node.id)

    @staticmethod
    def _label(node: Node, fallback: str = "") -> str:
        return node.label or fallback or node.id

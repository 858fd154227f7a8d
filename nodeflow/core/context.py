"""Per-node execution contexts and the fan-in input rule."""

from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..models.core import LogEntry, LogLevel, Node, clone_config
from .graph import WorkflowGraph

LogSink = Callable[[LogEntry], None]


class ExecutionContext:
    """Everything a node behaviour may read during one execution.

    Behaviours read ``config`` and ``inputs`` and report progress through
    ``log``; entries are tagged with the node id and kept in emission order.
    """

    def __init__(
        self,
        node_id: str,
        inputs: List[Any],
        config: Dict[str, Any],
        run_id: Optional[str] = None,
        sink: Optional[LogSink] = None,
    ):
        self.node_id = node_id
        self.inputs = inputs
        self.config = config
        self.run_id = run_id
        self.logs: List[LogEntry] = []
        self._sink = sink

    def log(self, message: str, level: Union[LogLevel, str] = LogLevel.INFO) -> LogEntry:
        entry = LogEntry(node_id=self.node_id, level=LogLevel(level), message=message)
        self.logs.append(entry)
        if self._sink is not None:
            self._sink(entry)
        return entry


def merge_outputs(outputs: Sequence[Any]) -> List[Any]:
    """
    Concatenate upstream outputs into one inputs list.

    List and tuple outputs are flattened one level; any other output,
    including dicts and None, is appended as a single element.
    """
    inputs: List[Any] = []
    for output in outputs:
        if isinstance(output, (list, tuple)):
            inputs.extend(output)
        else:
            inputs.append(output)
    return inputs


def build_inputs(
    node_id: str,
    graph: WorkflowGraph,
    outputs: Dict[str, Any],
    order: Sequence[Node],
) -> List[Any]:
    """
    Inputs for ``node_id`` given the outputs computed so far.

    Predecessors are visited in their topological position, not in
    connection order. A node without predecessors gets an empty list.
    """
    upstream = set(graph.predecessors(node_id))
    if not upstream:
        return []
    ordered = [node.id for node in order if node.id in upstream]
    return merge_outputs([outputs[pred_id] for pred_id in ordered if pred_id in outputs])


def build_context(
    node: Node,
    graph: WorkflowGraph,
    outputs: Dict[str, Any],
    order: Sequence[Node],
    run_id: Optional[str] = None,
    sink: Optional[LogSink] = None,
) -> ExecutionContext:
    return ExecutionContext(
        node_id=node.id,
        inputs=build_inputs(node.id, graph, outputs, order),
        config=clone_config(node.config),
        run_id=run_id,
        sink=sink,
    )

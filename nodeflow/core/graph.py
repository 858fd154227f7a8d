"""Graph model for workflow node and connection sets."""

import heapq
from typing import Dict, List, Optional

from ..models.core import Connection, Node, WorkflowSnapshot
from .exceptions import CycleDetectedError, DanglingReferenceError, GraphValidationError
from .logging import get_logger

logger = get_logger(__name__)


class WorkflowGraph:
    """Directed graph of workflow nodes with a stable topological order.

    Node insertion order is remembered and used as the tie-break between
    nodes that become ready at the same time, so the execution order of a
    given graph never depends on dict or set iteration.
    """

    def __init__(self):
        self._nodes: Dict[str, Node] = {}
        self._connections: Dict[str, Connection] = {}

    @classmethod
    def from_snapshot(cls, snapshot: WorkflowSnapshot) -> 'WorkflowGraph':
        """
        Build a graph from a workflow snapshot.

        Raises:
            DanglingReferenceError: If a connection names an unknown node
            GraphValidationError: If node ids or connections are malformed
        """
        graph = cls()
        for node in snapshot.nodes:
            graph.add_node(node)
        for connection in snapshot.connections:
            graph.add_connection(connection)
        return graph

    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes.values())

    @property
    def connections(self) -> List[Connection]:
        return list(self._connections.values())

    def get_node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def add_node(self, node: Node) -> None:
        if node.id in self._nodes:
            raise GraphValidationError(f"Node '{node.id}' already exists")
        self._nodes[node.id] = node

    def remove_node(self, node_id: str) -> List[Connection]:
        """
        Remove a node and every connection that references it.

        Returns:
            The connections removed along with the node
        """
        if node_id not in self._nodes:
            raise GraphValidationError(f"Node '{node_id}' does not exist")

        removed = [
            conn for conn in self._connections.values()
            if conn.source_id == node_id or conn.target_id == node_id
        ]
        for conn in removed:
            del self._connections[conn.id]
        del self._nodes[node_id]

        logger.debug(f"Removed node {node_id} and {len(removed)} connection(s)")
        return removed

    def add_connection(self, connection: Connection) -> None:
        """
        Add a directed connection between two existing nodes.

        Cycles are accepted here; they are reported by topological_order().
        """
        for endpoint in (connection.source_id, connection.target_id):
            if endpoint not in self._nodes:
                raise DanglingReferenceError(
                    f"Connection '{connection.id}' references non-existent node '{endpoint}'",
                    connection_id=connection.id,
                    node_id=endpoint,
                )
        if connection.source_id == connection.target_id:
            raise GraphValidationError("Cannot connect a node to itself")
        if connection.id in self._connections:
            raise GraphValidationError(f"Connection '{connection.id}' already exists")
        if any(
            conn.source_id == connection.source_id and conn.target_id == connection.target_id
            for conn in self._connections.values()
        ):
            raise GraphValidationError(
                f"Connection from '{connection.source_id}' to '{connection.target_id}' already exists"
            )
        self._connections[connection.id] = connection

    def remove_connection(self, connection_id: str) -> bool:
        return self._connections.pop(connection_id, None) is not None

    def predecessors(self, node_id: str) -> List[str]:
        """Direct upstream node ids, in connection insertion order."""
        return [conn.source_id for conn in self._connections.values() if conn.target_id == node_id]

    def successors(self, node_id: str) -> List[str]:
        """Direct downstream node ids, in connection insertion order."""
        return [conn.target_id for conn in self._connections.values() if conn.source_id == node_id]

    def entry_points(self) -> List[Node]:
        """Nodes without incoming connections."""
        targets = {conn.target_id for conn in self._connections.values()}
        return [node for node in self._nodes.values() if node.id not in targets]

    def would_create_cycle(self, source_id: str, target_id: str) -> bool:
        """Whether connecting source -> target would close a directed cycle."""
        if source_id == target_id:
            return True
        # a cycle appears iff source is already reachable from target
        stack = [target_id]
        seen = set()
        while stack:
            current = stack.pop()
            if current == source_id:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.successors(current))
        return False

    def topological_order(self) -> List[Node]:
        """
        Order nodes so every node follows all of its direct predecessors.

        Kahn's algorithm; among ready nodes the earliest inserted goes first.

        Raises:
            CycleDetectedError: If at least one directed cycle exists
        """
        position = {node_id: index for index, node_id in enumerate(self._nodes)}
        in_degree = {node_id: 0 for node_id in self._nodes}
        adjacency: Dict[str, List[str]] = {node_id: [] for node_id in self._nodes}

        for conn in self._connections.values():
            adjacency[conn.source_id].append(conn.target_id)
            in_degree[conn.target_id] += 1

        ready = [position[node_id] for node_id, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        ordered_ids = list(self._nodes)
        order: List[Node] = []

        while ready:
            node_id = ordered_ids[heapq.heappop(ready)]
            order.append(self._nodes[node_id])
            for successor in adjacency[node_id]:
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    heapq.heappush(ready, position[successor])

        if len(order) != len(self._nodes):
            stuck = [node_id for node_id in ordered_ids if in_degree[node_id] > 0]
            raise CycleDetectedError(
                f"Cycle detected among nodes: {', '.join(stuck)}",
                node_ids=stuck,
            )

        return order

"""Node type registry mapping type tags to runtime behaviours."""

import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional, Union

from ..config import AppConfig, get_config
from ..integrations.advisors import ChatCompletionAdvisor, MovingAverageAdvisor
from ..integrations.http import AiohttpTransport
from ..integrations.sql import SqlQueryRunner, SqlRecordSink
from ..models.core import NodeType, NodeTypeInfo
from ..nodes import (
    DatabaseQueryBehavior,
    HttpRequestBehavior,
    ScriptBehavior,
    StorageBehavior,
    StrategyBehavior,
    TimerBehavior,
)
from ..nodes.base import NodeBehavior, PassThroughBehavior
from .exceptions import NodeRegistryError
from .logging import get_logger

logger = get_logger(__name__)

# Closed-set tags that have no behaviour of their own and forward their inputs.
PASS_THROUGH_TYPES = {
    NodeType.EXECUTION: "Execution",
    NodeType.FILTER: "Filter",
    NodeType.DATA_COLLECT: "Legacy Data",
    NodeType.TRANSFORM: "Transform",
    NodeType.SOURCE: "Source",
}


def _tag(node_type: Union[NodeType, str]) -> str:
    return node_type.value if isinstance(node_type, NodeType) else str(node_type or "").strip()


class NodeTypeRegistry:
    """Registry of node behaviours, looked up by exact type tag.

    Unknown tags resolve to the default pass-through behaviour instead of
    raising, so legacy or newer type tags never abort a run.
    """

    def __init__(self, default: Optional[NodeBehavior] = None):
        self._behaviors: Dict[str, NodeBehavior] = {}
        self._default = default or PassThroughBehavior()
        self._lock = threading.RLock()

    @property
    def default(self) -> NodeBehavior:
        return self._default

    def register(self, behavior: NodeBehavior) -> None:
        """
        Register a behaviour under its ``node_type``.

        Raises:
            NodeRegistryError: If the tag is empty or already registered
        """
        if not isinstance(behavior, NodeBehavior):
            raise NodeRegistryError(f"{behavior!r} is not a NodeBehavior")

        tag = _tag(behavior.node_type)
        if not tag:
            raise NodeRegistryError("Node type cannot be empty")

        with self._lock:
            if tag in self._behaviors:
                raise NodeRegistryError(f"Node type '{tag}' is already registered", node_type=tag)
            self._behaviors[tag] = behavior

        logger.debug(f"Registered node type '{tag}' -> {behavior.__class__.__name__}")

    def resolve(self, node_type: Union[NodeType, str]) -> NodeBehavior:
        """Behaviour for ``node_type``, or the default pass-through."""
        behavior = self._behaviors.get(_tag(node_type))
        if behavior is None:
            logger.debug(f"Node type '{_tag(node_type)}' not registered, using default behaviour")
            return self._default
        return behavior

    def is_registered(self, node_type: Union[NodeType, str]) -> bool:
        return _tag(node_type) in self._behaviors

    def list_types(self) -> List[NodeTypeInfo]:
        with self._lock:
            return [behavior.info() for behavior in self._behaviors.values()]


def create_default_registry(
    http_transport=None,
    query_runner=None,
    record_sink=None,
    local_advisor=None,
    remote_advisor=None,
    clock: Optional[Callable[[], datetime]] = None,
    config: Optional[AppConfig] = None,
) -> NodeTypeRegistry:
    """
    Build a registry with every built-in node type.

    Collaborators default to the real integrations configured from ``config``;
    pass fakes to run graphs without network or database access.
    """
    config = config or get_config()
    http_transport = http_transport or AiohttpTransport(timeout=config.http_timeout)
    query_runner = query_runner or SqlQueryRunner(default_url=config.query_database_url)
    record_sink = record_sink or SqlRecordSink(default_url=config.storage_database_url)
    local_advisor = local_advisor or MovingAverageAdvisor()
    remote_advisor = remote_advisor or ChatCompletionAdvisor(http_transport)

    registry = NodeTypeRegistry()
    registry.register(TimerBehavior(clock=clock))
    registry.register(DatabaseQueryBehavior(query_runner))
    registry.register(HttpRequestBehavior(http_transport))
    registry.register(ScriptBehavior(timeout=config.node_timeout))
    registry.register(StrategyBehavior(local_advisor, remote_advisor, node_type=NodeType.LLM.value))
    registry.register(StrategyBehavior(local_advisor, remote_advisor, node_type=NodeType.STRATEGY.value))
    registry.register(StorageBehavior(record_sink))
    for node_type, label in PASS_THROUGH_TYPES.items():
        registry.register(PassThroughBehavior(node_type.value, label))

    return registry


# Global registry instance
_registry: Optional[NodeTypeRegistry] = None


def get_registry() -> NodeTypeRegistry:
    """Get the process-wide registry (lazy initialization)."""
    global _registry
    if _registry is None:
        _registry = create_default_registry()
    return _registry


def reset_registry() -> None:
    """Drop the process-wide registry (mainly for testing)."""
    global _registry
    _registry = None

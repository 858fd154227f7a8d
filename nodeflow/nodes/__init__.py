"""Node behaviours, one per concrete node type."""

from .base import NodeBehavior, PassThroughBehavior
from .timer import TimerBehavior
from .data import DatabaseQueryBehavior, HttpRequestBehavior
from .script import ScriptBehavior
from .strategy import StrategyBehavior
from .storage import StorageBehavior

__all__ = [
    "NodeBehavior",
    "PassThroughBehavior",
    "TimerBehavior",
    "DatabaseQueryBehavior",
    "HttpRequestBehavior",
    "ScriptBehavior",
    "StrategyBehavior",
    "StorageBehavior",
]

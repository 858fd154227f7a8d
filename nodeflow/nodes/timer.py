"""Timer node: the logical trigger at the head of a pipeline."""

from datetime import datetime, timezone
from typing import Callable, Optional

from ..core.context import ExecutionContext
from ..models.configs import TimerConfig
from ..models.core import LogLevel, NodeResult, NodeType
from .base import NodeBehavior


class TimerBehavior(NodeBehavior):
    """Emits the trigger timestamp. ``cron`` is descriptive; nothing is scheduled."""

    node_type = NodeType.TIMER.value
    label = "Cron Timer"
    description = "Triggers workflow execution based on a schedule."
    config_model = TimerConfig

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def execute(self, ctx: ExecutionContext) -> NodeResult:
        self.parse_config(ctx)
        timestamp = self._clock().isoformat()
        ctx.log(f"Timer triggered at {timestamp}", LogLevel.SUCCESS)
        return NodeResult.success({"timestamp": timestamp, "trigger": "cron"})

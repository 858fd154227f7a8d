"""Storage sink node."""

from ..core.context import ExecutionContext
from ..integrations.sql import RecordSink
from ..models.configs import StorageConfig
from ..models.core import LogLevel, NodeResult, NodeType
from .base import NodeBehavior


class StorageBehavior(NodeBehavior):
    node_type = NodeType.STORAGE.value
    label = "Storage"
    description = "Persist results to database or file."
    config_model = StorageConfig

    def __init__(self, sink: RecordSink):
        self.sink = sink

    async def execute(self, ctx: ExecutionContext) -> NodeResult:
        config = self.parse_config(ctx)
        ctx.log(f"Opening connection to {config.db_type}...")
        ctx.log(f"Writing {len(ctx.inputs)} records to table '{config.table}'...")
        written = await self.sink.write(config.connection_string, config.table, ctx.inputs)
        ctx.log("Write confirmed.", LogLevel.SUCCESS)
        return NodeResult.success({"saved": True, "records": written})

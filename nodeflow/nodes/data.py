"""Data-fetching nodes: SQL queries and HTTP requests."""

from ..core.context import ExecutionContext
from ..integrations.http import HttpTransport
from ..integrations.sql import QueryRunner
from ..models.configs import DatabaseQueryConfig, HttpRequestConfig
from ..models.core import LogLevel, NodeResult, NodeType
from .base import NodeBehavior


class DatabaseQueryBehavior(NodeBehavior):
    node_type = NodeType.DATABASE_QUERY.value
    label = "DB Query"
    description = "Executes SQL queries to fetch data."
    config_model = DatabaseQueryConfig

    def __init__(self, runner: QueryRunner):
        self.runner = runner

    async def execute(self, ctx: ExecutionContext) -> NodeResult:
        config = self.parse_config(ctx)
        if not config.query.strip():
            return NodeResult.failure("No query configured")

        ctx.log(f"Connecting to {'Database' if config.connection_string else 'Localhost'}...")
        rows = await self.runner.fetch(config.connection_string, config.query)
        ctx.log(f"Executed query. Fetched {len(rows)} rows.", LogLevel.SUCCESS)
        return NodeResult.success({"rows": len(rows), "data": rows})


class HttpRequestBehavior(NodeBehavior):
    """
    Calls an external API.

    POST and PUT requests without a configured body send the node inputs
    as the JSON body. Responses with status >= 400 fail the node.
    """

    node_type = NodeType.HTTP_REQUEST.value
    label = "HTTP Request"
    description = "Makes HTTP/HTTPS requests to external APIs."
    config_model = HttpRequestConfig

    def __init__(self, transport: HttpTransport):
        self.transport = transport

    async def execute(self, ctx: ExecutionContext) -> NodeResult:
        config = self.parse_config(ctx)
        if not config.url:
            return NodeResult.failure("No URL configured")

        body = config.body
        if body is None and config.method in ("POST", "PUT") and ctx.inputs:
            body = list(ctx.inputs)

        ctx.log(f"Sending {config.method} request to {config.url}...")
        response = await self.transport.request(config.method, config.url, config.headers, body)
        if not response.ok:
            return NodeResult.failure(f"HTTP {response.status} {response.reason}".strip())

        ctx.log(f"Response: {response.status} {response.reason}".strip(), LogLevel.SUCCESS)
        return NodeResult.success({"status": response.status, "body": response.body})

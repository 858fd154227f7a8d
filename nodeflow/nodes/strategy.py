"""AI-assisted strategy node."""

import json

from ..core.context import ExecutionContext
from ..core.logging import get_logger
from ..integrations.advisors import StrategyAdvisor
from ..models.configs import StrategyConfig
from ..models.core import LogLevel, NodeResult, NodeType
from .base import NodeBehavior

logger = get_logger(__name__)


class StrategyBehavior(NodeBehavior):
    """
    Produces a trading signal from upstream data.

    Nodes configured with an API key ask the remote model; the others use
    the local advisor. ``{{inputs}}`` in the user prompt is replaced by the
    JSON-encoded inputs. Both paths log the same progress messages.
    """

    node_type = NodeType.STRATEGY.value
    label = "LLM Strategy"
    description = "AI-powered processing using DeepSeek, GPT-4, etc."
    config_model = StrategyConfig

    def __init__(self, local_advisor: StrategyAdvisor, remote_advisor: StrategyAdvisor,
                 node_type: str = NodeType.STRATEGY.value):
        self.local_advisor = local_advisor
        self.remote_advisor = remote_advisor
        self.node_type = node_type

    async def execute(self, ctx: ExecutionContext) -> NodeResult:
        config = self.parse_config(ctx)
        ctx.log(f"Initializing {config.provider} client ({config.model})...")

        prompt = config.user_prompt
        if ctx.inputs:
            prompt = prompt.replace("{{inputs}}", json.dumps(ctx.inputs, default=str))
            ctx.log(f"Context injected: {len(ctx.inputs)} records.")

        advisor = self.remote_advisor if config.api_key else self.local_advisor
        logger.debug(f"Node {ctx.node_id} using {advisor.__class__.__name__}")

        ctx.log(f"Sending request to {config.provider} API...")
        advice = await advisor.advise(config, prompt, list(ctx.inputs))
        ctx.log("Received response from model.", LogLevel.SUCCESS)

        return NodeResult.success({
            "signal": advice.signal,
            "confidence": advice.confidence,
            "provider": config.provider,
            "model": config.model,
            "response": advice.response,
        })

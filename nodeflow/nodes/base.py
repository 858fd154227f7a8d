"""Base class for node behaviours."""

from abc import ABC, abstractmethod
from typing import Any, Type

from pydantic import ValidationError

from ..core.context import ExecutionContext
from ..core.exceptions import NodeExecutionError
from ..models.configs import GenericConfig, NodeConfig
from ..models.core import NodeResult, NodeTypeInfo


class NodeBehavior(ABC):
    """
    Runtime behaviour bound to one node type tag.

    Subclasses set ``node_type``, ``label`` and ``description`` and implement
    ``execute``. Behaviours are stateless apart from the collaborators passed
    to their constructor, so a single instance serves every run.
    """

    node_type: str = ""
    label: str = ""
    description: str = ""
    config_model: Type[NodeConfig] = GenericConfig

    @abstractmethod
    async def execute(self, ctx: ExecutionContext) -> NodeResult:
        """Run the node against ``ctx`` and return its result."""

    def parse_config(self, ctx: ExecutionContext) -> Any:
        """Validate ``ctx.config`` against this behaviour's config model."""
        try:
            return self.config_model.model_validate(ctx.config)
        except ValidationError as e:
            raise NodeExecutionError(
                f"Invalid {self.label or self.node_type} configuration: {e.errors()[0]['msg']}",
                node_id=ctx.node_id,
            ) from e

    def info(self) -> NodeTypeInfo:
        return NodeTypeInfo(type=self.node_type, label=self.label, description=self.description)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} type={self.node_type!r}>"


class PassThroughBehavior(NodeBehavior):
    """Forwards its inputs unchanged and logs nothing."""

    label = "Generic Node"
    description = "Generic Node"

    def __init__(self, node_type: str = "", label: str = "", description: str = ""):
        self.node_type = node_type
        if label:
            self.label = label
        if description:
            self.description = description

    async def execute(self, ctx: ExecutionContext) -> NodeResult:
        return NodeResult.success(ctx.inputs)

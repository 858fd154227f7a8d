"""Tests for the node type registry."""

import pytest

from nodeflow.core.context import ExecutionContext
from nodeflow.core.exceptions import NodeRegistryError
from nodeflow.core.node_registry import NodeTypeRegistry
from nodeflow.models.core import NodeResult, NodeType
from nodeflow.nodes.base import NodeBehavior, PassThroughBehavior


class EchoBehavior(NodeBehavior):
    node_type = "ECHO"
    label = "Echo"
    description = "Echoes its config."

    async def execute(self, ctx: ExecutionContext) -> NodeResult:
        return NodeResult.success(ctx.config)


class TestNodeTypeRegistry:
    """Test registration and lookup."""

    def test_register_and_resolve(self):
        registry = NodeTypeRegistry()
        behavior = EchoBehavior()

        registry.register(behavior)

        assert registry.resolve("ECHO") is behavior
        assert registry.is_registered("ECHO")

    def test_duplicate_registration_rejected(self):
        registry = NodeTypeRegistry()
        registry.register(EchoBehavior())
        with pytest.raises(NodeRegistryError):
            registry.register(EchoBehavior())

    def test_empty_tag_rejected(self):
        registry = NodeTypeRegistry()
        with pytest.raises(NodeRegistryError):
            registry.register(PassThroughBehavior(""))

    def test_non_behavior_rejected(self):
        registry = NodeTypeRegistry()
        with pytest.raises(NodeRegistryError):
            registry.register(object())

    def test_unknown_type_resolves_to_default(self):
        registry = NodeTypeRegistry()
        behavior = registry.resolve("SOMETHING_NEW")

        assert behavior is registry.default
        assert isinstance(behavior, PassThroughBehavior)
        assert not registry.is_registered("SOMETHING_NEW")

    async def test_default_forwards_inputs(self):
        registry = NodeTypeRegistry()
        ctx = ExecutionContext("n1", [1, {"a": 2}], {})

        result = await registry.resolve("LEGACY").execute(ctx)

        assert result.ok
        assert result.output == [1, {"a": 2}]
        assert ctx.logs == []


class TestDefaultRegistry:
    """Test the registry built with every node type."""

    def test_all_closed_set_types_registered(self, registry):
        for node_type in NodeType:
            assert registry.is_registered(node_type), node_type

    def test_list_types_metadata(self, registry):
        infos = {info.type: info for info in registry.list_types()}

        assert infos["TIMER"].label == "Cron Timer"
        assert infos["STORAGE"].description == "Persist results to database or file."
        assert infos["LLM"].label == infos["STRATEGY"].label == "LLM Strategy"
        assert len(infos) == len(NodeType)

    def test_resolve_accepts_enum_and_string(self, registry):
        assert registry.resolve(NodeType.SCRIPT) is registry.resolve("SCRIPT")

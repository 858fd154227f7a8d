"""Core Pydantic models for the workflow engine."""

import copy
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NodeType(str, Enum):
    """Closed set of node type tags understood by the console."""
    TIMER = "TIMER"
    SOURCE = "SOURCE"
    DATA_COLLECT = "DATA_COLLECT"
    TRANSFORM = "TRANSFORM"
    SCRIPT = "SCRIPT"
    LLM = "LLM"
    STRATEGY = "STRATEGY"
    FILTER = "FILTER"
    EXECUTION = "EXECUTION"
    STORAGE = "STORAGE"
    DATABASE_QUERY = "DATABASE_QUERY"
    HTTP_REQUEST = "HTTP_REQUEST"


class NodeStatus(str, Enum):
    """Transient per-node status within one run."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class RunStatus(str, Enum):
    """Run lifecycle. Only SUCCESS and FAILED are terminal."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class LogLevel(str, Enum):
    """Levels of user-facing run log entries."""
    INFO = "info"
    SUCCESS = "success"
    WARN = "warn"
    ERROR = "error"


class WorkflowStatus(str, Enum):
    """Lifecycle status of a stored workflow definition."""
    ACTIVE = "active"
    DRAFT = "draft"
    ARCHIVED = "archived"


class Node(BaseModel):
    """A typed, configurable step of a workflow graph."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id, description="Unique identifier for the node")
    type: Union[NodeType, str] = Field(..., description="Node type tag; unknown tags are kept verbatim")
    label: str = Field(default="", description="Display name")
    config: Dict[str, Any] = Field(default_factory=dict, description="Type-dependent configuration")
    x: float = Field(default=0.0, description="Canvas position (UI only)")
    y: float = Field(default=0.0, description="Canvas position (UI only)")
    status: NodeStatus = Field(default=NodeStatus.IDLE, description="Transient execution status")

    @field_validator('id')
    @classmethod
    def validate_id(cls, id_value):
        if not id_value or not id_value.strip():
            raise ValueError("Node ID cannot be empty")
        return id_value.strip()

    @field_validator('type', mode='before')
    @classmethod
    def coerce_known_type(cls, value):
        if isinstance(value, str) and not isinstance(value, NodeType):
            value = value.strip()
            try:
                return NodeType(value)
            except ValueError:
                return value
        return value

    @property
    def type_tag(self) -> str:
        """The type as a plain string, whether or not it is a known tag."""
        return self.type.value if isinstance(self.type, NodeType) else str(self.type)


class Connection(BaseModel):
    """A directed edge from one node's output to another node's input."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id, description="Unique identifier for the connection")
    source_id: str = Field(..., alias="sourceId", description="Upstream node ID")
    target_id: str = Field(..., alias="targetId", description="Downstream node ID")

    @field_validator('source_id', 'target_id')
    @classmethod
    def validate_node_ids(cls, node_id):
        if not node_id or not node_id.strip():
            raise ValueError("Node ID cannot be empty")
        return node_id.strip()

    @model_validator(mode='after')
    def validate_edge(self):
        if self.source_id == self.target_id:
            raise ValueError("Cannot connect a node to itself")
        return self


class WorkflowSnapshot(BaseModel):
    """Read-only node/connection set handed to the engine for one run."""
    nodes: List[Node] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)

    @field_validator('nodes')
    @classmethod
    def validate_unique_node_ids(cls, nodes):
        node_ids = [node.id for node in nodes]
        if len(node_ids) != len(set(node_ids)):
            raise ValueError("All node IDs must be unique")
        return nodes


class WorkflowSummary(BaseModel):
    """List-view metadata of a workflow."""
    id: str
    name: str
    description: str
    status: WorkflowStatus
    updated_at: datetime
    nodes_count: int


class Workflow(BaseModel):
    """A stored workflow definition."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    name: str = Field(default="New Trading Strategy")
    description: str = Field(default="")
    status: WorkflowStatus = Field(default=WorkflowStatus.DRAFT)
    updated_at: datetime = Field(default_factory=_utcnow, alias="updatedAt")
    nodes: List[Node] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)

    @field_validator('name')
    @classmethod
    def validate_name_not_empty(cls, name):
        if not name.strip():
            raise ValueError("Workflow name cannot be empty")
        return name.strip()

    def snapshot(self) -> WorkflowSnapshot:
        """Deep copy of the node and connection sets for one run."""
        return WorkflowSnapshot(
            nodes=[node.model_copy(deep=True) for node in self.nodes],
            connections=[conn.model_copy(deep=True) for conn in self.connections],
        )

    def summary(self) -> WorkflowSummary:
        return WorkflowSummary(
            id=self.id,
            name=self.name,
            description=self.description,
            status=self.status,
            updated_at=self.updated_at,
            nodes_count=len(self.nodes),
        )


class LogEntry(BaseModel):
    """One user-facing event emitted during a run."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    timestamp: datetime = Field(default_factory=_utcnow)
    node_id: Optional[str] = Field(None, alias="nodeId")
    level: LogLevel = Field(default=LogLevel.INFO)
    message: str


class NodeResult(BaseModel):
    """Outcome of one node behaviour invocation."""
    output: Any = None
    status: NodeStatus = NodeStatus.SUCCESS
    error: Optional[str] = None

    @field_validator('status')
    @classmethod
    def validate_terminal_status(cls, status):
        if status not in (NodeStatus.SUCCESS, NodeStatus.ERROR):
            raise ValueError("A node result must be 'success' or 'error'")
        return status

    @classmethod
    def success(cls, output: Any) -> 'NodeResult':
        return cls(output=output, status=NodeStatus.SUCCESS)

    @classmethod
    def failure(cls, error: str, output: Any = None) -> 'NodeResult':
        return cls(output=output, status=NodeStatus.ERROR, error=error)

    @property
    def ok(self) -> bool:
        return self.status == NodeStatus.SUCCESS


class RunRecord(BaseModel):
    """Finalized, immutable record of one workflow run."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    workflow_id: Optional[str] = Field(None, alias="workflowId")
    timestamp: datetime = Field(default_factory=_utcnow)
    status: RunStatus
    duration_ms: float = Field(0.0, alias="durationMs")
    logs: Tuple[LogEntry, ...] = Field(default_factory=tuple)
    node_statuses: Dict[str, NodeStatus] = Field(default_factory=dict, alias="nodeStatuses")
    error_message: Optional[str] = Field(None, alias="errorMessage")

    @field_validator('status')
    @classmethod
    def validate_final_status(cls, status):
        if status not in (RunStatus.SUCCESS, RunStatus.FAILED):
            raise ValueError("A finalized run must be 'success' or 'failed'")
        return status

    def messages(self) -> List[str]:
        """Log messages in run order, without ids or timestamps."""
        return [entry.message for entry in self.logs]

    def to_payload(self) -> Dict[str, Any]:
        """camelCase dict for the reporting UI."""
        return self.model_dump(mode="json", by_alias=True)


class NodeTypeInfo(BaseModel):
    """Display metadata of a registered node behaviour."""
    type: str
    label: str
    description: str


def clone_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Independent copy of a node config for one execution context."""
    return copy.deepcopy(config)

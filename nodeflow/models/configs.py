"""Typed configuration variants, one per concrete node type.

Configs keep unknown keys so definitions written by newer editors still load.
Keys use the camelCase names the console stores; snake_case is accepted too.
"""

import json
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class NodeConfig(BaseModel):
    """Base for all node configs."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class GenericConfig(NodeConfig):
    """Untyped map for unknown or legacy node types."""

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class TimerConfig(NodeConfig):
    cron: Optional[str] = Field(None, description="Schedule expression, descriptive only")


class DatabaseQueryConfig(NodeConfig):
    connection_string: Optional[str] = Field(None, alias="connectionString")
    query: str = Field(default="", description="SQL to execute")


class HttpRequestConfig(NodeConfig):
    method: str = Field(default="GET")
    url: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = None

    @field_validator('method')
    @classmethod
    def validate_method(cls, method):
        method = (method or "GET").strip().upper()
        if method not in ("GET", "POST", "PUT", "DELETE"):
            raise ValueError(f"Unsupported HTTP method: {method}")
        return method

    @field_validator('headers', mode='before')
    @classmethod
    def parse_headers(cls, headers):
        # the editor stores headers as a JSON text area
        if headers is None or headers == "":
            return {}
        if isinstance(headers, str):
            headers = json.loads(headers)
        if not isinstance(headers, dict):
            raise ValueError("Headers must be a JSON object")
        return {str(key): str(value) for key, value in headers.items()}

    @field_validator('body', mode='before')
    @classmethod
    def parse_body(cls, body):
        if isinstance(body, str):
            if not body.strip():
                return None
            try:
                return json.loads(body)
            except json.JSONDecodeError:
                return body
        return body


class ScriptConfig(NodeConfig):
    language: str = Field(default="javascript")
    code: str = Field(default="")

    @field_validator('language')
    @classmethod
    def normalize_language(cls, language):
        return (language or "javascript").strip().lower()


class StrategyConfig(NodeConfig):
    provider: str = Field(default="DeepSeek")
    model: str = Field(default="default")
    api_key: Optional[str] = Field(None, alias="apiKey")
    base_url: Optional[str] = Field(None, alias="baseUrl")
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
    system_prompt: str = Field(default="", alias="systemPrompt")
    user_prompt: str = Field(default="", alias="userPrompt")
    fast_ma: int = Field(default=10, ge=1)
    slow_ma: int = Field(default=50, ge=1)


class StorageConfig(NodeConfig):
    db_type: str = Field(default="SQLite", alias="dbType")
    table: str = Field(default="default")
    connection_string: Optional[str] = Field(None, alias="connectionString")

    @field_validator('table')
    @classmethod
    def validate_table(cls, table):
        table = (table or "default").strip()
        if not table.replace("_", "").isalnum():
            raise ValueError(f"Invalid table name: {table!r}")
        return table
